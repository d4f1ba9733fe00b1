"""Domain entities for the assignment ledger.

An Assignment is the custody record linking one employee to one resource.
Rows are created by Assign, mutated in place by partial returns, and
closed (status RETURNED) by full returns; they are never deleted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, Optional

from ...catalog.domain.entities import ResourceKind, new_id, utcnow

RETURNED_LABEL = "Returned"
PARTIAL_RETURN_LABEL = "Partial return"
KNOWN_LABELS = (RETURNED_LABEL, PARTIAL_RETURN_LABEL)
ESCAPE = "\\"


class AssignmentStatus(str, Enum):
    """Status of a custody record."""

    ASSIGNED = "assigned"
    RETURNED = "returned"


@dataclass(frozen=True)
class NoteEntry:
    """A single line of an assignment's note log."""

    text: str
    label: Optional[str] = None
    at: Optional[datetime] = None  # Unknown for entries parsed from storage

    def render(self) -> str:
        if self.label:
            return f"{self.label}: {self.text}"
        if self.text.startswith(ESCAPE) or _label_of(self.text):
            # Plain text that would read back as a labelled entry
            return ESCAPE + self.text
        return self.text


def _label_of(line: str) -> Optional[str]:
    for known in KNOWN_LABELS:
        if line.startswith(f"{known}:"):
            return known
    return None


@dataclass(frozen=True)
class NoteLog:
    """Append-only note history stored as newline-separated text.

    The rendered form is compatible with notes written before the log
    existed: the first assign note unlabelled, later entries as
    ``"Returned: ..."`` / ``"Partial return: ..."`` lines. Plain text that
    starts with a label or a backslash is stored behind a backslash.
    """

    entries: tuple[NoteEntry, ...] = ()

    def append(self, text: Optional[str], label: Optional[str] = None) -> "NoteLog":
        """Return a new log with an entry added; blank text is ignored."""
        if text is None or not text.strip():
            return self
        return NoteLog(
            self.entries + (NoteEntry(text=text.strip(), label=label, at=utcnow()),)
        )

    def render(self) -> Optional[str]:
        if not self.entries:
            return None
        return "\n".join(entry.render() for entry in self.entries)

    @classmethod
    def parse(cls, text: Optional[str]) -> "NoteLog":
        """Rebuild a log from its stored text form."""
        if not text:
            return cls()
        entries = []
        for line in text.splitlines():
            if not line.strip():
                continue
            body = line.strip()
            if body.startswith(ESCAPE):
                entries.append(NoteEntry(text=body[len(ESCAPE):]))
                continue
            label = _label_of(body)
            if label:
                body = body[len(label) + 1:].strip()
            entries.append(NoteEntry(text=body, label=label))
        return cls(tuple(entries))

    def __iter__(self) -> Iterator[NoteEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class Assignment:
    """Custody record for one employee and one resource.

    ``quantity`` is only meaningful for accessories; other kinds hold 1.
    """

    kind: ResourceKind
    resource_id: str
    employee_id: str
    id: str = field(default_factory=new_id)
    status: AssignmentStatus = AssignmentStatus.ASSIGNED
    quantity: int = 1
    assigned_at: datetime = field(default_factory=utcnow)
    returned_at: Optional[datetime] = None
    notes: NoteLog = field(default_factory=NoteLog)

    created_at: datetime = field(default_factory=utcnow)
    created_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == AssignmentStatus.ASSIGNED

    def _touch(self, actor_id: Optional[str]) -> None:
        self.updated_at = utcnow()
        self.updated_by = actor_id

    def add_units(self, quantity: int, actor_id: Optional[str]) -> None:
        """Top up an active accessory assignment."""
        self.quantity += quantity
        self._touch(actor_id)

    def take_units(
        self,
        quantity: int,
        note: Optional[str],
        actor_id: Optional[str],
    ) -> None:
        """Partially return units; the row stays active."""
        self.quantity -= quantity
        at = utcnow()
        text = f"{quantity} unit(s) on {at.date().isoformat()}"
        if note and note.strip():
            text = f"{text}. {note.strip()}"
        self.notes = self.notes.append(text, PARTIAL_RETURN_LABEL)
        self._touch(actor_id)

    def close(self, note: Optional[str], actor_id: Optional[str]) -> None:
        """Fully return the resource."""
        self.status = AssignmentStatus.RETURNED
        self.returned_at = utcnow()
        self.notes = self.notes.append(note, RETURNED_LABEL)
        self._touch(actor_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for CLI output and logging."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "resource_id": self.resource_id,
            "employee_id": self.employee_id,
            "status": self.status.value,
            "quantity": self.quantity,
            "assigned_at": self.assigned_at.isoformat(),
            "returned_at": self.returned_at.isoformat() if self.returned_at else None,
            "notes": self.notes.render(),
            "created_by": self.created_by,
            "updated_by": self.updated_by,
        }
