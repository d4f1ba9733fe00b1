"""Domain entities for bulk imports.

Import rows are transient: they live only for one reconciliation call.
String fields are trimmed on construction and serial-like fields have
their "no value" sentinels mapped to None.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from ...catalog.domain.entities import normalize_key, sim_natural_key

# Spreadsheet placeholders meaning "no value"
SENTINEL_VALUES = frozenset({"n/a", "-", ""})

DEFAULT_CONDITION = "excellent"
DEFAULT_SIM_STATUS = "active"


def clean_text(value: Any) -> str:
    """Trim a cell value to text; None becomes an empty string."""
    if value is None:
        return ""
    return str(value).strip()


def normalize_optional(value: Any) -> Optional[str]:
    """Trim an optional value and map sentinel placeholders to None."""
    text = clean_text(value)
    if text.lower() in SENTINEL_VALUES:
        return None
    return text


@dataclass
class AssetImportRow:
    """A single asset row from an import batch."""

    row_number: int
    asset_tag: str = ""
    asset_name: str = ""
    item_category: str = ""
    item: str = ""
    serial_no: Optional[str] = None
    assigned_to: Optional[str] = None
    condition: Optional[str] = DEFAULT_CONDITION

    def __post_init__(self):
        self.asset_tag = clean_text(self.asset_tag)
        self.asset_name = clean_text(self.asset_name)
        self.item_category = clean_text(self.item_category)
        self.item = clean_text(self.item)
        self.serial_no = normalize_optional(self.serial_no)
        self.assigned_to = clean_text(self.assigned_to) or None
        self.condition = clean_text(self.condition) or DEFAULT_CONDITION

    @property
    def natural_key(self) -> Optional[str]:
        return normalize_key(self.asset_tag) or None


@dataclass
class SimImportRow:
    """A single SIM card row from an import batch.

    ``start_date`` is kept as text; it is parsed during reconciliation so
    that a bad date becomes a row error rather than a batch failure.
    """

    row_number: int
    account_no: str = ""
    service_no: str = ""
    start_date: Optional[str] = None
    sim_type: Optional[str] = None
    sim_provider: Optional[str] = None
    sim_card_plan: Optional[str] = None
    status: Optional[str] = DEFAULT_SIM_STATUS
    serial_no: Optional[str] = None
    assigned_to: Optional[str] = None

    def __post_init__(self):
        self.account_no = clean_text(self.account_no)
        self.service_no = clean_text(self.service_no)
        self.start_date = clean_text(self.start_date) or None
        self.sim_type = clean_text(self.sim_type) or None
        self.sim_provider = clean_text(self.sim_provider) or None
        self.sim_card_plan = clean_text(self.sim_card_plan) or None
        self.status = clean_text(self.status) or DEFAULT_SIM_STATUS
        self.serial_no = normalize_optional(self.serial_no)
        self.assigned_to = clean_text(self.assigned_to) or None

    @property
    def natural_key(self) -> Optional[str]:
        if not self.account_no or not self.service_no:
            return None
        return sim_natural_key(self.account_no, self.service_no)


@dataclass
class RowError:
    """A per-row import failure. Row 0 marks a batch-level error."""

    row: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "message": self.message}


@dataclass
class ImportOutcome:
    """Aggregate result of one import batch."""

    success: bool = True
    imported: int = 0
    updated: int = 0
    errors: list[RowError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    # Side-effect statistics
    assignments_created: int = 0
    master_data_created: int = 0

    @classmethod
    def failed(cls, message: str, warnings: Optional[list[str]] = None) -> "ImportOutcome":
        """Outcome for a batch that was rejected as a whole."""
        return cls(
            success=False,
            errors=[RowError(row=0, message=message)],
            warnings=list(warnings or []),
        )

    def add_error(self, row: int, message: str) -> None:
        self.errors.append(RowError(row=row, message=message))

    def to_dict(self) -> dict[str, Any]:
        """Convert to the import result shape."""
        return {
            "success": self.success,
            "imported": self.imported,
            "updated": self.updated,
            "errors": [e.to_dict() for e in self.errors],
        }
