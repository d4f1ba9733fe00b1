"""Port interface for assignment persistence.

Implementations must enforce the storage-level guarantee that an
exclusive resource never has two active rows: ``add`` raises
ConflictError instead of writing the second one.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ...catalog.domain.entities import ResourceKind
from .entities import Assignment


class IAssignmentRepository(ABC):
    """Port for custody record persistence."""

    @abstractmethod
    async def get(self, assignment_id: str) -> Optional[Assignment]:
        """Get an assignment by id."""
        ...

    @abstractmethod
    async def list_active(
        self,
        kind: ResourceKind,
        resource_id: str,
        employee_id: Optional[str] = None,
    ) -> list[Assignment]:
        """List active rows for a resource, optionally for one employee."""
        ...

    @abstractmethod
    async def list_active_for_kind(self, kind: ResourceKind) -> list[Assignment]:
        """List every active row of a resource kind (import preload)."""
        ...

    @abstractmethod
    async def list_active_for_employee(self, employee_id: str) -> list[Assignment]:
        """List the active rows held by an employee."""
        ...

    @abstractmethod
    async def history(self, kind: ResourceKind, resource_id: str) -> list[Assignment]:
        """List every row ever recorded for a resource, newest first."""
        ...

    @abstractmethod
    async def add(self, assignment: Assignment) -> Assignment:
        """Insert a new assignment.

        Raises:
            ConflictError: If an exclusive resource already has an active row
        """
        ...

    @abstractmethod
    async def add_many(self, assignments: list[Assignment]) -> int:
        """Insert several assignments in one flush.

        Raises:
            ConflictError: If an exclusive resource already has an active row
        """
        ...

    @abstractmethod
    async def update(self, assignment: Assignment) -> Assignment:
        """Write back a mutated assignment."""
        ...
