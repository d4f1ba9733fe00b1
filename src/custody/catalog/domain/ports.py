"""Port interfaces for the resource catalog.

These are abstract interfaces (ports) that define how the assignment
ledger and the import engine read and write resources and master data.
Concrete implementations (adapters) live in ``custody.persistence``.

No business rules live here; the catalog exists so the ledger and the
import engine can run against an in-memory double as well as PostgreSQL.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .entities import (
    Employee,
    MasterDataKind,
    NamedEntity,
    Project,
    Resource,
    ResourceKind,
)


class IResourceCatalog(ABC):
    """Port for resource lookup and upsert."""

    @abstractmethod
    async def find_by_id(
        self,
        kind: ResourceKind,
        resource_id: str,
        for_update: bool = False,
    ) -> Optional[Resource]:
        """Find a resource by internal id.

        Args:
            kind: Resource kind
            resource_id: Resource id
            for_update: Lock the row for the rest of the transaction

        Returns:
            Resource if found, None otherwise
        """
        ...

    @abstractmethod
    async def find_by_natural_key(
        self,
        kind: ResourceKind,
        key: str,
    ) -> Optional[Resource]:
        """Find a resource by natural key (case-insensitive).

        Args:
            kind: Resource kind
            key: Asset tag, accessory name, "account|service" for SIM cards,
                or license key

        Returns:
            Resource if found, None otherwise
        """
        ...

    @abstractmethod
    async def list_resources(self, kind: ResourceKind) -> list[Resource]:
        """List every resource of a kind (used to preload import context)."""
        ...

    @abstractmethod
    async def upsert(self, resource: Resource) -> Resource:
        """Insert or update a single resource by id."""
        ...

    @abstractmethod
    async def upsert_many(self, resources: list[Resource]) -> int:
        """Insert or update resources by id.

        Returns:
            Number of resources written
        """
        ...


class IMasterDataRepository(ABC):
    """Port for master-data, employee, and project lookups."""

    @abstractmethod
    async def list_master_data(self, kind: MasterDataKind) -> list[NamedEntity]:
        """List all master-data rows of a kind."""
        ...

    @abstractmethod
    async def create_master_data(
        self,
        kind: MasterDataKind,
        name: str,
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> NamedEntity:
        """Create a single master-data row."""
        ...

    @abstractmethod
    async def create_many(self, entities: list[NamedEntity]) -> int:
        """Insert several master-data rows in one flush.

        Returns:
            Number of rows inserted
        """
        ...

    @abstractmethod
    async def get_employee(self, employee_id: str) -> Optional[Employee]:
        """Get an employee by internal id."""
        ...

    @abstractmethod
    async def list_employees(self) -> list[Employee]:
        """List all employees (used to resolve import assignees)."""
        ...

    @abstractmethod
    async def get_project(self, project_id: str) -> Optional[Project]:
        """Get a project by internal id."""
        ...
