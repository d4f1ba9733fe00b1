"""In-memory adapter for the unit-of-work port.

Backs tests and embedded use. Reads and writes copy entities in and out
of the store so callers must write back what they change, exactly as
with the PostgreSQL adapter. ``transaction()`` snapshots the whole store
and restores it when the block raises.
"""

import copy
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Union

from ...assignment.domain.entities import Assignment, AssignmentStatus
from ...assignment.domain.ports import IAssignmentRepository
from ...catalog.domain.entities import (
    AssignmentPolicyKind,
    Employee,
    MasterDataKind,
    NamedEntity,
    Project,
    Resource,
    ResourceKind,
    normalize_key,
)
from ...catalog.domain.ports import IMasterDataRepository, IResourceCatalog
from ...common.exceptions import ConflictError, IntegrityError
from ..unit_of_work import IUnitOfWork

logger = logging.getLogger(__name__)

Seedable = Union[Resource, NamedEntity, Employee, Project, Assignment]


@dataclass
class InMemoryStore:
    """Dict-backed tables shared by the in-memory repositories."""

    resources: dict[ResourceKind, dict[str, Resource]] = field(
        default_factory=lambda: {kind: {} for kind in ResourceKind}
    )
    master_data: dict[MasterDataKind, dict[str, NamedEntity]] = field(
        default_factory=lambda: {kind: {} for kind in MasterDataKind}
    )
    employees: dict[str, Employee] = field(default_factory=dict)
    projects: dict[str, Project] = field(default_factory=dict)
    assignments: dict[str, Assignment] = field(default_factory=dict)

    def seed(self, *entities: Seedable) -> None:
        """Insert entities directly, bypassing the repositories."""
        for entity in entities:
            entity = copy.deepcopy(entity)
            if isinstance(entity, Resource):
                self.resources[entity.kind][entity.id] = entity
            elif isinstance(entity, NamedEntity):
                self.master_data[entity.kind][entity.id] = entity
            elif isinstance(entity, Employee):
                self.employees[entity.id] = entity
            elif isinstance(entity, Project):
                self.projects[entity.id] = entity
            elif isinstance(entity, Assignment):
                self.assignments[entity.id] = entity
            else:
                raise TypeError(f"Cannot seed {type(entity).__name__}")

    def snapshot(self) -> "InMemoryStore":
        return copy.deepcopy(self)

    def restore(self, snapshot: "InMemoryStore") -> None:
        self.resources = snapshot.resources
        self.master_data = snapshot.master_data
        self.employees = snapshot.employees
        self.projects = snapshot.projects
        self.assignments = snapshot.assignments


class InMemoryResourceCatalog(IResourceCatalog):
    """In-memory implementation of IResourceCatalog."""

    def __init__(self, store: InMemoryStore):
        self.store = store

    async def find_by_id(self, kind, resource_id, for_update=False):
        resource = self.store.resources[kind].get(resource_id)
        return copy.deepcopy(resource) if resource else None

    async def find_by_natural_key(self, kind, key):
        wanted = normalize_key(key)
        if not wanted:
            return None
        for resource in self.store.resources[kind].values():
            if resource.natural_key == wanted:
                return copy.deepcopy(resource)
        return None

    async def list_resources(self, kind):
        return [copy.deepcopy(r) for r in self.store.resources[kind].values()]

    async def upsert(self, resource):
        self.store.resources[resource.kind][resource.id] = copy.deepcopy(resource)
        return resource

    async def upsert_many(self, resources):
        for resource in resources:
            await self.upsert(resource)
        return len(resources)


class InMemoryMasterDataRepository(IMasterDataRepository):
    """In-memory implementation of IMasterDataRepository."""

    def __init__(self, store: InMemoryStore):
        self.store = store

    async def list_master_data(self, kind):
        return [copy.deepcopy(e) for e in self.store.master_data[kind].values()]

    async def create_master_data(
        self,
        kind,
        name,
        parent_id=None,
        description=None,
        actor_id=None,
    ):
        entity = NamedEntity(
            kind=kind,
            name=name.strip(),
            parent_id=parent_id,
            description=description,
            created_by=actor_id,
        )
        await self.create_many([entity])
        return entity

    async def create_many(self, entities):
        table = self.store.master_data
        for entity in entities:
            if any(e.key == entity.key for e in table[entity.kind].values()):
                raise IntegrityError(
                    f"{entity.kind.label} '{entity.name}' already exists",
                    constraint="unique",
                )
            table[entity.kind][entity.id] = copy.deepcopy(entity)
        return len(entities)

    async def get_employee(self, employee_id):
        employee = self.store.employees.get(employee_id)
        return copy.deepcopy(employee) if employee else None

    async def list_employees(self):
        return [copy.deepcopy(e) for e in self.store.employees.values()]

    async def get_project(self, project_id):
        project = self.store.projects.get(project_id)
        return copy.deepcopy(project) if project else None


class InMemoryAssignmentRepository(IAssignmentRepository):
    """In-memory implementation of IAssignmentRepository."""

    def __init__(self, store: InMemoryStore):
        self.store = store

    def _rows(self) -> list[Assignment]:
        return list(self.store.assignments.values())

    async def get(self, assignment_id):
        assignment = self.store.assignments.get(assignment_id)
        return copy.deepcopy(assignment) if assignment else None

    async def list_active(self, kind, resource_id, employee_id=None):
        return [
            copy.deepcopy(a)
            for a in self._rows()
            if a.is_active
            and a.kind == kind
            and a.resource_id == resource_id
            and (employee_id is None or a.employee_id == employee_id)
        ]

    async def list_active_for_kind(self, kind):
        return [copy.deepcopy(a) for a in self._rows() if a.is_active and a.kind == kind]

    async def list_active_for_employee(self, employee_id):
        return [
            copy.deepcopy(a)
            for a in self._rows()
            if a.is_active and a.employee_id == employee_id
        ]

    async def history(self, kind, resource_id):
        rows = [
            copy.deepcopy(a)
            for a in reversed(self._rows())
            if a.kind == kind and a.resource_id == resource_id
        ]
        return sorted(rows, key=lambda a: a.assigned_at, reverse=True)

    async def add(self, assignment):
        if (
            assignment.kind.policy == AssignmentPolicyKind.EXCLUSIVE
            and assignment.status == AssignmentStatus.ASSIGNED
        ):
            for existing in self._rows():
                if (
                    existing.is_active
                    and existing.kind == assignment.kind
                    and existing.resource_id == assignment.resource_id
                ):
                    raise ConflictError(
                        f"{assignment.kind.label} '{assignment.resource_id}' "
                        f"already has an active assignment.",
                        details={"assignment_id": existing.id},
                    )
        self.store.assignments[assignment.id] = copy.deepcopy(assignment)
        return assignment

    async def add_many(self, assignments):
        for assignment in assignments:
            await self.add(assignment)
        return len(assignments)

    async def update(self, assignment):
        self.store.assignments[assignment.id] = copy.deepcopy(assignment)
        return assignment


class InMemoryUnitOfWork(IUnitOfWork):
    """Unit of work over an InMemoryStore."""

    def __init__(self, store: Optional[InMemoryStore] = None):
        self.store = store or InMemoryStore()
        self.catalog = InMemoryResourceCatalog(self.store)
        self.master_data = InMemoryMasterDataRepository(self.store)
        self.assignments = InMemoryAssignmentRepository(self.store)
        self._depth = 0

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshot = self.store.snapshot()
        self._depth = 1
        try:
            yield
            logger.debug("In-memory transaction committed")
        except BaseException:
            self.store.restore(snapshot)
            logger.debug("In-memory transaction rolled back")
            raise
        finally:
            self._depth = 0
