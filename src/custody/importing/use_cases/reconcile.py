"""Shared reconciliation pipeline for bulk imports.

A batch goes through two commit points:

1. Preload and master data: the target project is checked, existing
   resources, master data, employees and active assignments are loaded
   once, and any missing master data is created in a single flush.
2. Persist: rows are reconciled in memory in input order, then every
   created or updated resource and every new assignment is written in
   one flush.

Row-level problems never abort the batch. Only an unknown target
project, a master-data flush failure, or a failed final persist do.
"""

import logging
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import ClassVar, Generic, Iterable, Optional, Sequence, TypeVar

from ...assignment.domain.entities import Assignment
from ...catalog.domain.entities import (
    Employee,
    MasterDataKind,
    NamedEntity,
    Resource,
    ResourceKind,
    normalize_key,
)
from ...common.exceptions import ConflictError, CustodyError, PersistenceError
from ...config import DEFAULT_CATEGORY_NAME
from ...persistence.unit_of_work import IUnitOfWork
from ..domain.entities import AssetImportRow, ImportOutcome, SimImportRow

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT", AssetImportRow, SimImportRow)


def majority_vote(values: Iterable[Optional[str]]) -> Optional[str]:
    """Pick the most frequent name, compared case-insensitively.

    Ties go to the name seen first. The winner is returned with the
    spelling of its first occurrence; None if there are no names.
    """
    counts: Counter = Counter()
    spelling: dict[str, str] = {}
    for value in values:
        key = normalize_key(value)
        if not key:
            continue
        counts[key] += 1
        spelling.setdefault(key, value.strip())
    if not counts:
        return None
    winner, _ = counts.most_common(1)[0]
    return spelling[winner]


@dataclass
class ImportContext:
    """In-memory snapshot a batch is reconciled against."""

    resources: dict[str, Resource] = field(default_factory=dict)
    master_data: dict[MasterDataKind, dict[str, NamedEntity]] = field(default_factory=dict)
    employees: dict[str, Employee] = field(default_factory=dict)
    held: set[str] = field(default_factory=set)

    def lookup(self, kind: MasterDataKind, name: Optional[str]) -> Optional[NamedEntity]:
        """Find master data by case-insensitive exact name."""
        return self.master_data.get(kind, {}).get(normalize_key(name))

    def set_master_data(self, kind: MasterDataKind, entities: list[NamedEntity]) -> None:
        self.master_data[kind] = {e.key: e for e in entities}


class MasterDataPlan:
    """Collects master data to auto-create, without duplicates."""

    def __init__(self, context: ImportContext, actor_id: Optional[str], source: str):
        self.context = context
        self.actor_id = actor_id
        self.source = source
        self._pending: dict[tuple[MasterDataKind, str], NamedEntity] = {}

    @property
    def pending(self) -> list[NamedEntity]:
        return list(self._pending.values())

    def find(self, kind: MasterDataKind, name: str) -> Optional[NamedEntity]:
        return self.context.lookup(kind, name) or self._pending.get((kind, normalize_key(name)))

    def ensure(
        self,
        kind: MasterDataKind,
        name: str,
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> NamedEntity:
        """Return existing or pending master data by name, planning it if absent."""
        existing = self.find(kind, name)
        if existing is not None:
            return existing
        entity = NamedEntity(
            kind=kind,
            name=name.strip(),
            parent_id=parent_id,
            description=description or f"Auto-created from {self.source} import",
            created_by=self.actor_id,
        )
        self._pending[(kind, entity.key)] = entity
        return entity


@dataclass
class ReconcilePlan:
    """Writes accumulated while processing rows."""

    resources: dict[str, Resource] = field(default_factory=dict)
    assignments: list[Assignment] = field(default_factory=list)
    created: int = 0
    updated: int = 0

    def record_create(self, resource: Resource) -> None:
        self.resources[resource.id] = resource
        self.created += 1

    def record_update(self, resource: Resource) -> None:
        self.resources[resource.id] = resource
        self.updated += 1


class BulkReconciler(ABC, Generic[RowT]):
    """Template for importing a batch of rows of one resource kind.

    Subclasses supply the master-data kinds they reference, how missing
    master data is planned, and how a single row is reconciled.
    """

    kind: ClassVar[ResourceKind]
    source: ClassVar[str]
    master_kinds: ClassVar[tuple[MasterDataKind, ...]]

    def __init__(
        self,
        uow: IUnitOfWork,
        default_category: str = DEFAULT_CATEGORY_NAME,
        warn_rows: int = 1000,
    ):
        """Initialize the use case.

        Args:
            uow: Unit of work over the custody store
            default_category: Category for new items with no inferable category
            warn_rows: Batch size above which a warning is reported
        """
        self.uow = uow
        self.default_category = default_category
        self.warn_rows = warn_rows

    async def execute(
        self,
        rows: Sequence[RowT],
        project_id: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> ImportOutcome:
        """Execute the import.

        Args:
            rows: Import rows in input order
            project_id: Optional project every imported resource belongs to
            actor_id: Acting identity for audit stamps

        Returns:
            ImportOutcome with counts and per-row errors

        Raises:
            PersistenceError: If auto-created master data cannot be saved
        """
        if not rows:
            return ImportOutcome.failed("No rows provided for import.")

        outcome = ImportOutcome()
        if len(rows) > self.warn_rows:
            message = f"Large import with {len(rows)} rows. Processing may take a while."
            outcome.warnings.append(message)
            logger.warning(message)

        logger.info(f"Importing {len(rows)} {self.source} rows")

        # 1. Project check, preload, and master-data flush
        async with self.uow.transaction():
            if project_id:
                project = await self.uow.master_data.get_project(project_id)
                if project is None:
                    logger.warning(f"Import rejected: project {project_id} not found")
                    return ImportOutcome.failed(
                        f"Project with ID '{project_id}' not found.",
                        warnings=outcome.warnings,
                    )

            context = await self._preload()

            plan = MasterDataPlan(context, actor_id, self.source)
            self.plan_master_data(rows, plan)
            pending = plan.pending
            if pending:
                await self.uow.master_data.create_many(pending)
                for kind in self.master_kinds:
                    context.set_master_data(
                        kind, await self.uow.master_data.list_master_data(kind)
                    )
                outcome.master_data_created = len(pending)
                logger.info(f"Auto-created {len(pending)} master data rows")

        # 2. Per-row reconciliation, in input order
        writes = ReconcilePlan()
        seen: set[str] = set()

        for row in rows:
            try:
                key = row.natural_key
                if key is not None:
                    if key in seen:
                        outcome.add_error(row.row_number, self.duplicate_message(row))
                        continue
                    seen.add(key)

                resource = self.reconcile_row(row, context, writes, project_id, actor_id)
                self._attach_assignee(row, resource, context, writes, actor_id)

            except CustodyError as e:
                outcome.add_error(row.row_number, e.message)
            except Exception as e:
                logger.warning(f"Unexpected error on row {row.row_number}: {e}")
                outcome.add_error(row.row_number, f"Unexpected error: {e}")

        # 3. Persist everything in one flush
        try:
            async with self.uow.transaction():
                if writes.resources:
                    await self.uow.catalog.upsert_many(list(writes.resources.values()))
                if writes.assignments:
                    await self.uow.assignments.add_many(writes.assignments)
        except (PersistenceError, ConflictError) as e:
            logger.error(f"Failed to save {self.source} import: {e.message}")
            return ImportOutcome.failed(
                f"Failed to save import: {e.message}",
                warnings=outcome.warnings,
            )

        outcome.imported = writes.created
        outcome.updated = writes.updated
        outcome.assignments_created = len(writes.assignments)
        outcome.success = not outcome.errors

        logger.info(
            f"{self.source.capitalize()} import finished: {outcome.imported} imported, "
            f"{outcome.updated} updated, {outcome.assignments_created} assigned, "
            f"{len(outcome.errors)} errors"
        )
        return outcome

    async def _preload(self) -> ImportContext:
        """Load everything the batch is reconciled against, once."""
        context = ImportContext()

        for resource in await self.uow.catalog.list_resources(self.kind):
            if resource.natural_key:
                context.resources[resource.natural_key] = resource

        for kind in self.master_kinds:
            context.set_master_data(kind, await self.uow.master_data.list_master_data(kind))

        for employee in await self.uow.master_data.list_employees():
            context.employees[normalize_key(employee.employee_code)] = employee

        active = await self.uow.assignments.list_active_for_kind(self.kind)
        context.held = {a.resource_id for a in active}

        logger.debug(
            f"Preloaded {len(context.resources)} {self.kind.value} records, "
            f"{len(context.employees)} employees, {len(context.held)} active assignments"
        )
        return context

    def _attach_assignee(
        self,
        row: RowT,
        resource: Resource,
        context: ImportContext,
        writes: ReconcilePlan,
        actor_id: Optional[str],
    ) -> None:
        """Assign the resource to the row's employee, if any.

        Additive only: an unresolved or inactive employee, or a resource
        that already has an active holder, is skipped without a row error.
        """
        if not row.assigned_to:
            return

        employee = context.employees.get(normalize_key(row.assigned_to))
        if employee is None or not employee.is_active:
            logger.warning(
                f"Row {row.row_number}: assignee '{row.assigned_to}' not found "
                f"or inactive, skipping assignment"
            )
            return

        if resource.id in context.held:
            logger.debug(f"Row {row.row_number}: {self.kind.value} already assigned, skipping")
            return

        writes.assignments.append(
            Assignment(
                kind=self.kind,
                resource_id=resource.id,
                employee_id=employee.id,
                created_by=actor_id,
            )
        )
        context.held.add(resource.id)
        resource.mark_assigned(employee.id, actor_id)

    @abstractmethod
    def plan_master_data(self, rows: Sequence[RowT], plan: MasterDataPlan) -> None:
        """Plan master data referenced by the batch but missing from the store."""
        ...

    @abstractmethod
    def duplicate_message(self, row: RowT) -> str:
        """Row error for a natural key already seen in this batch."""
        ...

    @abstractmethod
    def reconcile_row(
        self,
        row: RowT,
        context: ImportContext,
        writes: ReconcilePlan,
        project_id: Optional[str],
        actor_id: Optional[str],
    ) -> Resource:
        """Validate one row and upsert its resource into the plan.

        Raises:
            CustodyError: For a row-level problem (recorded as a row error)
        """
        ...
