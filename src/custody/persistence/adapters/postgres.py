"""PostgreSQL adapter for the unit-of-work port.

This adapter implements the catalog, master-data and assignment ports
using asyncpg. All repository calls run on the connection held by the
enclosing ``transaction()``; there is no autocommit path.

The single-active-holder rule for exclusive resources is enforced by a
partial unique index on ``resource_assignments``. A losing concurrent
insert surfaces as ConflictError.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import fields
from enum import Enum
from typing import Any, AsyncIterator, Optional

import asyncpg

from ...assignment.domain.entities import Assignment, AssignmentStatus, NoteLog
from ...assignment.domain.ports import IAssignmentRepository
from ...catalog.domain.entities import (
    RESOURCE_TYPES,
    ActiveStatus,
    Employee,
    MasterDataKind,
    NamedEntity,
    Project,
    Resource,
    ResourceKind,
    normalize_key,
)
from ...catalog.domain.ports import IMasterDataRepository, IResourceCatalog
from ...common.database import database_transaction
from ...common.exceptions import ConflictError, TransactionError
from ..unit_of_work import IUnitOfWork

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS assets (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    asset_tag TEXT NOT NULL,
    description TEXT,
    serial_number TEXT,
    status TEXT NOT NULL DEFAULT 'available',
    condition TEXT,
    item_id TEXT,
    location TEXT,
    po_number TEXT,
    project_id TEXT,
    notes TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_by TEXT,
    updated_at TIMESTAMPTZ,
    updated_by TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_assets_tag ON assets (LOWER(TRIM(asset_tag)));

CREATE TABLE IF NOT EXISTS accessories (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    stock INTEGER,
    project_id TEXT,
    notes TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_by TEXT,
    updated_at TIMESTAMPTZ,
    updated_by TEXT
);

CREATE TABLE IF NOT EXISTS sim_cards (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    account_no TEXT NOT NULL,
    service_no TEXT NOT NULL,
    serial_no TEXT,
    start_date DATE,
    status TEXT NOT NULL DEFAULT 'active',
    sim_type_id TEXT,
    sim_provider_id TEXT,
    sim_card_plan_id TEXT,
    assigned_to TEXT,
    project_id TEXT,
    notes TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_by TEXT,
    updated_at TIMESTAMPTZ,
    updated_by TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_sim_cards_account_service
    ON sim_cards (LOWER(TRIM(account_no)), LOWER(TRIM(service_no)));

CREATE TABLE IF NOT EXISTS software_licenses (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    license_key TEXT,
    license_type TEXT,
    seats INTEGER,
    vendor TEXT,
    purchase_date DATE,
    expiry_date DATE,
    cost NUMERIC(12, 2),
    status TEXT NOT NULL DEFAULT 'active',
    po_number TEXT,
    project_id TEXT,
    notes TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_by TEXT,
    updated_at TIMESTAMPTZ,
    updated_by TEXT
);

CREATE TABLE IF NOT EXISTS master_data (
    id TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    name TEXT NOT NULL,
    parent_id TEXT REFERENCES master_data(id),
    description TEXT,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_by TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_master_data_kind_name
    ON master_data (kind, LOWER(TRIM(name)));

CREATE TABLE IF NOT EXISTS employees (
    id TEXT PRIMARY KEY,
    employee_code TEXT NOT NULL UNIQUE,
    first_name TEXT NOT NULL DEFAULT '',
    last_name TEXT NOT NULL DEFAULT '',
    email TEXT,
    status TEXT NOT NULL DEFAULT 'active'
);

CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    code TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'active'
);

CREATE TABLE IF NOT EXISTS resource_assignments (
    id TEXT PRIMARY KEY,
    resource_kind TEXT NOT NULL,
    resource_id TEXT NOT NULL,
    employee_id TEXT NOT NULL REFERENCES employees(id),
    policy TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'assigned',
    quantity INTEGER NOT NULL DEFAULT 1 CHECK (quantity > 0),
    assigned_at TIMESTAMPTZ NOT NULL,
    returned_at TIMESTAMPTZ,
    notes TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_by TEXT,
    updated_at TIMESTAMPTZ,
    updated_by TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_resource_assignments_exclusive_active
    ON resource_assignments (resource_kind, resource_id)
    WHERE status = 'assigned' AND policy = 'exclusive';
CREATE INDEX IF NOT EXISTS idx_resource_assignments_resource
    ON resource_assignments (resource_kind, resource_id);
CREATE INDEX IF NOT EXISTS idx_resource_assignments_employee_active
    ON resource_assignments (employee_id) WHERE status = 'assigned';
"""


_TABLES = {
    ResourceKind.ASSET: "assets",
    ResourceKind.ACCESSORY: "accessories",
    ResourceKind.SIM_CARD: "sim_cards",
    ResourceKind.SOFTWARE_LICENSE: "software_licenses",
}

# SQL expression matching Resource.natural_key for each kind
_NATURAL_KEYS = {
    ResourceKind.ASSET: "LOWER(TRIM(asset_tag))",
    ResourceKind.ACCESSORY: "LOWER(TRIM(name))",
    ResourceKind.SIM_CARD: "LOWER(TRIM(account_no)) || '|' || LOWER(TRIM(service_no))",
    ResourceKind.SOFTWARE_LICENSE: "LOWER(TRIM(COALESCE(NULLIF(license_key, ''), name)))",
}

_ASSIGNMENT_COLUMNS = """
    id, resource_kind, resource_id, employee_id, status, quantity,
    assigned_at, returned_at, notes, created_at, created_by,
    updated_at, updated_by
"""


async def ensure_schema(pool: asyncpg.Pool) -> None:
    """Create tables and indexes if they do not exist."""
    async with database_transaction(pool) as conn:
        await conn.execute(SCHEMA_SQL)
    logger.info("Database schema ensured")


def _columns(kind: ResourceKind) -> list[str]:
    return [f.name for f in fields(RESOURCE_TYPES[kind])]


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _row_to_resource(kind: ResourceKind, row: asyncpg.Record) -> Resource:
    """Build a resource dataclass from a table row, restoring enum fields."""
    cls = RESOURCE_TYPES[kind]
    values = {}
    for f in fields(cls):
        value = row[f.name]
        if isinstance(f.default, Enum) and value is not None:
            value = type(f.default)(value)
        values[f.name] = value
    return cls(**values)


def _row_to_assignment(row: asyncpg.Record) -> Assignment:
    return Assignment(
        id=row["id"],
        kind=ResourceKind(row["resource_kind"]),
        resource_id=row["resource_id"],
        employee_id=row["employee_id"],
        status=AssignmentStatus(row["status"]),
        quantity=row["quantity"],
        assigned_at=row["assigned_at"],
        returned_at=row["returned_at"],
        notes=NoteLog.parse(row["notes"]),
        created_at=row["created_at"],
        created_by=row["created_by"],
        updated_at=row["updated_at"],
        updated_by=row["updated_by"],
    )


def _row_to_named_entity(row: asyncpg.Record) -> NamedEntity:
    return NamedEntity(
        id=row["id"],
        kind=MasterDataKind(row["kind"]),
        name=row["name"],
        parent_id=row["parent_id"],
        description=row["description"],
        is_active=row["is_active"],
        created_at=row["created_at"],
        created_by=row["created_by"],
    )


def _row_to_employee(row: asyncpg.Record) -> Employee:
    return Employee(
        id=row["id"],
        employee_code=row["employee_code"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        email=row["email"],
        status=ActiveStatus(row["status"]),
    )


class _PostgresRepository:
    """Shared access to the unit of work's transaction connection."""

    def __init__(self, uow: "PostgresUnitOfWork"):
        self.uow = uow

    @property
    def conn(self) -> asyncpg.Connection:
        return self.uow.connection


class PostgresResourceCatalog(_PostgresRepository, IResourceCatalog):
    """PostgreSQL implementation of IResourceCatalog."""

    async def find_by_id(self, kind, resource_id, for_update=False):
        lock = " FOR UPDATE" if for_update else ""
        row = await self.conn.fetchrow(
            f"SELECT * FROM {_TABLES[kind]} WHERE id = $1{lock}",
            resource_id,
        )
        return _row_to_resource(kind, row) if row else None

    async def find_by_natural_key(self, kind, key):
        wanted = normalize_key(key)
        if not wanted:
            return None
        row = await self.conn.fetchrow(
            f"SELECT * FROM {_TABLES[kind]} WHERE {_NATURAL_KEYS[kind]} = $1 LIMIT 1",
            wanted,
        )
        return _row_to_resource(kind, row) if row else None

    async def list_resources(self, kind):
        rows = await self.conn.fetch(f"SELECT * FROM {_TABLES[kind]}")
        return [_row_to_resource(kind, row) for row in rows]

    async def upsert(self, resource):
        await self.upsert_many([resource])
        return resource

    async def upsert_many(self, resources):
        by_kind: dict[ResourceKind, list[Resource]] = {}
        for resource in resources:
            by_kind.setdefault(resource.kind, []).append(resource)

        for kind, batch in by_kind.items():
            columns = _columns(kind)
            placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
            updates = ", ".join(
                f"{c} = EXCLUDED.{c}"
                for c in columns
                if c not in ("id", "created_at", "created_by")
            )
            await self.conn.executemany(
                f"""
                INSERT INTO {_TABLES[kind]} ({", ".join(columns)})
                VALUES ({placeholders})
                ON CONFLICT (id) DO UPDATE SET {updates}
                """,
                [tuple(_to_db(getattr(r, c)) for c in columns) for r in batch],
            )
        return len(resources)


class PostgresMasterDataRepository(_PostgresRepository, IMasterDataRepository):
    """PostgreSQL implementation of IMasterDataRepository."""

    async def list_master_data(self, kind):
        rows = await self.conn.fetch(
            "SELECT * FROM master_data WHERE kind = $1 ORDER BY name",
            kind.value,
        )
        return [_row_to_named_entity(row) for row in rows]

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
        if not entities:
            return 0
        # Parents first so the self-referencing foreign key holds
        ordered = sorted(entities, key=lambda e: e.parent_id is not None)
        await self.conn.executemany(
            """
            INSERT INTO master_data
                (id, kind, name, parent_id, description, is_active, created_at, created_by)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            [
                (
                    e.id,
                    e.kind.value,
                    e.name,
                    e.parent_id,
                    e.description,
                    e.is_active,
                    e.created_at,
                    e.created_by,
                )
                for e in ordered
            ],
        )
        return len(entities)

    async def get_employee(self, employee_id):
        row = await self.conn.fetchrow(
            "SELECT * FROM employees WHERE id = $1",
            employee_id,
        )
        return _row_to_employee(row) if row else None

    async def list_employees(self):
        rows = await self.conn.fetch("SELECT * FROM employees")
        return [_row_to_employee(row) for row in rows]

    async def get_project(self, project_id):
        row = await self.conn.fetchrow(
            "SELECT * FROM projects WHERE id = $1",
            project_id,
        )
        if row is None:
            return None
        return Project(
            id=row["id"],
            code=row["code"],
            name=row["name"],
            status=ActiveStatus(row["status"]),
        )


class PostgresAssignmentRepository(_PostgresRepository, IAssignmentRepository):
    """PostgreSQL implementation of IAssignmentRepository."""

    async def get(self, assignment_id):
        row = await self.conn.fetchrow(
            f"SELECT {_ASSIGNMENT_COLUMNS} FROM resource_assignments WHERE id = $1",
            assignment_id,
        )
        return _row_to_assignment(row) if row else None

    async def list_active(self, kind, resource_id, employee_id=None):
        rows = await self.conn.fetch(
            f"""
            SELECT {_ASSIGNMENT_COLUMNS}
            FROM resource_assignments
            WHERE resource_kind = $1
            AND resource_id = $2
            AND status = 'assigned'
            AND ($3::text IS NULL OR employee_id = $3)
            ORDER BY assigned_at
            """,
            kind.value,
            resource_id,
            employee_id,
        )
        return [_row_to_assignment(row) for row in rows]

    async def list_active_for_kind(self, kind):
        rows = await self.conn.fetch(
            f"""
            SELECT {_ASSIGNMENT_COLUMNS}
            FROM resource_assignments
            WHERE resource_kind = $1 AND status = 'assigned'
            """,
            kind.value,
        )
        return [_row_to_assignment(row) for row in rows]

    async def list_active_for_employee(self, employee_id):
        rows = await self.conn.fetch(
            f"""
            SELECT {_ASSIGNMENT_COLUMNS}
            FROM resource_assignments
            WHERE employee_id = $1 AND status = 'assigned'
            ORDER BY assigned_at
            """,
            employee_id,
        )
        return [_row_to_assignment(row) for row in rows]

    async def history(self, kind, resource_id):
        rows = await self.conn.fetch(
            f"""
            SELECT {_ASSIGNMENT_COLUMNS}
            FROM resource_assignments
            WHERE resource_kind = $1 AND resource_id = $2
            ORDER BY assigned_at DESC, created_at DESC
            """,
            kind.value,
            resource_id,
        )
        return [_row_to_assignment(row) for row in rows]

    async def add(self, assignment):
        await self.add_many([assignment])
        return assignment

    async def add_many(self, assignments):
        if not assignments:
            return 0
        try:
            await self.conn.executemany(
                """
                INSERT INTO resource_assignments (
                    id, resource_kind, resource_id, employee_id, policy, status,
                    quantity, assigned_at, returned_at, notes, created_at,
                    created_by, updated_at, updated_by
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
                """,
                [
                    (
                        a.id,
                        a.kind.value,
                        a.resource_id,
                        a.employee_id,
                        a.kind.policy.value,
                        a.status.value,
                        a.quantity,
                        a.assigned_at,
                        a.returned_at,
                        a.notes.render(),
                        a.created_at,
                        a.created_by,
                        a.updated_at,
                        a.updated_by,
                    )
                    for a in assignments
                ],
            )
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(
                "Resource already has an active assignment.",
                details={"constraint": e.constraint_name},
                cause=e,
            )
        return len(assignments)

    async def update(self, assignment):
        await self.conn.execute(
            """
            UPDATE resource_assignments
            SET status = $2,
                quantity = $3,
                returned_at = $4,
                notes = $5,
                updated_at = $6,
                updated_by = $7
            WHERE id = $1
            """,
            assignment.id,
            assignment.status.value,
            assignment.quantity,
            assignment.returned_at,
            assignment.notes.render(),
            assignment.updated_at,
            assignment.updated_by,
        )
        return assignment


class PostgresUnitOfWork(IUnitOfWork):
    """Unit of work over an asyncpg pool.

    Usage:
        uow = PostgresUnitOfWork(pool)
        async with uow.transaction():
            resource = await uow.catalog.find_by_id(kind, rid, for_update=True)
    """

    def __init__(self, pool: asyncpg.Pool, isolation: str = "read_committed"):
        """Initialize with database connection pool.

        Args:
            pool: asyncpg connection pool
            isolation: Isolation level for every transaction
        """
        self.pool = pool
        self.isolation = isolation
        self.catalog = PostgresResourceCatalog(self)
        self.master_data = PostgresMasterDataRepository(self)
        self.assignments = PostgresAssignmentRepository(self)
        self._conn: Optional[asyncpg.Connection] = None

    @property
    def connection(self) -> asyncpg.Connection:
        if self._conn is None:
            raise TransactionError(
                "Repository used outside of a transaction",
                operation="query",
            )
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._conn is not None:
            yield
            return

        async with database_transaction(self.pool, isolation=self.isolation) as conn:
            self._conn = conn
            try:
                yield
            finally:
                self._conn = None
