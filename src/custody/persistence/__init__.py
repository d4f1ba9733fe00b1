"""Persistence Module.

Defines the unit-of-work port the ledger and the import engine commit
through, with two adapters:
- InMemoryUnitOfWork: dict-backed store with snapshot rollback
- PostgresUnitOfWork: asyncpg-backed store with row locks and a partial
  unique index guarding exclusive assignments
"""

from .unit_of_work import IUnitOfWork

__all__ = ["IUnitOfWork"]
