"""Storage adapters implementing the unit-of-work port."""

from .memory import InMemoryStore, InMemoryUnitOfWork
from .postgres import SCHEMA_SQL, PostgresUnitOfWork, ensure_schema

__all__ = [
    "InMemoryStore",
    "InMemoryUnitOfWork",
    "PostgresUnitOfWork",
    "SCHEMA_SQL",
    "ensure_schema",
]
