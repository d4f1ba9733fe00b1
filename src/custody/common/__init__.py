"""Shared infrastructure: exception hierarchy and database helpers."""

from .exceptions import (
    ConfigurationError,
    ConflictError,
    ConnectionPoolError,
    CustodyError,
    IntegrityError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    TransactionError,
    ValidationError,
)

__all__ = [
    "CustodyError",
    "ConfigurationError",
    "NotFoundError",
    "InvalidStateError",
    "ConflictError",
    "ValidationError",
    "PersistenceError",
    "ConnectionPoolError",
    "TransactionError",
    "IntegrityError",
]
