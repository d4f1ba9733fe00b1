#!/usr/bin/env python3
"""Exception Hierarchy for Resource Custody.

This module provides a structured exception hierarchy for the assignment
ledger, the bulk import engine and the storage adapters.

Design Principles:
    - All exceptions inherit from CustodyError base class
    - Exceptions preserve context (original error, timestamps, details)
    - Each exception carries a machine-readable code callers can render

Exception Hierarchy:
    CustodyError (base)
    ├── ConfigurationError (unrecoverable - fix config)
    ├── NotFoundError (referenced entity absent)
    ├── InvalidStateError (entity not in a state that permits the operation)
    ├── ConflictError (exclusivity / seat / duplicate violation)
    ├── ValidationError (caller-supplied value out of contract)
    └── PersistenceError (store-level failure)
        ├── ConnectionPoolError
        ├── TransactionError
        └── IntegrityError
"""
from datetime import datetime, timezone
from typing import Any, Optional

# ============================================
# Base Exception
# ============================================

class CustodyError(Exception):
    """Base exception for all custody errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "NOT_FOUND")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause

        # Chain the original exception if provided
        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.insert(0, f"[{self.code}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Configuration Errors (Unrecoverable)
# ============================================

class ConfigurationError(CustodyError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details=details,
            **kwargs,
        )


# ============================================
# Domain Errors
# ============================================

class NotFoundError(CustodyError):
    """Raised when a referenced entity does not exist."""

    def __init__(
        self,
        entity: str,
        entity_id: Optional[str] = None,
        message: Optional[str] = None,
        **kwargs,
    ):
        if message is None:
            message = f"{entity} not found"
            if entity_id:
                message = f"{entity} with ID '{entity_id}' was not found."

        details = kwargs.pop("details", {})
        details["entity"] = entity
        if entity_id:
            details["entity_id"] = entity_id

        super().__init__(
            message,
            code="NOT_FOUND",
            details=details,
            **kwargs,
        )
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateError(CustodyError):
    """Raised when an entity is not in a state that permits the operation.

    Attributes:
        current_state: The state the entity was found in, if known
    """

    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if current_state:
            details["current_state"] = current_state
        super().__init__(
            message,
            code="INVALID_STATE",
            details=details,
            **kwargs,
        )
        self.current_state = current_state


class ConflictError(CustodyError):
    """Raised on exclusivity, seat-cap or duplicate violations."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="CONFLICT", **kwargs)


class ValidationError(CustodyError):
    """Raised when a caller-supplied value is out of contract."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details=details,
            **kwargs,
        )
        self.field = field


# ============================================
# Persistence Errors
# ============================================

class PersistenceError(CustodyError):
    """Base class for store-level failures not attributable to one row."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", "PERSISTENCE_FAULT")
        super().__init__(message, **kwargs)


class ConnectionPoolError(PersistenceError):
    """Raised when database connection pool is exhausted or unavailable."""

    def __init__(
        self,
        message: str = "Database connection pool error",
        **kwargs,
    ):
        super().__init__(message, code="CONNECTION_POOL_ERROR", **kwargs)


class TransactionError(PersistenceError):
    """Raised when database transaction fails."""

    def __init__(
        self,
        message: str = "Database transaction failed",
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        super().__init__(
            message,
            code="TRANSACTION_ERROR",
            details=details,
            **kwargs,
        )


class IntegrityError(PersistenceError):
    """Raised when database integrity constraint is violated."""

    def __init__(
        self,
        message: str = "Database integrity error",
        constraint: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if constraint:
            details["constraint"] = constraint
        super().__init__(
            message,
            code="INTEGRITY_ERROR",
            details=details,
            **kwargs,
        )
        self.constraint = constraint
