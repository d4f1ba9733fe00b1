#!/usr/bin/env python3
"""Database Utilities for Resource Custody.

This module provides database utilities including:
    - Transaction context managers with automatic commit/rollback
    - Connection pool management
    - Conversion of driver errors into the PersistenceError family

Example:
    async with database_transaction(pool) as conn:
        await conn.execute("INSERT INTO assets ...")
        await conn.execute("INSERT INTO resource_assignments ...")
        # Automatic commit on success, rollback on exception
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import asyncpg

from .exceptions import (
    ConnectionPoolError,
    CustodyError,
    IntegrityError,
    PersistenceError,
    TransactionError,
)

logger = logging.getLogger(__name__)


# ============================================
# Transaction Context Managers
# ============================================

@asynccontextmanager
async def database_transaction(
    pool,
    isolation: str = "read_committed",
    acquire_timeout: float = 30.0,
) -> AsyncIterator[Any]:
    """Context manager for database transactions with automatic commit/rollback.

    Acquires a connection from the pool, starts a transaction, and ensures
    proper commit on success or rollback on exception.

    Domain errors (CustodyError subclasses other than PersistenceError) raised
    inside the block roll the transaction back and propagate unchanged; any
    other exception is converted to a PersistenceError subtype.

    Args:
        pool: asyncpg connection pool
        isolation: Transaction isolation level
            ("serializable", "repeatable_read", "read_committed")
        acquire_timeout: Seconds to wait for a pooled connection

    Yields:
        Database connection within transaction

    Raises:
        ConnectionPoolError: If connection cannot be acquired
        TransactionError: If transaction fails
        IntegrityError: If integrity constraint violated
    """
    if pool is None:
        raise ConnectionPoolError("Database connection pool is not initialized")

    conn = None
    try:
        try:
            conn = await asyncio.wait_for(
                pool.acquire(),
                timeout=acquire_timeout,
            )
        except asyncio.TimeoutError:
            raise ConnectionPoolError(
                "Timeout acquiring database connection",
                details={"timeout_seconds": acquire_timeout},
            )
        except Exception as e:
            raise ConnectionPoolError(
                f"Failed to acquire database connection: {e}",
                cause=e,
            )

        transaction = conn.transaction(isolation=isolation)

        try:
            await transaction.start()
        except Exception as e:
            raise TransactionError(
                f"Failed to start transaction: {e}",
                cause=e,
            )

        try:
            yield conn
            await transaction.commit()
            logger.debug("Transaction committed successfully")

        except BaseException as e:
            try:
                await transaction.rollback()
                logger.debug("Transaction rolled back due to exception")
            except Exception as rollback_error:
                logger.error(f"Rollback failed: {rollback_error}")

            if not isinstance(e, Exception):
                # Cancellation and interpreter exits pass through untouched
                raise
            if isinstance(e, CustodyError) and not isinstance(e, PersistenceError):
                raise
            raise _convert_db_exception(e)

    finally:
        if conn:
            await pool.release(conn)


# ============================================
# Error Conversion
# ============================================

_CONSTRAINT_KINDS = (
    (asyncpg.UniqueViolationError, "unique", "Duplicate entry"),
    (asyncpg.ForeignKeyViolationError, "foreign_key", "Foreign key violation"),
    (asyncpg.NotNullViolationError, "not_null", "Not null violation"),
)


def _convert_db_exception(e: Exception) -> PersistenceError:
    """Map an asyncpg (or other) failure onto the PersistenceError family."""
    if isinstance(e, PersistenceError):
        return e

    for error_type, constraint, label in _CONSTRAINT_KINDS:
        if isinstance(e, error_type):
            error = IntegrityError(f"{label}: {e}", constraint=constraint, cause=e)
            if e.constraint_name:
                error.details["constraint_name"] = e.constraint_name
            return error

    if isinstance(e, asyncpg.IntegrityConstraintViolationError):
        return IntegrityError(f"Constraint violation: {e}", cause=e)

    if isinstance(e, asyncpg.DeadlockDetectedError):
        return TransactionError(f"Deadlock detected: {e}", operation="transaction", cause=e)

    if isinstance(e, (asyncpg.QueryCanceledError, asyncio.TimeoutError)):
        return TransactionError(f"Database operation timed out: {e}", operation="query", cause=e)

    return PersistenceError(f"Database operation failed: {e}", cause=e)


# ============================================
# Connection Pool Helpers
# ============================================

async def create_pool(
    database_url: str,
    min_size: int = 2,
    max_size: int = 10,
    command_timeout: float = 60.0,
    **kwargs,
) -> asyncpg.Pool:
    """Open the asyncpg pool shared by every PostgresUnitOfWork.

    Raises:
        ConnectionPoolError: If the database cannot be reached
    """
    try:
        pool = await asyncpg.create_pool(
            database_url,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
            **kwargs,
        )
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError, asyncio.TimeoutError) as e:
        raise ConnectionPoolError(f"Cannot open database pool: {e}", cause=e)

    logger.info(f"Database pool ready ({min_size}-{max_size} connections)")
    return pool


async def close_pool(pool: Optional[asyncpg.Pool], timeout: float = 10.0) -> None:
    """Close the pool, terminating it if connections do not drain in time."""
    if pool is None:
        return

    try:
        await asyncio.wait_for(pool.close(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Pool did not drain within {timeout}s, terminating")
        pool.terminate()
        return
    logger.info("Database pool closed")
