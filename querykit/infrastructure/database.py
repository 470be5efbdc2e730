"""Database Handles — async engine wrapper and explicit transaction handle.

Invariants:
    - Every SQLAlchemy failure on execute/commit/rollback is logged and mapped to DatabaseError
      (core/errors.py), chained from the original
    - NoResultFound passes through untouched: not-found is a result, not a database failure
    - A Transaction owns exactly one connection; commit() and rollback() always close it
    - Statements run outside a Transaction execute in their own autocommit block

Design Decisions:
    - Database / Transaction expose the same builder factories so the Querier can pick
      either without branching at call sites
    - Connection pool uses pool_pre_ping for stale connection detection (ADR: long-lived workers)
    - Singleton database initialized on startup via init_db (ADR: no global import side effects)
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, NoResultFound, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.sql import ClauseElement

from querykit.core.domain_types import DEFAULT_SOFT_DELETE_COL
from querykit.core.errors import DatabaseError, ErrorContext
from querykit.infrastructure.observability import TxLogger
from querykit.infrastructure.query_builder import (
    DeleteQuery, InsertQuery, SelectQuery, UpdateQuery,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def translate_errors(
    operation: str, tx_id: str | None = None,
) -> AsyncGenerator[None, None]:
    """Map SQLAlchemy exceptions raised inside the block to DatabaseError."""
    ctx = ErrorContext(tx_id=tx_id)
    extra = {"operation": operation, "tx_id": tx_id}
    try:
        yield
    except NoResultFound:
        raise
    except IntegrityError as e:
        logger.error(f"DB integrity error: {e}", extra=extra)
        raise DatabaseError("Integrity constraint violated", operation, ctx) from e
    except OperationalError as e:
        logger.error(f"DB operational error: {e}", extra=extra)
        raise DatabaseError("Connection or operational error", operation, ctx) from e
    except DBAPIError as e:
        logger.error(f"DB driver error: {e}", extra=extra)
        raise DatabaseError("Database driver error", operation, ctx) from e
    except SQLAlchemyError as e:
        logger.error(f"SQLAlchemy error: {e}", extra=extra)
        raise DatabaseError("Database operation failed", operation, ctx) from e


class _BuilderFactory:
    """Builder factories shared by Database and Transaction."""

    soft_delete_column: str = DEFAULT_SOFT_DELETE_COL

    def new_select(self) -> SelectQuery:
        return SelectQuery(self, soft_delete_column=self.soft_delete_column)

    def new_insert(self) -> InsertQuery:
        return InsertQuery(self)

    def new_update(self) -> UpdateQuery:
        return UpdateQuery(self)

    def new_delete(self) -> DeleteQuery:
        return DeleteQuery(self)


class Transaction(_BuilderFactory):
    """One open transaction on one connection."""

    def __init__(
        self, conn: AsyncConnection,
        soft_delete_column: str = DEFAULT_SOFT_DELETE_COL,
    ):
        self._conn = conn
        self.soft_delete_column = soft_delete_column
        self.id = uuid.uuid4().hex[:12]
        self.log = TxLogger(logger, self.id)

    @property
    def connection(self) -> AsyncConnection:
        return self._conn

    async def fetch_all(self, statement: ClauseElement) -> list[dict]:
        async with translate_errors("query", self.id):
            result = await self._conn.execute(statement)
            return [dict(row) for row in result.mappings().all()]

    async def fetch_one(self, statement: ClauseElement) -> dict:
        async with translate_errors("query", self.id):
            result = await self._conn.execute(statement)
            return dict(result.mappings().one())

    async def scalar(self, statement: ClauseElement) -> Any:
        async with translate_errors("query", self.id):
            return await self._conn.scalar(statement)

    async def execute(self, statement: ClauseElement) -> int:
        async with translate_errors("execute", self.id):
            result = await self._conn.execute(statement)
            return result.rowcount

    async def commit(self) -> None:
        try:
            async with translate_errors("commit", self.id):
                await self._conn.commit()
        finally:
            await self._conn.close()
        self.log.debug("Transaction committed")

    async def rollback(self) -> None:
        try:
            async with translate_errors("rollback", self.id):
                await self._conn.rollback()
        finally:
            await self._conn.close()
        self.log.debug("Transaction rolled back")


class Database(_BuilderFactory):
    """Engine-level handle: begins transactions and runs standalone statements."""

    def __init__(
        self, engine: AsyncEngine,
        soft_delete_column: str = DEFAULT_SOFT_DELETE_COL,
    ):
        self.engine = engine
        self.soft_delete_column = soft_delete_column

    async def begin_tx(self) -> Transaction:
        async with translate_errors("begin"):
            conn = await self.engine.connect()
            try:
                await conn.begin()
            except BaseException:
                await conn.close()
                raise
        tx = Transaction(conn, self.soft_delete_column)
        tx.log.debug("Transaction started")
        return tx

    async def fetch_all(self, statement: ClauseElement) -> list[dict]:
        async with translate_errors("query"):
            async with self.engine.begin() as conn:
                result = await conn.execute(statement)
                return [dict(row) for row in result.mappings().all()]

    async def fetch_one(self, statement: ClauseElement) -> dict:
        async with translate_errors("query"):
            async with self.engine.begin() as conn:
                result = await conn.execute(statement)
                return dict(result.mappings().one())

    async def scalar(self, statement: ClauseElement) -> Any:
        async with translate_errors("query"):
            async with self.engine.begin() as conn:
                return await conn.scalar(statement)

    async def execute(self, statement: ClauseElement) -> int:
        async with translate_errors("execute"):
            async with self.engine.begin() as conn:
                result = await conn.execute(statement)
                return result.rowcount

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            await self.scalar(text("SELECT 1"))
            return True
        except DatabaseError as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


def create_database(
    database_url: str,
    pool_size: int = 20,
    max_overflow: int = 10,
    echo: bool = False,
    soft_delete_column: str = DEFAULT_SOFT_DELETE_COL,
) -> Database:
    """Build a Database over a pooled async engine."""
    kwargs: dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    # SQLite engines use a static/null pool that rejects sizing arguments
    if not database_url.startswith("sqlite"):
        kwargs.update(
            pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
        )
    engine = create_async_engine(database_url, **kwargs)
    return Database(engine, soft_delete_column=soft_delete_column)


# Singleton (initialized on startup)
database: Database | None = None


def init_db(database_url: str, **kwargs) -> Database:
    global database
    database = create_database(database_url, **kwargs)
    return database


def get_database() -> Database:
    if not database:
        raise RuntimeError("Database not initialized")
    return database
