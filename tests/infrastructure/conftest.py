"""Infrastructure test fixtures — file-backed SQLite database + recording doubles.

Invariants:
    - Every test gets a fresh SQLite file under tmp_path with all test tables created
    - RecordingDatabase / RecordingTransaction log begin/commit/rollback into a shared list
    - Failure switches raise DatabaseError after the real operation so connections still close

Design Decisions:
    - File database over :memory: so a transaction and standalone statements use separate
      connections that see each other only after commit
"""

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from querykit.core.errors import DatabaseError
from querykit.db.base import Base
from querykit.infrastructure.database import Database, Transaction
import tests.models  # noqa: F401  registers test tables on Base.metadata


@pytest.fixture
async def test_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'querykit.db'}", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(test_engine) -> Database:
    return Database(test_engine)


class RecordingTransaction(Transaction):
    def __init__(self, conn, calls: list, fail_commit=False, fail_rollback=False):
        super().__init__(conn)
        self.calls = calls
        self.fail_commit = fail_commit
        self.fail_rollback = fail_rollback

    async def commit(self) -> None:
        self.calls.append("commit")
        if self.fail_commit:
            await super().rollback()
            raise DatabaseError("commit refused", "commit")
        await super().commit()

    async def rollback(self) -> None:
        self.calls.append("rollback")
        await super().rollback()
        if self.fail_rollback:
            raise DatabaseError("rollback refused", "rollback")


class RecordingDatabase(Database):
    def __init__(self, engine, fail_begin=False, fail_commit=False, fail_rollback=False):
        super().__init__(engine)
        self.calls: list[str] = []
        self.fail_begin = fail_begin
        self.fail_commit = fail_commit
        self.fail_rollback = fail_rollback
        self.transactions: list[RecordingTransaction] = []

    async def begin_tx(self) -> Transaction:
        self.calls.append("begin")
        if self.fail_begin:
            raise DatabaseError("begin refused", "begin")
        conn = await self.engine.connect()
        await conn.begin()
        tx = RecordingTransaction(
            conn, self.calls,
            fail_commit=self.fail_commit, fail_rollback=self.fail_rollback,
        )
        self.transactions.append(tx)
        return tx


@pytest.fixture
def recording_db(test_engine):
    def _make(**kwargs) -> RecordingDatabase:
        return RecordingDatabase(test_engine, **kwargs)
    return _make
