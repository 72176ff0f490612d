from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional, Sequence

from sqltx.base.interface import BaseInterface, Result, TxOptions
from sqltx.exception import SqltxError, TransactionError

try:
    import aiosqlite

    AIOSQLITE_ENABLED = True
except ModuleNotFoundError:
    AIOSQLITE_ENABLED = False

logger = logging.getLogger(__name__)


async def _run(db: Any, statement: str) -> None:
    cursor = await db.execute(statement)
    await cursor.close()


async def _exec(db: Any, statement: str, params: Sequence[Any]) -> Result:
    cursor = await db.execute(statement, list(params))
    try:
        return Result(
            rows_affected=cursor.rowcount, last_insert_id=cursor.lastrowid
        )
    finally:
        await cursor.close()


class SharedCursor:
    """A cursor on the shared in-memory connection, holding the pool's lock
    until it is closed"""

    def __init__(self, cursor: Any, release: Callable[[], None]) -> None:
        self._cursor = cursor
        self._release: Optional[Callable[[], None]] = release

    @property
    def description(self) -> Any:
        return self._cursor.description

    async def fetchone(self) -> Any:
        return await self._cursor.fetchone()

    async def close(self) -> None:
        release, self._release = self._release, None
        try:
            await self._cursor.close()
        finally:
            if release is not None:
                release()


class SQLitePreparedStatement:
    # sqlite3 keeps its own statement cache, preparing is just a binding
    def __init__(self, transaction: SQLiteTransaction, statement: str):
        self.transaction = transaction
        self.statement = statement

    async def query(self, params: Sequence[Any]) -> Any:
        return await self.transaction.query(self.statement, params)

    async def exec(self, params: Sequence[Any]) -> Result:
        return await self.transaction.exec(self.statement, params)


class SQLiteTransaction:
    def __init__(
        self,
        pool: SQLitePool,
        db: Any,
        read_only: bool,
        dedicated: bool,
    ) -> None:
        self._pool = pool
        self._db: Optional[Any] = db
        self._read_only = read_only
        self._dedicated = dedicated

    @property
    def connection(self) -> Any:
        if self._db is None:
            raise TransactionError("Transaction already finalized")
        return self._db

    async def query(self, statement: str, params: Sequence[Any]) -> Any:
        return await self.connection.execute(statement, list(params))

    async def exec(self, statement: str, params: Sequence[Any]) -> Result:
        return await _exec(self.connection, statement, params)

    def prepare(self, statement: str) -> SQLitePreparedStatement:
        return SQLitePreparedStatement(self, statement)

    async def commit(self) -> None:
        await self._finish("COMMIT")

    async def rollback(self) -> None:
        await self._finish("ROLLBACK")

    async def _finish(self, command: str) -> None:
        db, self._db = self.connection, None
        try:
            await _run(db, command)
        finally:
            await self._release(db)

    async def _release(self, db: Any) -> None:
        if self._dedicated:
            # closing the connection discards anything still open
            await db.close()
            return
        try:
            if db.in_transaction:
                await _run(db, "ROLLBACK")
            if self._read_only:
                await _run(db, "PRAGMA query_only = OFF")
        except Exception:
            logger.warning("Error releasing shared connection", exc_info=True)
        finally:
            self._pool._release_shared()


class SQLitePool(BaseInterface):
    """Interface for connecting to a SQLite database.

    Statements outside of a transaction run on one shared connection in
    autocommit mode. Each transaction opens its own connection, except for
    in-memory databases where everything takes turns on the shared one: a
    statement outside of a transaction waits until the open transaction
    finishes, and a transaction waits until open result sets are closed.
    """

    scheme = "sqlite"

    def __init__(self, db_path: str, timeout: float = 5.0):
        """
        Args:
            db_path (str): Path to the database file, or `:memory:`
            timeout (float, optional): Seconds to wait on a locked database.
                Defaults to 5
        """
        if not AIOSQLITE_ENABLED:
            raise SqltxError(
                "SQLite driver not found. Try reinstalling sqltx: "
                "pip install sqltx[sqlite]"
            )
        self._db_path = db_path
        self._timeout = timeout
        self._db: Optional[Any] = None
        self._lock = asyncio.Lock()
        self._holder: Optional[asyncio.Task] = None

    @property
    def dsn(self) -> str:
        return f"{self.scheme}:{self._db_path}"

    @property
    def in_memory(self) -> bool:
        return self._db_path == ":memory:" or "mode=memory" in self._db_path

    async def _connect(self) -> Any:
        return await aiosqlite.connect(
            self._db_path,
            timeout=self._timeout,
            isolation_level=None,
            uri=self._db_path.startswith("file:"),
        )

    async def _shared(self) -> Any:
        if self._db is None:
            await self.open()
        return self._db

    async def _acquire_shared(self) -> None:
        task = asyncio.current_task()
        if task is not None and self._holder is task:
            # waiting here would never end
            raise SqltxError(
                "The in-memory database is already held by this task, "
                "use its open transaction or close its rows first"
            )
        await self._lock.acquire()
        self._holder = task

    def _release_shared(self) -> None:
        self._holder = None
        self._lock.release()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Any]:
        """Obtain the shared connection for one statement outside of a
        transaction"""
        if not self.in_memory:
            yield await self._shared()
            return
        await self._acquire_shared()
        try:
            yield await self._shared()
        finally:
            self._release_shared()

    async def open(self):
        """Open the shared connection"""
        if self._db is None:
            self._db = await self._connect()

    async def close(self):
        """Close the shared connection"""
        if self._db is not None:
            db, self._db = self._db, None
            await db.close()

    async def ping(self) -> None:
        async with self.connection() as db:
            await _run(db, "SELECT 1")

    async def query(self, statement: str, params: Sequence[Any]) -> Any:
        if not self.in_memory:
            db = await self._shared()
            return await db.execute(statement, list(params))

        await self._acquire_shared()
        try:
            db = await self._shared()
            cursor = await db.execute(statement, list(params))
        except BaseException:
            self._release_shared()
            raise
        return SharedCursor(cursor, self._release_shared)

    async def exec(self, statement: str, params: Sequence[Any]) -> Result:
        async with self.connection() as db:
            return await _exec(db, statement, params)

    async def begin(self, options: TxOptions) -> SQLiteTransaction:
        # SQLite transactions are always serializable
        statement = "BEGIN" if options.read_only else "BEGIN IMMEDIATE"
        if self.in_memory:
            return await self._begin_shared(statement, options.read_only)

        db = await self._connect()
        try:
            if options.read_only:
                await _run(db, "PRAGMA query_only = ON")
            await _run(db, statement)
        except BaseException:
            await db.close()
            raise
        return SQLiteTransaction(
            self, db, read_only=options.read_only, dedicated=True
        )

    async def _begin_shared(
        self, statement: str, read_only: bool
    ) -> SQLiteTransaction:
        await self._acquire_shared()
        try:
            db = await self._shared()
            if read_only:
                await _run(db, "PRAGMA query_only = ON")
            try:
                await _run(db, statement)
            except BaseException:
                if read_only:
                    await _run(db, "PRAGMA query_only = OFF")
                raise
        except BaseException:
            self._release_shared()
            raise
        return SQLiteTransaction(
            self, db, read_only=read_only, dedicated=False
        )
