from __future__ import annotations

from typing import Any, Optional, Sequence

from sqltx.base.interface import (
    BaseInterface,
    Result,
    TxOptions,
    begin_statement,
)
from sqltx.exception import SqltxError, TransactionError

try:
    from psycopg_pool import AsyncConnectionPool

    POSTGRES_ENABLED = True
except ModuleNotFoundError:
    POSTGRES_ENABLED = False


class PooledCursor:
    """A cursor that returns its connection to the pool when closed"""

    def __init__(self, cursor: Any, pool: Any, conn: Any) -> None:
        self._cursor = cursor
        self._pool = pool
        self._conn = conn

    @property
    def description(self) -> Any:
        return self._cursor.description

    async def fetchone(self) -> Any:
        return await self._cursor.fetchone()

    async def close(self) -> None:
        try:
            await self._cursor.close()
        finally:
            await self._pool.putconn(self._conn)


class PostgresPreparedStatement:
    def __init__(self, transaction: PostgresTransaction, statement: str):
        self.transaction = transaction
        self.statement = statement

    async def query(self, params: Sequence[Any]) -> Any:
        return await self.transaction.connection.execute(
            self.statement, list(params), prepare=True
        )

    async def exec(self, params: Sequence[Any]) -> Result:
        cursor = await self.transaction.connection.execute(
            self.statement, list(params), prepare=True
        )
        return Result(rows_affected=cursor.rowcount)


class PostgresTransaction:
    """A transaction holding one pooled connection until it is committed or
    rolled back"""

    def __init__(self, pool: Any, conn: Any) -> None:
        self._pool = pool
        self._conn: Optional[Any] = conn

    @property
    def connection(self) -> Any:
        if self._conn is None:
            raise TransactionError("Transaction already finalized")
        return self._conn

    async def query(self, statement: str, params: Sequence[Any]) -> Any:
        return await self.connection.execute(statement, list(params))

    async def exec(self, statement: str, params: Sequence[Any]) -> Result:
        cursor = await self.connection.execute(statement, list(params))
        return Result(rows_affected=cursor.rowcount)

    def prepare(self, statement: str) -> PostgresPreparedStatement:
        return PostgresPreparedStatement(self, statement)

    async def commit(self) -> None:
        await self._finish("COMMIT")

    async def rollback(self) -> None:
        await self._finish("ROLLBACK")

    async def _finish(self, command: str) -> None:
        conn, self._conn = self.connection, None
        try:
            await conn.execute(command)
        finally:
            # the pool rolls back anything left open before reusing it
            await self._pool.putconn(conn)


class PostgresPool(BaseInterface):
    """Interface for connecting to a Postgres database.

    Connections are in autocommit mode; transactions are opened explicitly
    with `BEGIN` and hold their connection until they finish. Statements use
    the `%s` placeholder style, pair it with the `FORMAT` placeholder.
    """

    scheme = "postgres"

    def __init__(
        self,
        dsn: str,
        min_size: int = 1,
        max_size: Optional[int] = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Args:
            dsn (str): DB data source name
            min_size (int, optional): Minimum number of connections in pool.
                Defaults to 1
            max_size (int, optional): Maximum number of connections in pool.
                Defaults to `min_size`
            timeout (float, optional): Seconds to wait for a connection from
                the pool. Defaults to 30
        """
        if not POSTGRES_ENABLED:
            raise SqltxError(
                "Postgres driver not found. Try reinstalling sqltx: "
                "pip install sqltx[postgres]"
            )
        self._dsn = dsn
        self._timeout = timeout
        self._pool = AsyncConnectionPool(
            dsn,
            min_size=min_size,
            max_size=max_size,
            kwargs={"autocommit": True},
            open=False,
        )

    @property
    def dsn(self) -> str:
        return self._dsn.split("@")[-1]

    async def open(self):
        """Open connections to the pool"""
        await self._pool.open()

    async def close(self):
        """Close connections to the pool"""
        await self._pool.close()

    async def ping(self) -> None:
        async with self._pool.connection(timeout=self._timeout) as conn:
            await conn.execute("SELECT 1")

    async def query(self, statement: str, params: Sequence[Any]) -> Any:
        conn = await self._pool.getconn(timeout=self._timeout)
        try:
            cursor = await conn.execute(statement, list(params))
        except BaseException:
            await self._pool.putconn(conn)
            raise
        return PooledCursor(cursor, self._pool, conn)

    async def exec(self, statement: str, params: Sequence[Any]) -> Result:
        async with self._pool.connection(timeout=self._timeout) as conn:
            cursor = await conn.execute(statement, list(params))
            return Result(rows_affected=cursor.rowcount)

    async def begin(self, options: TxOptions) -> PostgresTransaction:
        conn = await self._pool.getconn(timeout=self._timeout)
        try:
            await conn.execute(begin_statement(options))
        except BaseException:
            await self._pool.putconn(conn)
            raise
        return PostgresTransaction(self._pool, conn)
