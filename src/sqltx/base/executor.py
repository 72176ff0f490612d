from __future__ import annotations

from typing import Any, List, Tuple

from sqltx.base.interface import Result
from sqltx.builder import Sqlizer
from sqltx.exception import BuildError, SchemaMismatch, SqltxError
from sqltx.mapper import insert_struct
from sqltx.rows import Row, Rows
from sqltx.sql.executor import RawExecutor


class Commander:
    """
    Runs builder statements and raw SQL. This is what a transaction callback
    receives, and what a `Transactor` offers outside of a transaction.

    Builder statements are written with `?` placeholders which are rewritten
    into the driver's syntax. Raw statements are passed to the driver as
    they are.
    """

    def __init__(self, raw: RawExecutor) -> None:
        self._raw = raw

    @property
    def in_transaction(self) -> bool:
        return self._raw.is_transaction

    def _statement(self, builder: Sqlizer) -> Tuple[str, List[Any]]:
        try:
            statement, params = builder.to_sql()
        except BuildError:
            raise
        except Exception as e:
            raise BuildError(f"building statement: {e}") from e
        try:
            statement = self._raw.placeholder.replace_placeholders(statement)
        except BuildError:
            raise
        except Exception as e:
            raise BuildError(f"replacing placeholders: {e}") from e
        return statement, list(params)

    async def exec(self, builder: Sqlizer) -> Result:
        statement, params = self._statement(builder)
        return await self._raw.exec_raw(statement, *params)

    async def insert(self, builder: Sqlizer) -> Result:
        return await self.exec(builder)

    async def update(self, builder: Sqlizer) -> Result:
        return await self.exec(builder)

    async def delete(self, builder: Sqlizer) -> Result:
        return await self.exec(builder)

    async def insert_row(self, builder: Sqlizer) -> bool:
        """Like `exec`, but checks the affected row count.

        Returns:
            bool: `True` if one row was affected, `False` for none

        Raises:
            SchemaMismatch: More than one row was affected
        """
        result = await self.exec(builder)
        count = result.rows_affected
        if count < 0:
            raise SqltxError("rows affected is not available for insert_row")
        if count == 0:
            return False
        if count == 1:
            return True
        raise SchemaMismatch(f"{count} rows affected by insert_row")

    async def insert_struct(self, table: str, *records: Any) -> Result:
        return await self.exec(insert_struct(table, *records))

    async def select(self, builder: Sqlizer) -> Rows:
        """Run a query, retrying transient errors outside of transactions.
        Do not modify data in a select."""
        statement, params = self._statement(builder)
        return await self._raw.select_raw(statement, *params)

    async def select_row(self, builder: Sqlizer) -> Row:
        return await Row.capture(self.select(builder))

    async def query(self, builder: Sqlizer) -> Rows:
        """Run a query once. It is never retried, so it is safe for
        `UPDATE ... RETURNING`."""
        statement, params = self._statement(builder)
        return await self._raw.query_raw(statement, *params)

    async def query_row(self, builder: Sqlizer) -> Row:
        return await Row.capture(self.query(builder))

    async def query_raw(self, statement: str, *params: Any) -> Rows:
        return await self._raw.query_raw(statement, *params)

    async def query_row_raw(self, statement: str, *params: Any) -> Row:
        return await Row.capture(self._raw.query_raw(statement, *params))

    async def exec_raw(self, statement: str, *params: Any) -> Result:
        return await self._raw.exec_raw(statement, *params)
