from __future__ import annotations

import logging
from inspect import isawaitable
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    List,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

from sqltx.base.interface import DriverCursor, column_names
from sqltx.exception import (
    CursorError,
    MappingError,
    NoRows,
    PriorStatementError,
    RowsClosed,
    SqltxError,
)
from sqltx.mapper import assign, bind_columns, scan_into

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Rows:
    """A live result set.

    The driver cursor is released exactly once: when the rows are exhausted,
    when fetching fails, or when `close` is called, whichever happens first.
    Rows belong to the code path that created them and must not outlive the
    transaction attempt they were queried in.
    """

    def __init__(self, cursor: DriverCursor) -> None:
        self._cursor = cursor
        self._current: Optional[Tuple[Any, ...]] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def columns(self) -> List[str]:
        if self._closed:
            raise RowsClosed("columns called on closed rows")
        return column_names(self._cursor.description)

    async def next(self) -> bool:
        """Advance to the next row. Returns `False`, and releases the
        cursor, once there are no more rows."""
        if self._closed:
            return False
        try:
            row = await self._cursor.fetchone()
        except BaseException as e:
            self._current = None
            await self._close_after_error()
            if isinstance(e, Exception):
                raise CursorError(f"error advancing rows: {e}") from e
            raise
        if row is None:
            self._current = None
            await self.close()
            return False
        self._current = tuple(row)
        return True

    def scan(self) -> Tuple[Any, ...]:
        """The values of the current row"""
        if self._current is None:
            if self._closed:
                raise RowsClosed("scan called on closed rows")
            raise SqltxError("scan called before next")
        return self._current

    def scan_into(self, record: T) -> T:
        """Copy the current row into the record. Every column must have a
        matching field."""
        return scan_into(self, record)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._cursor.close()

    async def _close_after_error(self) -> None:
        try:
            await self.close()
        except Exception:
            logger.warning("Error closing rows after failure", exc_info=True)

    async def for_each(
        self, fn: Callable[[Rows], Union[None, Awaitable[None]]]
    ) -> None:
        """Call `fn` once per row. The rows are closed when iteration
        finishes or `fn` raises."""
        try:
            while await self.next():
                result = fn(self)
                if isawaitable(result):
                    await result
        except BaseException:
            await self._close_after_error()
            raise
        await self.close()

    async def fetch_all(self) -> List[Tuple[Any, ...]]:
        return [values async for values in self]

    async def __aiter__(self) -> AsyncIterator[Tuple[Any, ...]]:
        try:
            while await self.next():
                yield self.scan()
        finally:
            await self.close()

    async def __aenter__(self) -> Rows:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class Row:
    """The result of a single row query.

    Carries either the error of the statement that produced it or the live
    rows. Scanning reads at most one row and always releases the rows.
    """

    def __init__(
        self,
        rows: Optional[Rows] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        if rows is None and error is None:
            raise ValueError("Row requires either rows or an error")
        self.rows = rows
        self.error = error

    @classmethod
    async def capture(cls, pending: Awaitable[Rows]) -> Row:
        """Await a query, keeping any failure for the first scan"""
        try:
            return cls(rows=await pending)
        except Exception as e:
            return cls(error=e)

    def _check(self, action: str) -> Rows:
        if self.error is not None:
            raise PriorStatementError(
                f"existing row error in {action}: {self.error}"
            ) from self.error
        assert self.rows is not None
        return self.rows

    def columns(self) -> List[str]:
        return self._check("columns").columns()

    async def scan(self) -> Tuple[Any, ...]:
        """The values of the single row.

        Raises:
            NoRows: The query produced no row
            RowsClosed: The row has already been scanned
        """
        rows = self._check("scan")
        if rows.closed:
            raise RowsClosed("row has already been scanned")
        try:
            if not await rows.next():
                raise NoRows("no rows in result set")
            values = rows.scan()
        except BaseException:
            await rows._close_after_error()
            raise
        await rows.close()
        return values

    async def scan_into(self, record: T) -> T:
        rows = self._check("scan")
        if rows.closed:
            raise RowsClosed("row has already been scanned")
        try:
            refs = bind_columns(record, rows.columns())
        except MappingError:
            await rows._close_after_error()
            raise
        assign(refs, await self.scan())
        return record
