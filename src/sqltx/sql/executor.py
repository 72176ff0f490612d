from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from sqltx.base.interface import (
    Connection,
    PreparedStatement,
    Queryer,
    Result,
    TxHandle,
    TxOptions,
)
from sqltx.convert import QUESTION, PlaceholderFormat
from sqltx.exception import NoRows, StatementError, TransactionError
from sqltx.logger import QueryLogger, log_query
from sqltx.rows import Rows

logger = logging.getLogger(__name__)


class RawExecutor(ABC):
    """Runs statements, already in the driver's placeholder syntax, against
    a connection or an open transaction."""

    is_transaction: bool = False

    def __init__(
        self,
        placeholder: PlaceholderFormat = QUESTION,
        retry_count: int = 5,
        query_logger: Optional[QueryLogger] = None,
    ) -> None:
        self.placeholder = placeholder
        self.retry_count = retry_count
        self.query_logger = query_logger

    @property
    @abstractmethod
    def target(self) -> Queryer: ...

    async def query_raw(self, statement: str, *params: Any) -> Rows:
        """Run a query once, returning the rows. No retries are attempted,
        use `select_raw` for automatic retries."""
        values = list(params)
        log_query(self.query_logger, statement, values)
        try:
            cursor = await self.target.query(statement, values)
        except NoRows:
            raise
        except Exception as e:
            raise StatementError(e, statement) from e
        return Rows(cursor)

    async def exec_raw(self, statement: str, *params: Any) -> Result:
        """Run a statement once with the driver. No retries are attempted."""
        values = list(params)
        log_query(self.query_logger, statement, values)
        try:
            return await self.target.exec(statement, values)
        except Exception as e:
            raise StatementError(e, statement) from e

    @abstractmethod
    async def select_raw(self, statement: str, *params: Any) -> Rows: ...


class DirectExecutor(RawExecutor):
    """Runs statements on pooled connections, outside of any transaction"""

    def __init__(self, connection: Connection, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.connection = connection

    @property
    def target(self) -> Queryer:
        return self.connection

    async def select_raw(self, statement: str, *params: Any) -> Rows:
        """Run a query, retrying failures up to `retry_count` times. Do not
        use this for statements which modify data.

        When every attempt fails, the error of the first attempt is raised.
        """
        first_error: Optional[StatementError] = None
        for attempt in range(1, self.retry_count + 1):
            try:
                return await self.query_raw(statement, *params)
            except StatementError as e:
                if first_error is None:
                    first_error = e
                logger.warning(
                    "Select failed (%d/%d): %s",
                    attempt,
                    self.retry_count,
                    e,
                )
        assert first_error is not None
        raise first_error


class TxExecutor(RawExecutor):
    """Runs statements inside one transaction attempt"""

    is_transaction = True

    def __init__(
        self,
        connection: Connection,
        options: TxOptions,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.connection = connection
        self.options = options
        self._handle: Optional[TxHandle] = None

    @property
    def handle(self) -> TxHandle:
        if self._handle is None:
            raise TransactionError("Transaction not begun")
        return self._handle

    @property
    def target(self) -> Queryer:
        return self.handle

    @property
    def active(self) -> bool:
        return self._handle is not None

    async def begin(self) -> None:
        self._handle = await self.connection.begin(self.options)

    async def commit(self) -> None:
        handle, self._handle = self.handle, None
        await handle.commit()

    async def rollback(self) -> None:
        handle, self._handle = self.handle, None
        await handle.rollback()

    async def reset(self) -> None:
        """Roll back and begin again within the same attempt"""
        await self.rollback()
        await self.begin()

    def prepare_raw(self, statement: str) -> PreparedStatement:
        return self.handle.prepare(statement)

    async def select_raw(self, statement: str, *params: Any) -> Rows:
        # The transaction has moved on once a statement fails, so a read is
        # never repeated here.
        return await self.query_raw(statement, *params)
