from __future__ import annotations

import asyncio
import logging
from inspect import isawaitable
from typing import (
    Awaitable,
    Callable,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)
from uuid import uuid4

from sqltx.base.executor import Commander
from sqltx.base.interface import (
    DEFAULT_TX_OPTIONS,
    Connection,
    PreparedStatement,
    TxOptions,
)
from sqltx.convert import QUESTION, PlaceholderFormat
from sqltx.exception import (
    BeginError,
    CommitError,
    PanicError,
    RollbackError,
)
from sqltx.logger import QueryLogger
from sqltx.sql.executor import DirectExecutor, TxExecutor

from .interfaces import (
    DEFAULT_FAULT_TYPES,
    RetryPolicy,
    default_should_retry,
    is_build_error,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
Callback = Callable[["Transaction"], Union[T, Awaitable[T]]]


class Transaction(Commander):
    """The commands available to a transaction callback, bound to the
    attempt's transaction handle."""

    _raw: TxExecutor

    def __init__(self, raw: TxExecutor, transaction_id: str = "") -> None:
        super().__init__(raw)
        self.transaction_id = transaction_id

    @property
    def options(self) -> TxOptions:
        return self._raw.options

    async def reset(self) -> None:
        """Roll back everything done so far and begin a new transaction
        within the same attempt"""
        logger.debug("Resetting transaction %s", self.transaction_id)
        await self._raw.reset()

    def prepare_raw(self, statement: str) -> PreparedStatement:
        return self._raw.prepare_raw(statement)


def _cancelling() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


class Transactor(Commander):
    """
    Runs callbacks inside transactions, retrying them on transient failures.
    Outside of a transaction it works as a `Commander` on the pooled
    connection.

    Example:

    ```python
    transactor = Transactor(SQLitePool("app.db"))

    async def rename(tx: Transaction) -> bool:
        return await tx.insert_row(
            Update("items").set("name", "new").where({"item_id": 1})
        )

    renamed = await transactor.transact(rename)
    ```
    """

    def __init__(
        self,
        connection: Connection,
        placeholder: PlaceholderFormat = QUESTION,
        *,
        retry_count: int = 5,
        should_retry: Optional[RetryPolicy] = default_should_retry,
        default_options: TxOptions = DEFAULT_TX_OPTIONS,
        fault_types: Tuple[Type[BaseException], ...] = DEFAULT_FAULT_TYPES,
        query_logger: Optional[QueryLogger] = None,
    ) -> None:
        """Initializer for a Transactor

        Args:
            connection (Connection): The pooled connection that transactions
                are begun on
            placeholder (PlaceholderFormat, optional): Rewrites `?`
                placeholders of builder statements into the driver syntax.
                Defaults to `QUESTION`.
            retry_count (int, optional): Number of attempts made for a
                transaction, and for a select outside of one. Defaults to `5`.
            should_retry (RetryPolicy, optional): Decides whether an error
                raised by a callback justifies running it again.
                Defaults to `default_should_retry`.
            default_options (TxOptions, optional): Used when `transact` is
                called without options. Defaults to serializable, read-write.
            fault_types (Tuple[Type[BaseException], ...], optional):
                Exceptions converted into a `PanicError` when raised by a
                callback.
            query_logger (QueryLogger, optional): Receives each statement
                before it runs. Defaults to `None`.

        Raises:
            ValueError: If `retry_count` is less than 1
        """
        if retry_count < 1:
            raise ValueError("retry_count: must be at least 1")
        self.connection = connection
        self.placeholder = placeholder
        self.retry_count = retry_count
        self.should_retry = should_retry
        self.default_options = default_options
        self.fault_types = fault_types
        self.query_logger = query_logger
        super().__init__(
            DirectExecutor(
                connection,
                placeholder=placeholder,
                retry_count=retry_count,
                query_logger=query_logger,
            )
        )

    async def transact(
        self,
        callback: Callback[T],
        options: Optional[TxOptions] = None,
    ) -> T:
        """Call `callback` within a transaction and return its result.

        The transaction is committed when the callback returns and rolled
        back when it raises. Failures to begin are retried, and so are failed
        commits and callback errors accepted by `should_retry` when the
        options are retryable, up to `retry_count` attempts in total.

        Raises:
            PanicError: The callback raised one of the fault types
            RollbackError: A rollback failed; no further attempt is made
            BeginError: Every attempt failed to begin
            CommitError: The last attempt failed to commit
        """
        opts = options or self.default_options
        transaction_id = f"txn_{uuid4().hex[:8]}"
        exit_error: Optional[BaseException] = None

        for attempt in range(1, self.retry_count + 1):
            if _cancelling():
                raise asyncio.CancelledError()

            executor = TxExecutor(
                self.connection,
                opts,
                placeholder=self.placeholder,
                retry_count=self.retry_count,
                query_logger=self.query_logger,
            )

            logger.debug(
                "Beginning transaction %s (%d/%d)",
                transaction_id,
                attempt,
                self.retry_count,
            )
            try:
                await executor.begin()
            except Exception as e:
                logger.warning(
                    "Transaction %s failed to begin (%d/%d): %s",
                    transaction_id,
                    attempt,
                    self.retry_count,
                    e,
                )
                exit_error = BeginError(
                    f"beginning transaction: "
                    f"({attempt}/{self.retry_count}) {e}"
                )
                exit_error.__cause__ = e
                continue

            transaction = Transaction(executor, transaction_id)
            try:
                result = await self._run_callback(callback, transaction)
                if _cancelling():
                    raise asyncio.CancelledError()
            except BaseException as e:
                await self._rollback(executor, transaction_id, e)
                if isinstance(e, (PanicError, asyncio.CancelledError)):
                    raise
                if not isinstance(e, Exception):
                    raise
                if (
                    opts.retryable
                    and not is_build_error(e)
                    and self.should_retry is not None
                    and self.should_retry(e)
                ):
                    logger.warning(
                        "Retrying transaction %s (%d/%d): %s",
                        transaction_id,
                        attempt,
                        self.retry_count,
                        e,
                    )
                    exit_error = e
                    continue
                raise

            try:
                await executor.commit()
            except Exception as e:
                exit_error = CommitError(
                    f"committing transaction: "
                    f"({attempt}/{self.retry_count}) {e}"
                )
                exit_error.__cause__ = e
                if not opts.retryable:
                    raise exit_error
                logger.warning(
                    "Transaction %s failed to commit (%d/%d): %s",
                    transaction_id,
                    attempt,
                    self.retry_count,
                    e,
                )
                continue

            logger.debug(
                "Transaction %s committed on attempt %d",
                transaction_id,
                attempt,
            )
            return result

        assert exit_error is not None
        raise exit_error

    async def _run_callback(
        self, callback: Callback[T], transaction: Transaction
    ) -> T:
        try:
            result = callback(transaction)
            if isawaitable(result):
                result = await result
            return result
        except self.fault_types as e:
            logger.critical(
                "Recovering transaction %s panic: %s",
                transaction.transaction_id,
                e,
                exc_info=True,
            )
            raise PanicError(f"panic: {e}") from e

    async def _rollback(
        self,
        executor: TxExecutor,
        transaction_id: str,
        error: BaseException,
    ) -> None:
        if not executor.active:
            return
        logger.debug(
            "Rolling back transaction %s: %r", transaction_id, error
        )
        try:
            await executor.rollback()
        except Exception as e:
            logger.error(
                "Rollback failed for transaction %s: %s", transaction_id, e
            )
            raise RollbackError(
                f"rolling back transaction: {e}", original=error
            ) from e
