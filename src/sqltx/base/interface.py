from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Sequence


class IsolationLevel(Enum):
    """SQL transaction isolation levels"""

    DEFAULT = ""
    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"


@dataclass(frozen=True)
class TxOptions:
    """Options applied when a transaction begins.

    Args:
        isolation (IsolationLevel): Enforced by the database.
            Defaults to `IsolationLevel.SERIALIZABLE`
        read_only (bool): Hint forbidding writes. Defaults to `False`
        retryable (bool): The callback may run more than once. Commit
            failures and callback errors accepted by the retry policy start
            a new attempt. Begin failures are always retried.
            Defaults to `True`
    """

    isolation: IsolationLevel = IsolationLevel.SERIALIZABLE
    read_only: bool = False
    retryable: bool = True


DEFAULT_TX_OPTIONS = TxOptions()


@dataclass(frozen=True)
class Result:
    """Outcome of an exec statement. `rows_affected` is -1 when the driver
    cannot report it."""

    rows_affected: int = -1
    last_insert_id: Optional[int] = None


class DriverCursor(Protocol):
    """The part of a driver cursor that `Rows` relies upon. Satisfied by
    psycopg's `AsyncCursor` and aiosqlite's `Cursor`."""

    @property
    def description(self) -> Any: ...

    async def fetchone(self) -> Any: ...

    async def close(self) -> Any: ...


class PreparedStatement(Protocol):
    statement: str

    async def query(self, params: Sequence[Any]) -> DriverCursor: ...

    async def exec(self, params: Sequence[Any]) -> Result: ...


class Queryer(Protocol):
    async def query(
        self, statement: str, params: Sequence[Any]
    ) -> DriverCursor: ...

    async def exec(self, statement: str, params: Sequence[Any]) -> Result: ...


class TxHandle(Queryer, Protocol):
    """An open transaction. Used by exactly one attempt and then either
    committed or rolled back."""

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    def prepare(self, statement: str) -> PreparedStatement: ...


class Connection(Queryer, Protocol):
    async def begin(self, options: TxOptions) -> TxHandle: ...


class BaseInterface(ABC):
    """Base class for the pooled `Connection` realizations"""

    scheme = "dummy"

    @abstractmethod
    async def open(self): ...

    @abstractmethod
    async def close(self): ...

    @abstractmethod
    async def ping(self) -> None: ...

    @abstractmethod
    async def query(
        self, statement: str, params: Sequence[Any]
    ) -> DriverCursor: ...

    @abstractmethod
    async def exec(self, statement: str, params: Sequence[Any]) -> Result: ...

    @abstractmethod
    async def begin(self, options: TxOptions) -> TxHandle: ...

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    def __str__(self) -> str:
        return f"<{self.__class__.__name__} {self.dsn}>"

    @property
    def dsn(self) -> str:
        return self.scheme


def begin_statement(options: TxOptions) -> str:
    """The BEGIN statement for the given options, in the SQL standard form
    accepted by PostgreSQL"""
    parts = ["BEGIN"]
    if options.isolation is not IsolationLevel.DEFAULT:
        parts.append(f"ISOLATION LEVEL {options.isolation.value}")
    parts.append("READ ONLY" if options.read_only else "READ WRITE")
    return " ".join(parts)


def column_names(description: Any) -> list:
    if not description:
        return []
    return [
        getattr(column, "name", None) or column[0] for column in description
    ]
