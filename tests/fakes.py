from typing import Any, List, Optional

from sqltx.base.interface import Result, TxOptions


class SerializationFailure(Exception):
    sqlstate = "40001"


class FakeCursor:
    def __init__(
        self,
        rows=(),
        columns=("value",),
        error: Optional[BaseException] = None,
        close_error: Optional[BaseException] = None,
    ):
        self.description = [(name,) for name in columns]
        self._rows = list(rows)
        self._error = error
        self._close_error = close_error
        self.close_calls = 0

    async def fetchone(self):
        if self._rows:
            return self._rows.pop(0)
        if self._error is not None:
            raise self._error
        return None

    async def close(self):
        self.close_calls += 1
        if self._close_error is not None:
            raise self._close_error


class FakeHandle:
    def __init__(self, connection: "FakeConnection") -> None:
        self.connection = connection

    async def query(self, statement, params):
        return await self.connection.query(statement, params, in_tx=True)

    async def exec(self, statement, params):
        return await self.connection.exec(statement, params, in_tx=True)

    async def commit(self):
        self.connection.commits += 1
        if self.connection.commit_errors:
            raise self.connection.commit_errors.pop(0)

    async def rollback(self):
        self.connection.rollbacks += 1
        if self.connection.rollback_errors:
            raise self.connection.rollback_errors.pop(0)

    def prepare(self, statement):
        return statement


class FakeConnection:
    """Records everything sent to it. Queued errors are raised in order,
    a `None` entry lets the call through."""

    def __init__(self) -> None:
        self.statements: List[tuple] = []
        self.options: List[TxOptions] = []
        self.begins = 0
        self.commits = 0
        self.rollbacks = 0
        self.begin_errors: List[Optional[BaseException]] = []
        self.commit_errors: List[BaseException] = []
        self.rollback_errors: List[BaseException] = []
        self.query_errors: List[Optional[BaseException]] = []
        self.cursors: List[FakeCursor] = []
        self.rows_affected = 1

    async def begin(self, options):
        self.begins += 1
        self.options.append(options)
        if self.begin_errors:
            error = self.begin_errors.pop(0)
            if error is not None:
                raise error
        return FakeHandle(self)

    async def query(self, statement, params, in_tx=False):
        self.statements.append(("query", statement, list(params), in_tx))
        if self.query_errors:
            error = self.query_errors.pop(0)
            if error is not None:
                raise error
        if self.cursors:
            return self.cursors.pop(0)
        return FakeCursor()

    async def exec(self, statement, params, in_tx=False):
        self.statements.append(("exec", statement, list(params), in_tx))
        return Result(rows_affected=self.rows_affected)


def statements_of(connection: FakeConnection, kind: Any = None):
    return [
        statement
        for action, statement, _, _ in connection.statements
        if kind is None or action == kind
    ]
