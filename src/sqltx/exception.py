from typing import Optional


class SqltxError(Exception):
    """Base exception for all sqltx errors"""


class BuildError(SqltxError):
    """Raised when a builder cannot produce a statement"""


class StatementError(SqltxError):
    """Wraps a driver error together with the statement that caused it"""

    def __init__(self, cause: BaseException, statement: str) -> None:
        self.cause = cause
        self.statement = statement
        super().__init__(f"{cause} `{statement}`")


class CursorError(SqltxError):
    """Raised when the driver fails while advancing a cursor"""


class NoRows(SqltxError):
    """A single row was requested but the query produced none"""


class RowsClosed(SqltxError):
    """The cursor has already been released"""


class PriorStatementError(SqltxError):
    """A row was scanned after its statement had already failed"""


class RetryableConflict(SqltxError):
    """Raise from a transaction callback to request a retry"""


class ConfigError(SqltxError):
    pass


class MappingError(SqltxError):
    """Raised when a record cannot be mapped to columns"""


class SchemaMismatch(MappingError):
    pass


class UnmappedColumn(MappingError):
    def __init__(self, column: str) -> None:
        self.column = column
        super().__init__(f"No matching record field for column {column}")


class TransactionError(SqltxError):
    """Base exception for transaction errors"""


class BeginError(TransactionError):
    pass


class CommitError(TransactionError):
    pass


class RollbackError(TransactionError):
    """Raised when a rollback fails. The state of the transaction can no
    longer be trusted, so no further attempts are made."""

    def __init__(
        self, message: str, original: Optional[BaseException] = None
    ) -> None:
        self.original = original
        super().__init__(message)


class PanicError(TransactionError):
    """A fault raised inside a transaction callback. Never retried."""
