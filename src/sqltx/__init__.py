from importlib.metadata import version

from .base.executor import Commander
from .base.interface import IsolationLevel, Result, TxOptions
from .builder import CaseSum, Delete, Expr, Insert, Select, Update, Upsert
from .convert import AT_P, COLON, DOLLAR, FORMAT, QUESTION
from .logger import CallbackLogger, LoggingQueryLogger
from .mapper import column, embedded, insert_struct, update_struct
from .rows import Row, Rows
from .sql.postgres.interface import PostgresPool
from .sql.sqlite.interface import SQLitePool
from .transaction import Transaction, Transactor

__version__ = version("sqltx")

__all__ = (
    "column",
    "embedded",
    "insert_struct",
    "update_struct",
    "CallbackLogger",
    "CaseSum",
    "Commander",
    "Delete",
    "Expr",
    "Insert",
    "IsolationLevel",
    "LoggingQueryLogger",
    "PostgresPool",
    "Result",
    "Row",
    "Rows",
    "Select",
    "SQLitePool",
    "Transaction",
    "Transactor",
    "TxOptions",
    "Update",
    "Upsert",
    "AT_P",
    "COLON",
    "DOLLAR",
    "FORMAT",
    "QUESTION",
)
