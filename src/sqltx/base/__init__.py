from .interface import (
    BaseInterface,
    Connection,
    IsolationLevel,
    Result,
    TxHandle,
    TxOptions,
)

__all__ = (
    "BaseInterface",
    "Connection",
    "IsolationLevel",
    "Result",
    "TxHandle",
    "TxOptions",
)
