"""
Transaction orchestration: begin, run the callback, commit or roll back,
and retry the whole attempt on transient failures.
"""

from .coordinator import Transaction, Transactor
from .interfaces import (
    DEFAULT_FAULT_TYPES,
    SERIALIZATION_FAILURE,
    RetryPolicy,
    default_should_retry,
)

__all__ = [
    "Transaction",
    "Transactor",
    "RetryPolicy",
    "default_should_retry",
    "DEFAULT_FAULT_TYPES",
    "SERIALIZATION_FAILURE",
]
