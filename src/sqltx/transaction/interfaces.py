from __future__ import annotations

from typing import Callable, Iterator, Tuple, Type

from sqltx.exception import BuildError, RetryableConflict

RetryPolicy = Callable[[BaseException], bool]

SERIALIZATION_FAILURE = "40001"

DEFAULT_FAULT_TYPES: Tuple[Type[BaseException], ...] = (
    ArithmeticError,
    AssertionError,
    AttributeError,
    LookupError,
    NameError,
    TypeError,
    RecursionError,
)
"""Exceptions treated as faults in the callback rather than as failures
it reports. A fault is never retried."""


def causes(error: BaseException) -> Iterator[BaseException]:
    """The error followed by its explicit causes"""
    seen = set()
    current = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__


def sqlstate(error: BaseException) -> str:
    # psycopg exposes sqlstate, psycopg2 pgcode
    return (
        getattr(error, "sqlstate", None)
        or getattr(error, "pgcode", None)
        or ""
    )


def default_should_retry(error: BaseException) -> bool:
    """Retry serialization failures, and errors raised as
    `RetryableConflict`."""
    for cause in causes(error):
        if isinstance(cause, RetryableConflict):
            return True
        if sqlstate(cause) == SERIALIZATION_FAILURE:
            return True
    return False


def is_build_error(error: BaseException) -> bool:
    return any(isinstance(cause, BuildError) for cause in causes(error))
