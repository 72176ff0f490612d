from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class QueryLogger(Protocol):
    def log_query(self, statement: str, params: Sequence[Any]) -> None: ...


class CallbackLogger:
    """Formats each statement and its parameters as separate lines and
    passes them to a callback.

    Example:

    ```python
    transactor = Transactor(pool, query_logger=CallbackLogger(print))
    ```
    """

    def __init__(self, callback: Callable[[str], Any]) -> None:
        self.callback = callback

    def log_query(self, statement: str, params: Sequence[Any]) -> None:
        self.callback(f"QUERY {statement}")
        for index, param in enumerate(params, start=1):
            if (
                isinstance(param, (bytes, bytearray))
                and len(param) > 1
                and param[:1] == b"{"
                and param[-1:] == b"}"
            ):
                # JSON payloads are more useful as text
                self.callback(f"  ${index} {param.decode(errors='replace')}")
                continue
            self.callback(f"  ${index} {param!r}")


class LoggingQueryLogger(CallbackLogger):
    """Sends statements to the `sqltx.query` logger"""

    def __init__(
        self,
        target: Optional[logging.Logger] = None,
        level: int = logging.DEBUG,
    ) -> None:
        self.target = target or logging.getLogger("sqltx.query")
        self.level = level
        super().__init__(self._emit)

    def _emit(self, line: str) -> None:
        self.target.log(self.level, "%s", line)


def log_query(
    query_logger: Optional[QueryLogger],
    statement: str,
    params: Sequence[Any],
) -> None:
    if query_logger is None:
        return
    try:
        query_logger.log_query(statement, params)
    except Exception:
        logger.exception("Query logger failed for statement: %s", statement)
