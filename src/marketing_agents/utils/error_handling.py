"""Best-effort wrappers for board side effects that must not abort a task."""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

MAX_LOGGED_ERROR_CHARS = 500


def log_and_ignore(
    error: Exception,
    message: str,
    *,
    logger_instance: Optional[logging.Logger] = None,
    level: int = logging.WARNING,
) -> None:
    """Log ``error`` under ``message`` and carry on.

    Only the first MAX_LOGGED_ERROR_CHARS characters of the error are kept;
    upstream errors can embed whole response bodies.
    """
    (logger_instance or logger).log(level, f"{message}: {str(error)[:MAX_LOGGED_ERROR_CHARS]}")


class ErrorContext:
    """Wraps one side effect (a comment, a checklist, a card move).

    With ``raise_on_error=False`` a failing block is logged and swallowed, and
    ``failed``/``get_result`` tell the caller what happened::

        with ErrorContext("posting failure comment", raise_on_error=False) as ctx:
            await board.add_comment(card_id, text)
        if ctx.failed:
            ...

    ``CancelledError`` and other non-``Exception`` errors always propagate.
    """

    def __init__(
        self,
        operation: str,
        *,
        raise_on_error: bool = True,
        default_value: Any = None,
        logger_instance: Optional[logging.Logger] = None,
        log_level: int = logging.ERROR,
    ):
        self.operation = operation
        self.raise_on_error = raise_on_error
        self.default_value = default_value
        self.logger = logger_instance or logger
        self.log_level = log_level
        self.error: Optional[Exception] = None

    def __enter__(self) -> "ErrorContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None or not issubclass(exc_type, Exception):
            return False

        self.error = exc_val
        log_and_ignore(
            exc_val,
            f"Error during {self.operation}",
            logger_instance=self.logger,
            level=self.log_level,
        )
        return not self.raise_on_error

    @property
    def failed(self) -> bool:
        return self.error is not None

    def get_result(self, result: Any = None) -> Any:
        return self.default_value if self.failed else result
