"""Handlers that receive transport errors for diagnostic purposes."""

from __future__ import annotations

import logging
from typing import Any, Callable


class ErrorHandler:
    """Pass transport errors to a function taking ``(ctx, err)``."""

    def __init__(self, func: Callable[[Any, BaseException], None]) -> None:
        self._func = func

    def handle(self, ctx: Any, err: BaseException) -> None:
        """Process a transport error."""
        self._func(ctx, err)


class LogErrorHandler(ErrorHandler):
    """An error handler that logs each error."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger if logger is not None else logging.getLogger("servicekit.transport")

    def handle(self, ctx: Any, err: BaseException) -> None:
        """Log the error, attaching it to the record as ``err``."""
        self.logger.error("err=%s", err, extra={"err": err})