from __future__ import annotations

import logging
from typing import Any, Optional

from .ports import LoggerPort


class StdlibLogger(LoggerPort):
    """
    LoggerPort backed by the standard `logging` module.

    Fields are appended to the message as ``key=value`` pairs and also passed
    as ``extra={"fields": {...}}`` for handlers that format records themselves.
    Handler configuration is left to the application.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("unitwork")

    def _log(self, level: int, msg: str, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if fields:
            rendered = " ".join(f"{k}={v}" for k, v in fields.items())
            msg = f"{msg} {rendered}"
        self._logger.log(level, msg, extra={"fields": fields})

    def debug(self, msg: str, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, **fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._log(logging.INFO, msg, **fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._log(logging.WARNING, msg, **fields)

    def error(self, msg: str, **fields: Any) -> None:
        self._log(logging.ERROR, msg, **fields)


def get_logger(name: str = "unitwork") -> StdlibLogger:
    return StdlibLogger(logging.getLogger(name))
