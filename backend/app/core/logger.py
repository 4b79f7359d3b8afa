"""
Server Logging with Request Tags

This module configures logging for the server process:
- Console output (level from `log.consoleLevel`, INFO by default)
- Rotating file output under `logs/server.log` (DEBUG+)
- A `[REQ:id]` tag on every line emitted while a request is being handled

The request id is the first 8 characters of the request nonce. The nonce and
security header middlewares call `set_request_context(...)`; because the id
lives in a `ContextVar`, concurrent requests never see each other's tag and
lines logged during startup or shutdown carry none.

Usage:
------
    from app.core.logger import setup_logging
    setup_logging(console_level="DEBUG")

Example:
    2025-04-28 14:00:10 [INFO] [app.api.endpoints.render] [REQ:5f0c2a1e] Rendering /about
"""

import logging
import logging.handlers
from contextvars import ContextVar
from typing import Optional, Union

from app.core.config import LOG_FILE

SUCCESS_MARK = "✔"
FAILURE_MARK = "✗"

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(request)s%(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
REQUEST_ID_LENGTH = 8

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def set_request_context(request_id: str) -> None:
    """Tags log lines of the current request with the first characters of `request_id`."""
    _request_id.set(request_id[:REQUEST_ID_LENGTH])


def request_tag() -> str:
    """Returns `"[REQ:id] "` inside a request and an empty string outside of one."""
    request_id = _request_id.get()
    return f"[REQ:{request_id}] " if request_id else ""


class RequestFormatter(logging.Formatter):
    """Formatter filling the `%(request)s` field from the current request context."""

    def __init__(self, fmt: str = LOG_FORMAT, datefmt: str = DATE_FORMAT) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        record.request = request_tag()
        return super().format(record)


def setup_logging(
    console_level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    file_level: int = logging.DEBUG,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Replaces the root logger's handlers with a console and a rotating file handler.

    uvicorn is started without its own logging config, so its records reach
    these handlers too.

    Args:
        console_level (Union[int, str]): Console threshold, e.g. `"INFO"`.
        log_file (Optional[str]): Log file location; `logs/server.log` by default.
        file_level (int): File threshold.
        max_bytes (int): Size at which the file is rotated.
        backup_count (int): Rotated files kept.
    """
    formatter = RequestFormatter()
    handlers = [
        (logging.StreamHandler(), console_level),
        (
            logging.handlers.RotatingFileHandler(
                log_file or LOG_FILE, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            ),
            file_level,
        ),
    ]
    for handler, level in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers = [handler for handler, _ in handlers]
