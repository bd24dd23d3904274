# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Logging setup for DVID.

Two output shapes share one correlation scheme:

- ``JSONFormatter`` writes one JSON object per line (files, collectors)
- ``StandardFormatter`` writes a readable line, optionally colored

A verification run opens a :func:`correlation_context`; every record
emitted inside it carries the same ``correlation_id``, including records
from DNS and DID lookups the run triggers.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import CoreSettings

_current_cid: ContextVar[str | None] = ContextVar("dvid_correlation_id", default=None)

# Libraries that log every request at INFO
QUIET_LOGGERS = ("aiohttp", "asyncio")


# =============================================================================
# CORRELATION IDS
# =============================================================================


def get_correlation_id() -> str | None:
    return _current_cid.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Bind ``correlation_id`` to the running task or thread. None clears it."""
    _current_cid.set(correlation_id)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Iterator[str]:
    """Scope a correlation ID to a block.

    Without an explicit ID the active one is reused, so items verified as
    part of a batch log under the batch's ID. A fresh ID is generated only
    when nothing is active.
    """
    cid = correlation_id or _current_cid.get() or generate_correlation_id()
    token = _current_cid.set(cid)
    try:
        yield cid
    finally:
        _current_cid.reset(token)


class CorrelationFilter(logging.Filter):
    """Stamp ``record.correlation_id`` from the active context."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = _current_cid.get()
        return True


def _record_cid(record: logging.LogRecord) -> str | None:
    # Handlers without the filter still see the context value
    return getattr(record, "correlation_id", None) or _current_cid.get()


# =============================================================================
# FORMATTERS
# =============================================================================


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Warnings and above also carry their source location.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        cid = _record_cid(record)
        if cid:
            payload["correlation_id"] = cid
        if record.levelno >= logging.WARNING:
            payload["source"] = {"file": record.pathname, "line": record.lineno, "function": record.funcName}
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        extra = getattr(record, "extra_data", None)
        if extra is not None:
            payload["extra"] = extra
        return json.dumps(payload, default=str)


class StandardFormatter(logging.Formatter):
    """``time - logger - LEVEL - [cid] message`` for terminals."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[90m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__(fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        self.use_colors = use_colors and sys.stderr.isatty()

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{self.RESET}" if self.use_colors else text

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy; other handlers format the same record
        shown = logging.makeLogRecord(record.__dict__)
        cid = _record_cid(record)
        if cid:
            shown.msg = f"{self._paint(f'[{cid[:8]}]', self.DIM)} {record.msg}"
        shown.levelname = self._paint(record.levelname, self.LEVEL_COLORS.get(record.levelno, ""))
        return super().format(shown)


# =============================================================================
# SETUP
# =============================================================================


def _wants_json(json_format: bool | None, log_format: str) -> bool:
    if json_format is not None:
        return json_format
    choice = log_format.lower()
    if choice in ("json", "text"):
        return choice == "json"
    return not sys.stderr.isatty()


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
    settings: CoreSettings | None = None,
) -> None:
    """Replace the root logger's handlers with DVID's.

    Arguments left as None come from settings (``DVID_LOG_LEVEL``,
    ``DVID_LOG_FORMAT``, ``DVID_LOG_FILE``). Format ``auto`` picks JSON
    when stderr is not a terminal. The log file is always JSON.
    """
    if settings is None:
        from .config import get_config

        settings = get_config()

    level = settings.log_level if level is None else level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    log_file = settings.log_file if log_file is None else log_file

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(level)

    correlation = CorrelationFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter() if _wants_json(json_format, settings.log_format) else StandardFormatter())
    console.addFilter(correlation)
    root.addHandler(console)

    if log_file:
        to_file = logging.FileHandler(log_file)
        to_file.setFormatter(JSONFormatter())
        to_file.addFilter(correlation)
        root.addHandler(to_file)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
