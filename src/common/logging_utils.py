"""Centralized logging helpers.

Provides a single place to configure handlers and a small set of helpers
used across the code base to attach structured context to log records
without paying for it when the level is disabled.
"""
from __future__ import annotations

import logging
import os
import sys
import time
import urllib.parse
from typing import Any, Dict, Optional, Union

from constants import Constants

# Attributes already present on every LogRecord; extra fields must not shadow them.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}

# Context fields rendered by the formatter, in display order.
CONTEXT_FIELDS = (
    "event",
    "component",
    "action",
    "outcome",
    "package",
    "version",
    "target",
    "attempt",
    "status_code",
    "duration_ms",
    "count",
)

# Query parameters that carry credentials on pre-signed URLs.
_SENSITIVE_QUERY_KEYS = frozenset(
    {"sig", "signature", "token", "access_token", "x-amz-signature", "x-amz-credential", "se", "sp", "sv"}
)

_HANDLER_MARK = "_toolfetch_handler"


class ContextFormatter(logging.Formatter):
    """Formatter appending structured context fields as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        pairs = []
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                pairs.append(f"{key}={value}")
        if pairs:
            return f"{base} ({' '.join(pairs)})"
        return base


def _resolve_level(level: Optional[Union[str, int]]) -> int:
    if level is None:
        level = os.environ.get(Constants.ENV_LOG_LEVEL, "INFO")
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).strip().upper(), logging.INFO)


def configure_logging(level: Optional[Union[str, int]] = None, log_file: Optional[str] = None) -> None:
    """Configure the root logger.

    Args:
        level: Level name or number. Falls back to TOOLFETCH_LOG_LEVEL, then INFO.
        log_file: Optional path of a file receiving the same records.
    """
    root = logging.getLogger()
    root.setLevel(_resolve_level(level))

    # Drop handlers installed by a previous call so repeated setup stays idempotent
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root.removeHandler(handler)
            handler.close()

    formatter = ContextFormatter(Constants.LOG_FORMAT)
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        setattr(handler, _HANDLER_MARK, True)
        handler.setFormatter(formatter)
        root.addHandler(handler)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records from ``logger`` would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build the ``extra=`` mapping for a structured log call.

    None values are dropped. Keys that collide with LogRecord attributes
    are prefixed with ``ctx_`` instead of raising inside logging.
    """
    ctx: Dict[str, Any] = {}
    for key, value in fields.items():
        if value is None:
            continue
        if key in _RESERVED_ATTRS:
            key = f"ctx_{key}"
        ctx[key] = value
    return ctx


def safe_url(url: Optional[str]) -> str:
    """Return ``url`` with userinfo removed and credential query values redacted."""
    if not url:
        return ""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return "<invalid-url>"
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    query = parts.query
    if query:
        pairs = urllib.parse.parse_qsl(query, keep_blank_values=True)
        query = urllib.parse.urlencode(
            [(k, "REDACTED" if k.lower() in _SENSITIVE_QUERY_KEYS else v) for k, v in pairs],
            safe="/",
        )
    return urllib.parse.urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


class Timer:
    """Measure elapsed wall time of a block in milliseconds."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
