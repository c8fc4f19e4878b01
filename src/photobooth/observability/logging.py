"""Structured logging for the photo-booth kiosk.

Thin layer over the standard logging module that lets every call site attach
key-value data to a record:

    logger = get_logger(__name__)
    logger.info("Frame fetched", sequence=42, duration_ms=31.5)

Output is either human-readable (``message | key=value ...``) or one JSON
object per line for log shipping. ``LogContext`` scopes extra keys (session
epoch, device name) to everything logged inside a ``with`` block, including
code running in tasks spawned from it, because the context lives in a
contextvar.

Untrusted values (camera file names, printer error text) should always be
passed as keyword arguments, never interpolated into the message, so that a
CRLF in a device response cannot forge a log line.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import threading
from collections.abc import MutableMapping
from datetime import UTC, datetime
from typing import Any, cast

ROOT_LOGGER_NAME = "photobooth"

_log_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "photobooth_log_context", default={}
)


# =============================================================================
# Logger
# =============================================================================


class StructuredLogger(logging.Logger):
    """Logger whose level methods accept arbitrary keyword data.

    Keyword arguments are merged over the active ``LogContext`` and stored on
    the record as ``structured_data``.
    """

    def debug(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at DEBUG with structured keyword data."""
        if self.isEnabledFor(logging.DEBUG):
            self._log_structured(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at INFO with structured keyword data."""
        if self.isEnabledFor(logging.INFO):
            self._log_structured(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at WARNING with structured keyword data."""
        if self.isEnabledFor(logging.WARNING):
            self._log_structured(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at ERROR with structured keyword data."""
        if self.isEnabledFor(logging.ERROR):
            self._log_structured(logging.ERROR, msg, args, **kwargs)

    def critical(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at CRITICAL with structured keyword data."""
        if self.isEnabledFor(logging.CRITICAL):
            self._log_structured(logging.CRITICAL, msg, args, **kwargs)

    def _log_structured(
        self,
        level: int,
        msg: object,
        args: tuple[Any, ...] | MutableMapping[str, Any],
        exc_info: Any = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Emit a record carrying context plus keyword data.

        The standard reserved keywords (``exc_info``, ``stack_info``,
        ``stacklevel``, ``extra``) keep their usual meaning; every other
        keyword becomes structured data. Explicit keywords win over context
        values with the same key.

        Args:
            level: Numeric log level.
            msg: Message, may contain %-style placeholders.
            args: Arguments for the placeholders.
            exc_info: Exception info as accepted by ``logging.Logger._log``.
            stack_info: Include the current stack in the record.
            stacklevel: Extra frames to skip when resolving the caller.
            extra: Additional record attributes.
            **kwargs: Structured key-value data.
        """
        structured_data = {**_log_context.get(), **kwargs}
        record_extra = dict(extra) if extra else {}
        record_extra["structured_data"] = structured_data

        # +2 skips this helper and the public level method.
        self._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=record_extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 2,
        )


# =============================================================================
# Formatters
# =============================================================================


class StructuredFormatter(logging.Formatter):
    """Human-readable formatter: ``time - name - level - message | k=v``."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        include_structured: bool = True,
    ) -> None:
        """Create the formatter.

        Args:
            fmt: Base format string. Defaults to
                ``%(asctime)s - %(name)s - %(levelname)s - %(message)s``.
            datefmt: Date format for ``%(asctime)s``.
            include_structured: Append structured data after `` | ``.
        """
        if fmt is None:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        super().__init__(fmt, datefmt)
        self.include_structured = include_structured

    def format(self, record: logging.LogRecord) -> str:
        """Format the record, appending structured pairs when present."""
        base = super().format(record)
        if not self.include_structured:
            return base

        structured = getattr(record, "structured_data", None)
        if not structured:
            return base

        pairs = " ".join(f"{k}={_format_value(v)}" for k, v in structured.items())
        return f"{base} | {pairs}"


class JSONFormatter(logging.Formatter):
    """One JSON object per record for log aggregation.

    Keys: ``timestamp`` (UTC ISO 8601), ``level``, ``logger``, ``message``,
    ``exception`` when exc_info is set, plus every structured key at the top
    level. Values that are not JSON serialisable fall back to ``str()``.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Serialise the record as a single JSON line."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(getattr(record, "structured_data", {}) or {})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _format_value(value: Any) -> str:
    """Render one structured value for the key=value text format.

    Args:
        value: Any value.

    Returns:
        ``null`` for None, quoted text for strings containing spaces, JSON
        for dicts and lists, ``str()`` otherwise.

    Example:
        >>> _format_value("camera not connected")
        '"camera not connected"'
        >>> _format_value({"copies": 2})
        '{"copies": 2}'
    """
    if value is None:
        return "null"
    if isinstance(value, str):
        return f'"{value}"' if " " in value else value
    if isinstance(value, dict | list):
        return json.dumps(value, default=str)
    return str(value)


# =============================================================================
# Context
# =============================================================================


class LogContext:
    """Scope structured keys to a block of code.

    Nested contexts merge, inner values override outer ones. Restored on
    exit even when the block raises.

    Example:
        with LogContext(epoch=7):
            logger.info("Capture started")  # includes epoch=7
    """

    def __init__(self, **kwargs: Any) -> None:
        """Store the keys to activate on entry."""
        self._kwargs = kwargs
        self._token: contextvars.Token[dict[str, Any]] | None = None

    def __enter__(self) -> LogContext:
        """Activate the keys on top of the current context."""
        self._token = _log_context.set({**_log_context.get(), **self._kwargs})
        return self

    def __exit__(self, *args: Any) -> None:
        """Restore the previous context; exceptions are not suppressed."""
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    def __repr__(self) -> str:
        """Show the scoped keys."""
        return f"LogContext({self._kwargs!r})"


# =============================================================================
# Configuration
# =============================================================================

_configured = False
_config_lock = threading.Lock()


def configure_logging(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
    include_structured: bool = True,
    force: bool = False,
) -> None:
    """Install the handler and formatter on the ``photobooth`` logger.

    Idempotent unless ``force`` is set. Thread-safe.

    Args:
        level: Minimum level, as int or name.
        json_format: Emit JSON lines instead of text.
        stream: Target stream, default ``sys.stderr``.
        include_structured: Append structured data in text mode.
        force: Drop the existing configuration first.

    Example:
        >>> configure_logging(level="DEBUG", json_format=True, force=True)
    """
    with _config_lock:
        if force:
            _reset_logging_impl()
        _configure_logging_impl(level, json_format, stream, include_structured)


def _configure_logging_impl(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
    include_structured: bool = True,
) -> None:
    """Apply configuration; caller holds ``_config_lock``."""
    global _configured

    if _configured:
        return

    logging.setLoggerClass(StructuredLogger)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    formatter: logging.Formatter
    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = StructuredFormatter(include_structured=include_structured)
    handler.setFormatter(formatter)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    root.addHandler(handler)
    root.propagate = False

    _configured = True


def _reset_logging_impl() -> None:
    """Remove handlers; caller holds ``_config_lock``."""
    global _configured

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    _configured = False


def reset_logging() -> None:
    """Return logging to the unconfigured state (tests only)."""
    with _config_lock:
        _reset_logging_impl()


def get_logger(name: str) -> StructuredLogger:
    """Return a structured logger, configuring defaults on first use.

    Loggers created before ``setLoggerClass`` would be plain ``Logger``
    instances, so configuration happens before the lookup.

    Args:
        name: Usually ``__name__``.

    Returns:
        A ``StructuredLogger`` under the ``photobooth`` hierarchy.
    """
    if not _configured:
        with _config_lock:
            if not _configured:  # pragma: no branch
                _configure_logging_impl()

    return cast(StructuredLogger, logging.getLogger(name))
