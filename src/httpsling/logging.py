"""Structured logging helpers with correlation IDs.

This module provides a LoggerAdapter that injects the structured fields
``operation``, ``status`` and ``correlation_id`` into every record, a JSON
formatter for applications that want machine-readable output, and
module-level loggers with NullHandler so the library stays silent unless
the application configures handlers.

Examples
--------
>>> from httpsling.logging import get_logger
>>> logger = get_logger(__name__)
>>> logger.info("Request sent", extra={"operation": "http.send", "status_code": 200})
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Self

if TYPE_CHECKING:
    from collections.abc import Mapping, MutableMapping
    from types import TracebackType

__all__ = [
    "CorrelationContext",
    "JsonFormatter",
    "LoggerAdapter",
    "get_correlation_id",
    "get_logger",
    "set_correlation_id",
    "setup_logging",
    "with_fields",
]

# Context variable for correlation ID propagation (async-safe)
_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "httpsling_correlation_id", default=None
)

_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Formats log records as a single JSON object with timestamp, level, logger
    name, message and every JSON-compatible extra field attached to the record.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Parameters
        ----------
        record : logging.LogRecord
            Log record to format.

        Returns
        -------
        str
            JSON-encoded log entry.
        """
        data: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_") or value is None:
                continue
            if isinstance(value, (str, int, float, bool, list, dict)):
                data[key] = value
        if "correlation_id" not in data:
            ctx_correlation_id = _correlation_id.get()
            if ctx_correlation_id is not None:
                data["correlation_id"] = ctx_correlation_id
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class LoggerAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Logger adapter that injects structured context fields.

    Fields given to the adapter constructor persist across calls; fields passed
    through ``extra=`` on a single call take precedence. ``operation`` defaults to
    ``"unknown"`` and ``status`` is inferred from the level when missing.

    Parameters
    ----------
    logger : logging.Logger
        Base logger instance to wrap.
    extra : Mapping[str, object] | None, optional
        Structured fields to inject into log entries. Defaults to None.
    """

    def __init__(self, logger: logging.Logger, extra: Mapping[str, object] | None = None) -> None:
        super().__init__(logger, dict(extra or {}))

    def process(
        self, msg: object, kwargs: MutableMapping[str, Any]
    ) -> tuple[object, MutableMapping[str, Any]]:
        """Merge adapter fields and the context correlation ID into ``extra``.

        Parameters
        ----------
        msg : object
            Log message.
        kwargs : MutableMapping[str, Any]
            Keyword arguments from the logging call.

        Returns
        -------
        tuple[object, MutableMapping[str, Any]]
            Message and kwargs with the merged ``extra`` dict.
        """
        extra = dict(kwargs.get("extra") or {})
        for key, value in (self.extra or {}).items():
            extra.setdefault(key, value)
        if "correlation_id" not in extra:
            ctx_correlation_id = _correlation_id.get()
            if ctx_correlation_id is not None:
                extra["correlation_id"] = ctx_correlation_id
        kwargs["extra"] = extra
        return msg, kwargs

    def log(self, level: int, msg: object, *args: object, **kwargs: Any) -> None:
        """Log a message at the given level with structured fields."""
        if not self.isEnabledFor(level):
            return
        msg, kwargs = self.process(msg, kwargs)
        extra = kwargs["extra"]
        extra.setdefault("operation", "unknown")
        if "status" not in extra:
            if level >= logging.ERROR:
                extra["status"] = "error"
            elif level >= logging.WARNING:
                extra["status"] = "warning"
            else:
                extra["status"] = "success"
        self.logger.log(level, msg, *args, **kwargs)


def get_logger(name: str) -> LoggerAdapter:
    """Get a logger adapter with structured logging support.

    Parameters
    ----------
    name : str
        Logger name (typically ``__name__`` from the calling module).

    Returns
    -------
    LoggerAdapter
        Adapter injecting structured fields. A NullHandler is installed on the
        underlying logger when it has no handlers.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return LoggerAdapter(logger, {})


def setup_logging(level: int | str | None = None) -> None:
    """Configure the root logger with JSON output on stdout.

    Parameters
    ----------
    level : int | str | None, optional
        Logging level threshold, numeric or by name. Defaults to None, which
        uses ``HttpSettings().log_level`` (``HTTPSLING_LOG_LEVEL``).
    """
    if level is None:
        # Imported here because settings logs through this module.
        from httpsling.settings import HttpSettings  # noqa: PLC0415

        level = HttpSettings().log_level
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=level, handlers=[handler], force=True)


def set_correlation_id(correlation_id: str | None) -> None:
    """Set correlation ID in context (None clears it)."""
    _correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    """Return the current correlation ID, or None when unset."""
    return _correlation_id.get()


class CorrelationContext:
    """Context manager that sets a correlation ID and restores the previous one on exit.

    Parameters
    ----------
    correlation_id : str | None
        Correlation ID to set in context.

    Examples
    --------
    >>> from httpsling.logging import CorrelationContext, get_correlation_id
    >>> with CorrelationContext("req-123"):
    ...     assert get_correlation_id() == "req-123"
    """

    def __init__(self, correlation_id: str | None) -> None:
        self.correlation_id = correlation_id
        self._token: contextvars.Token[str | None] | None = None

    def __enter__(self) -> Self:
        self._token = _correlation_id.set(self.correlation_id)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            _correlation_id.reset(self._token)
            self._token = None


class _WithFieldsContext(AbstractContextManager[LoggerAdapter]):
    def __init__(self, logger: logging.Logger | LoggerAdapter, fields: Mapping[str, object]) -> None:
        self._logger = logger
        self._fields = dict(fields)
        self._token: contextvars.Token[str | None] | None = None

    def __enter__(self) -> LoggerAdapter:
        if isinstance(self._logger, LoggerAdapter):
            base_logger = self._logger.logger
            fields = {**(self._logger.extra or {}), **self._fields}
        else:
            base_logger = self._logger
            fields = self._fields
        correlation_id = fields.get("correlation_id")
        if isinstance(correlation_id, str):
            self._token = _correlation_id.set(correlation_id)
        return LoggerAdapter(base_logger, fields)

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            _correlation_id.reset(self._token)
            self._token = None


def with_fields(
    logger: logging.Logger | LoggerAdapter, **fields: object
) -> AbstractContextManager[LoggerAdapter]:
    """Return a context manager yielding an adapter bound to ``fields``.

    Parameters
    ----------
    logger : logging.Logger | LoggerAdapter
        Logger to wrap.
    **fields : object
        Structured fields injected into every record logged through the adapter.
        A string ``correlation_id`` is also set in context for the duration.

    Returns
    -------
    AbstractContextManager[LoggerAdapter]
        Context manager yielding the bound adapter.

    Examples
    --------
    >>> from httpsling.logging import get_logger, with_fields
    >>> with with_fields(get_logger(__name__), operation="http.send") as log:
    ...     log.info("sending")
    """
    return _WithFieldsContext(logger, fields)
