"""
Structured logging for the Walrus SDK.

Library modules log through ``get_logger(__name__)`` and pass structured
fields as keyword arguments::

    logger.info("Cache hit", blob_id=blob_id)

Per-request context (request_id, operation) lives in a ContextVar and is
picked up by the formatters at emit time, so it follows asyncio tasks.
Nothing is printed until an application calls setup_logging() or a client
is given a LogLevel preset.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Generator, Mapping, MutableMapping

import orjson
from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

ROOT_LOGGER_NAME = "walrus_sdk"

_LOGGING_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

_log_fields: ContextVar[Mapping[str, str]] = ContextVar("walrus_log_fields", default={})


class LogLevel(str, Enum):
    """Verbosity presets for SDK logging.

    NONE silences the package, BASIC emits INFO and above, VERBOSE adds
    per-request DEBUG lines.
    """

    NONE = "none"
    BASIC = "basic"
    VERBOSE = "verbose"

    @property
    def logging_level(self) -> int:
        return {
            LogLevel.VERBOSE: logging.DEBUG,
            LogLevel.BASIC: logging.INFO,
        }.get(self, logging.CRITICAL + 1)


def current_log_context() -> dict[str, str]:
    """Return a copy of the fields bound by enclosing log_context() blocks."""
    return dict(_log_fields.get())


def get_request_id() -> str | None:
    return _log_fields.get().get("request_id")


def get_operation() -> str | None:
    return _log_fields.get().get("operation")


@contextmanager
def log_context(
    request_id: str | None = None,
    operation: str | None = None,
) -> Generator[None, None, None]:
    """Bind request_id and/or operation for log records emitted inside the block.

    Nested blocks inherit outer values and override only what they set.
    """
    bound = dict(_log_fields.get())
    if request_id is not None:
        bound["request_id"] = request_id
    if operation is not None:
        bound["operation"] = operation

    token = _log_fields.set(bound)
    try:
        yield
    finally:
        _log_fields.reset(token)


class JSONFormatter(logging.Formatter):
    """One JSON object per line: time, level, logger, message, context, fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **current_log_context(),
        }

        fields = getattr(record, "fields", None)
        if fields:
            entry["fields"] = fields
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return orjson.dumps(entry, default=str).decode("utf-8")


class ContextRichHandler(RichHandler):
    """RichHandler that tags each line with the request and operation in scope."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        level_text = super().get_level_text(record)
        context = current_log_context()
        if not context:
            return level_text

        tag = Text()
        if "request_id" in context:
            # uuid7 ids share a time prefix; the tail is what differs
            tag.append(f" {context['request_id'][-8:]}", style="dim")
        if "operation" in context:
            tag.append(f" {context['operation']}", style="cyan")
        return Text.assemble(level_text, tag)


class ContextLogger(logging.LoggerAdapter):
    """LoggerAdapter that moves keyword arguments into ``record.fields``.

    Standard logging keywords (exc_info, stack_info, stacklevel, extra)
    pass through unchanged.
    """

    def __init__(self, logger: logging.Logger) -> None:
        super().__init__(logger, {})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        fields = {key: kwargs.pop(key) for key in list(kwargs) if key not in _LOGGING_KWARGS}
        if fields:
            extra = dict(kwargs.get("extra") or {})
            extra["fields"] = fields
            kwargs["extra"] = extra
        return msg, kwargs


_console: Console | None = None


def get_console() -> Console:
    """Shared stderr console for log output."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def set_log_level(level: LogLevel) -> None:
    """Apply a verbosity preset to the package logger and its console handler."""
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(level.logging_level)
    for handler in package_logger.handlers:
        if isinstance(handler, RichHandler):
            handler.setLevel(level.logging_level)


def _file_handler(log_file: Path) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    handler.setFormatter(JSONFormatter())
    handler.setLevel(logging.DEBUG)
    return handler


def _console_handler(level: int) -> logging.Handler:
    handler = ContextRichHandler(
        console=get_console(),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setLevel(level)
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Install handlers on the ``walrus_sdk`` logger, replacing earlier ones.

    Args:
        log_level: Standard level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional JSON-lines log file; always records DEBUG.
        console_output: Whether to attach the rich console handler.
    """
    level = logging.getLevelName(log_level.upper())
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(level)
    package_logger.handlers.clear()
    package_logger.propagate = False

    if log_file is not None:
        package_logger.addHandler(_file_handler(log_file))
    if console_output:
        package_logger.addHandler(_console_handler(level))

    # request lines are ours; keep the transport libraries quiet
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> ContextLogger:
    """Return a ContextLogger under the ``walrus_sdk`` namespace.

    Library code never installs handlers; applications call setup_logging().
    """
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return ContextLogger(logging.getLogger(name))
