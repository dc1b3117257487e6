"""Structured logging for state machines and circuit breakers.

Components log through ``log_info``/``log_warning``/``log_exception`` so they
accept either a structlog logger or a plain stdlib logger. Hosts call
``configure_structlog`` once at startup to route both through one renderer.
"""

from __future__ import annotations

import logging
import sys
from typing import Literal, Protocol

import structlog
from structlog.typing import EventDict

_LOG_LEVELS: dict[str, int] = {
    name: logging.getLevelName(name)
    for name in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
}

_StdlibLogger = logging.Logger | logging.LoggerAdapter[logging.Logger]


class StructuredLogger(Protocol):
    """Anything that logs an event name with keyword fields."""

    def info(self, event: str, **kwargs: object) -> None: ...

    def warning(self, event: str, **kwargs: object) -> None: ...

    def exception(self, event: str, **kwargs: object) -> None: ...


AnyLogger = StructuredLogger | _StdlibLogger


def get_log_level_value(level: str) -> int:
    """Map a case-insensitive level name to its stdlib constant."""
    try:
        return _LOG_LEVELS[level.strip().upper()]
    except KeyError as error:
        choices = ", ".join(sorted(_LOG_LEVELS))
        raise ValueError(f"log_level must be one of: {choices}") from error


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.stdlib.get_logger(name)


def _build_service_tagger(service: str | None) -> structlog.types.Processor:
    def _tag_service(_: object, __: str, event_dict: EventDict) -> EventDict:
        if service is not None:
            event_dict.setdefault("service", service)
        return event_dict

    return _tag_service


def _log(
    logger: AnyLogger,
    level: Literal["info", "warning", "exception"],
    event: str,
    fields: dict[str, object],
) -> None:
    method = getattr(logger, level)
    if isinstance(logger, (logging.Logger, logging.LoggerAdapter)):
        # stdlib loggers take structured fields through ``extra``.
        method(event, extra=fields)
    else:
        method(event, **fields)


def log_info(logger: AnyLogger, event: str, **fields: object) -> None:
    _log(logger, "info", event, fields)


def log_warning(logger: AnyLogger, event: str, **fields: object) -> None:
    _log(logger, "warning", event, fields)


def log_exception(logger: AnyLogger, event: str, **fields: object) -> None:
    """Log ``event`` with the exception currently being handled attached."""
    _log(logger, "exception", event, fields)


def _shared_processors(service: str | None) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        _build_service_tagger(service),
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def configure_structlog(
    *,
    log_level: str,
    service: str | None = None,
) -> structlog.stdlib.BoundLogger:
    """Route structlog and stdlib records through a single stderr handler.

    Output is rendered for humans on a terminal and as JSON lines otherwise.
    Calling it again replaces the previous root handler.

    Args:
        log_level: Minimum level name, e.g. ``"INFO"``.
        service: Optional value stamped as ``service`` on every record that
            does not already carry one.
    """
    renderer: structlog.types.Processor = (
        structlog.dev.ConsoleRenderer()
        if sys.stderr.isatty()
        else structlog.processors.JSONRenderer()
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_processors(service),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    logging.basicConfig(
        format="%(message)s",
        handlers=[handler],
        level=get_log_level_value(log_level),
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            *_shared_processors(service),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return structlog.stdlib.get_logger()
