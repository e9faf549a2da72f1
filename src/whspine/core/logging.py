"""
Structured logging for the warehouse.

Every warehouse operation emits leveled events (``partition_created``,
``refresh_failed``, ``promotion_rolled_back``, ...) together with a context
map naming the template, tenant, schema, object and date it was working on.
structlog carries that context: operations bind it once with
:class:`LogContext` and every event emitted inside the block inherits it.

Architecture:
    ::

        configure_logging(level="INFO", json_format=None)
              │
              ▼
        filter_by_level → TimeStamper(utc) → merge_contextvars
          → add_log_level → add_logger_name → service.name
          → [ECS field names, JSON only] → JSONRenderer | ConsoleRenderer
              │
              ▼
        stdlib handler on ``stream`` (stdout by default, stderr for the CLI)

Examples:
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> with LogContext(template="sales", schema="acme"):
    ...     logger.info("union_view_rebuilt", sources=12)

Nothing in the warehouse reads log output back; a misconfigured logger never
changes an operation's outcome.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

SERVICE_NAME = "warehouse-spine"

# structlog key → ECS key, applied to JSON output only
_ECS_RENAMES = {"timestamp": "@timestamp", "level": "log.level"}


class _ServiceTagger:
    """Stamps ``service.name`` on every event."""

    def __init__(self, service: str):
        self.service = service

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", self.service)
        return event_dict


def _ecs_field_names(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for old, new in _ECS_RENAMES.items():
        if old in event_dict:
            event_dict[new] = event_dict.pop(old)
    return event_dict


def _build_processors(json_format: bool, service: str) -> list[Processor]:
    chain: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _ServiceTagger(service),
    ]
    if json_format:
        chain += [_ecs_field_names, structlog.processors.JSONRenderer()]
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=True))
    return chain


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = SERVICE_NAME,
    stream: TextIO | None = None,
) -> None:
    """Route structlog through the stdlib root logger.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        json_format: JSON lines when True, console when False; when None,
            JSON unless *stream* is a terminal.
        service: Value of ``service.name`` on every event.
        stream: Output stream, stdout when None. The CLI passes stderr so
            that ``--json`` output stays parseable.
    """
    stream = stream or sys.stdout
    if json_format is None:
        json_format = not stream.isatty()
    numeric_level = logging.getLevelName(level.upper())

    logging.basicConfig(format="%(message)s", stream=stream, level=numeric_level, force=True)
    structlog.configure(
        processors=_build_processors(json_format, service),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def clear_context() -> None:
    """Drop everything bound by enclosing :class:`LogContext` blocks."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind context keys for the duration of a ``with`` block.

    ``None`` values are not bound. On exit the keys are unbound and any value
    an outer block had bound for the same key is restored, so the adjacent-day
    refresh inside an upsert can rebind ``target_date`` without losing the
    caller's.

    Example:
        with LogContext(template="sales", schema="acme", target_date="2024-01-15"):
            logger.info("upsert_started")
    """

    def __init__(self, **context: Any):
        self.context = {k: v for k, v in context.items() if v is not None}
        self._shadowed: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        outer = structlog.contextvars.get_contextvars()
        self._shadowed = {k: outer[k] for k in self.context if k in outer}
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context)
        if self._shadowed:
            structlog.contextvars.bind_contextvars(**self._shadowed)


__all__ = ["SERVICE_NAME", "configure_logging", "get_logger", "clear_context", "LogContext"]
