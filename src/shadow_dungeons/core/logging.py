"""Structured logging for the Shadow Dungeons engine.

Engine modules log through structlog with keyword context. Lines are routed
through the standard library ``logging`` tree under the ``shadow_dungeons``
logger names, so the host's handlers (and the optional log file) receive
engine output next to the asyncio loop's own warnings.

Timer callbacks run inside :func:`encounter_context`, which binds the
``encounter_id`` and the timer name for every line the callback emits, and
restores the previous context when the callback returns.

Example:
    >>> from shadow_dungeons.core.logging import configure_logging, encounter_context, get_logger
    >>> configure_logging(get_settings())
    >>> logger = get_logger(__name__)
    >>> with encounter_context("dng-1", timer="combat"):
    ...     logger.info("Combat tick resolved", attacks=42)
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import Processor

from shadow_dungeons.core.config import Settings, get_settings


if TYPE_CHECKING:
    from collections.abc import Iterator

    from structlog.types import EventDict, WrappedLogger


APP_NAME = "shadow_dungeons"
ENCOUNTER_KEYS = ("encounter_id", "timer")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def add_app_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Stamp the engine name on every entry."""
    event_dict["app"] = APP_NAME
    return event_dict


def drop_unset_encounter_keys(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Remove encounter keys that were logged without a value.

    Shared components (the mana economy, the extraction pipeline) log with
    ``encounter_id=None`` when called outside an encounter. Runs before the
    contextvars merge, so a None never shadows the id bound by
    :func:`encounter_context`.

    Args:
        logger: The wrapped logger instance.
        method_name: Name of the logging method called.
        event_dict: The event dictionary to modify.

    Returns:
        The event dictionary without None-valued encounter keys.
    """
    for key in ENCOUNTER_KEYS:
        if key in event_dict and event_dict[key] is None:
            del event_dict[key]
    return event_dict


def build_processors(*, json_format: bool) -> list[Processor]:
    """Build the processor chain, ending in the console or JSON renderer."""
    shared: list[Processor] = [
        drop_unset_encounter_keys,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_format:
        return [
            *shared,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        *shared,
        structlog.dev.ConsoleRenderer(
            colors=False,
            exception_formatter=structlog.dev.plain_traceback,
        ),
    ]


def configure_logging(
    settings: Settings | None = None,
    *,
    log_file: str | None = None,
    cache_loggers: bool = True,
) -> None:
    """Configure engine-wide logging from the engine settings.

    ``settings.log_level`` sets the level of every engine logger and
    ``settings.json_logs`` picks the JSON renderer. The ``asyncio`` logger is
    kept at WARNING unless ``settings.debug`` is on, where its slow-callback
    reports are useful when tuning tick intervals.

    Args:
        settings: Engine settings; the cached settings when None.
        log_file: Optional path receiving a copy of every line.
        cache_loggers: Cache bound loggers after first use. Turn off when
            the output streams may be swapped later, as under test capture.

    Example:
        >>> configure_logging(Settings(log_level="DEBUG", json_logs=True))
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=build_processors(json_format=settings.json_logs),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=cache_loggers,
    )

    logging.basicConfig(format="%(message)s", level=level, stream=sys.stdout, force=True)
    logging.getLogger(APP_NAME).setLevel(level)
    logging.getLogger("asyncio").setLevel(logging.DEBUG if settings.debug else logging.WARNING)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Optional name for the logger (typically __name__).

    Returns:
        A configured structlog BoundLogger instance.
    """
    return structlog.get_logger(name)


@contextmanager
def encounter_context(encounter_id: str, **extra: Any) -> Iterator[None]:
    """Bind an encounter to every log line emitted inside the block.

    Whatever was bound before is restored on exit, so nested blocks and the
    host's own context survive.

    Args:
        encounter_id: Encounter the enclosed work belongs to.
        **extra: Further keys to bind, such as the timer name.
    """
    with structlog.contextvars.bound_contextvars(encounter_id=encounter_id, **extra):
        yield


__all__ = [
    "build_processors",
    "configure_logging",
    "encounter_context",
    "get_logger",
]
