"""Centralized structlog configuration for the exchange engine."""

import logging
from typing import Optional

import structlog

from tangible.config.settings import Settings, settings

_configured = False


def build_processors(config: Settings) -> list:
    """Processor chain ending in a console or JSON renderer per `config.LOG_JSON`."""
    renderer = (
        structlog.processors.JSONRenderer()
        if config.LOG_JSON
        else structlog.dev.ConsoleRenderer()
    )
    return [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        renderer,
    ]


def resolve_level(name: str) -> int:
    """Numeric level for `name`, falling back to INFO for unknown names."""
    level = getattr(logging, str(name).upper(), None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(config: Optional[Settings] = None, force: bool = False) -> None:
    """Configure structlog from `config` (the module settings by default).

    Only the first call takes effect unless `force` is set. Events below
    `LOG_LEVEL` are dropped.
    """
    global _configured
    if _configured and not force:
        return
    config = config or settings
    structlog.configure(
        processors=build_processors(config),
        wrapper_class=structlog.make_filtering_bound_logger(resolve_level(config.LOG_LEVEL)),
    )
    _configured = True
