"""structlog configuration for the engine and its host process."""

import logging
import os

import structlog

from adaptive_puzzle_engine.config import Settings, get_settings


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog.

    Production (``ENV=production`` or ``log_json``) renders JSON for machine
    parsing; otherwise a console renderer is used.
    """
    settings = settings or get_settings()
    is_production = os.getenv("ENV", "development").lower() == "production"
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)

    if is_production or settings.log_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
