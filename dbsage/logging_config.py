"""
Structured logging configuration using structlog.
Library code only emits structured events; the host application decides
whether to call configure_logging().
"""

import logging
import sys

import structlog

from dbsage.config import Settings, settings as default_settings


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure structured logging for the process.
    
    Uses structlog with JSON or console output based on settings.
    Bound context (session_id, analysis_id, ...) is merged into every event.
    """
    settings = settings or default_settings

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Reports go to stdout, logs to stderr
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.
    
    Args:
        name: Logger name (typically __name__ of the module)
        
    Returns:
        Configured structlog logger
        
    Example:
        logger = get_logger(__name__)
        logger.info("dispatch_started", database_kind="postgresql", analysis_kind="locks")
    """
    return structlog.get_logger(name)
