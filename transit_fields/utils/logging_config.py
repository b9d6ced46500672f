"""Structured logging setup

Call configure_logging() once at process start. Library modules only do
structlog.get_logger() and never configure anything themselves.
"""

import logging

import structlog


def configure_logging(json: bool = True, level: str = "INFO"):
    """Set up structlog on top of the stdlib logging module

    Args:
        json: Render JSON lines (False = human readable console output)
        level: Root log level name
    """
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))

    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
