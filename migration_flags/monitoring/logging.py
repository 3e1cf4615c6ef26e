"""
Structured Logging Setup using structlog

Configures structlog on top of the standard library ``logging`` module so that every
rollout decision, flag mutation and absorbed store fault is emitted as a structured
event. JSON rendering is the default for log aggregation; a console renderer is
available for local development.

Modules obtain loggers with ``structlog.get_logger(__name__)`` and pass context as
keyword arguments:

    logger.info("Migration flag updated", flag="gtm_enabled", value=True)
"""

import logging
import logging.config
import os
from typing import Optional

import structlog


class LoggingConfig:
    """Environment-driven logging defaults."""

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json')  # json, console
    COLORED_CONSOLE_OUTPUT = os.getenv('COLORED_CONSOLE_OUTPUT', 'false').lower() == 'true'
    APPLICATION_NAME = os.getenv('APPLICATION_NAME', 'migration-flags')


def setup_structured_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None
) -> structlog.stdlib.BoundLogger:
    """
    Configure structlog and stdlib logging.

    Args:
        level: Log level name, defaults to ``LOG_LEVEL``
        log_format: ``json`` or ``console``, defaults to ``LOG_FORMAT``

    Returns:
        Configured application logger
    """
    level = (level or LoggingConfig.LOG_LEVEL).upper()
    log_format = (log_format or LoggingConfig.LOG_FORMAT).lower()

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == 'console':
        processors.append(structlog.dev.ConsoleRenderer(colors=LoggingConfig.COLORED_CONSOLE_OUTPUT))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'plain': {'format': '%(message)s'}
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'plain',
                'stream': 'ext://sys.stdout'
            }
        },
        'root': {
            'handlers': ['console'],
            'level': level
        }
    })

    logger = structlog.get_logger(LoggingConfig.APPLICATION_NAME)
    logger.info(
        "Structured logging initialized",
        log_level=level,
        log_format=log_format
    )
    return logger


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, defaulting to the application logger name."""
    return structlog.get_logger(name or LoggingConfig.APPLICATION_NAME)


__all__ = ['LoggingConfig', 'setup_structured_logging', 'get_logger']
