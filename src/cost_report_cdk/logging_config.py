"""Structured logging configuration using structlog.

JSON logs in production, console output otherwise. Everything goes to
stderr: stdout belongs to ``cost-report plan`` and to the template that
``cdk synth`` reads from the app.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

# Chatty third party loggers, only shown when LOG_LEVEL=DEBUG
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "jsii")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application and deployment context to log entries."""
    from .settings import get_settings

    settings = get_settings()
    event_dict["app_name"] = settings.app_name
    event_dict["app_version"] = settings.app_version
    event_dict["environment"] = settings.environment.value
    event_dict.setdefault("stack_environment", settings.stack_environment)
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    include_context: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output JSON logs; otherwise use console format
        include_context: If True, add application context to all logs

    Example:
        >>> configure_logging(log_level="DEBUG", json_logs=False)
        >>> import structlog
        >>> structlog.get_logger().info("graph_evaluated", node_count=5)
    """
    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level == logging.DEBUG else logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if include_context:
        processors.append(add_app_context)

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Initialize logging on module import

from .settings import get_settings  # noqa: E402

settings = get_settings()
configure_logging(
    log_level="DEBUG" if settings.debug else settings.log_level.value,
    json_logs=settings.is_production,
    include_context=True,
)
