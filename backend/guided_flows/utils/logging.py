# /guided_flows/utils/logging.py

import logging
import sys
import structlog
from guided_flows.config.settings import settings

SERVICE_NAME = "guided-flows"

# Loggers that follow LOG_LEVEL. Everything else (redis, httpx, asyncio...)
# stays at WARNING so a DEBUG run only shows flow activity.
SERVICE_LOGGERS = ("guided_flows", "uvicorn.error")

# Per-request access lines are covered by the response time histogram.
QUIET_LOGGERS = ("uvicorn.access",)


def add_service_context(logger, method_name, event_dict):
    """Tag every record with the service and deployment it came from."""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def setup_logging():
    """
    Configures structured logging using structlog, integrated with the
    standard logging module so session lifecycle events, executor failures
    and uvicorn output are rendered the same way.
    """
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.environment == "development":
        final_processor = structlog.dev.ConsoleRenderer()
    else:
        final_processor = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=final_processor,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.set_name(SERVICE_NAME)

    root_logger = logging.getLogger()
    # The app can be started more than once per process (tests, reload)
    for existing in list(root_logger.handlers):
        if existing.get_name() == SERVICE_NAME:
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    for name in SERVICE_LOGGERS:
        logging.getLogger(name).setLevel(settings.log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
