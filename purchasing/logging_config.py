import logging
import sys

import structlog

from purchasing.config import Settings, settings as default_settings

# Chatty third-party loggers kept at WARNING unless LOG_LEVEL is DEBUG
QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio")


def _app_name(name: str):
    def processor(logger, method_name, event_dict):
        event_dict.setdefault("app", name)
        return event_dict

    return processor


def setup_logging(settings: Settings = default_settings) -> None:
    """Configure structlog for the service and align stdlib logging with it.

    Development renders coloured console lines; any other environment emits
    one JSON object per event. Every event carries the app name and the
    request_id bound by the correlation middleware.
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.ENVIRONMENT == "development"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _app_name(settings.APP_NAME),
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
