from __future__ import annotations

import logging
import os

import structlog

# Chatty loggers that would drown the access log at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


def _get_log_level() -> int:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level, logging.INFO)


def _renderer() -> structlog.types.Processor:
    log_format = os.getenv("LOG_FORMAT")
    if log_format is None:
        log_format = "console" if os.getenv("APP_ENV", "dev") == "dev" else "json"
    if log_format.lower() == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def setup_logging() -> None:
    """Configure structlog on top of stdlib logging.

    - JSON lines with ISO/UTC timestamp, level, event, and bound fields
    - contextvars are merged so request_id/path/method flow into service logs
    - exc_info is rendered inside the JSON payload
    - LOG_FORMAT=console|json overrides the APP_ENV based default
    """

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(),
        ],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logging.basicConfig(level=_get_log_level(), handlers=[handler], force=True)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
