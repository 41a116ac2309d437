"""Logging configuration based on environment."""

import logging
import sys

from authcore.config import Settings

# Development format: cleaner
DEV_FORMAT = "%(levelname)s:     %(name)s - %(message)s"

# Production format: full details, including the request id when present
PROD_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


class RequestIDFilter(logging.Filter):
    """Attach the current request id to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        from authcore.api.middleware import get_request_id

        if not hasattr(record, "request_id"):
            record.request_id = get_request_id() or "-"
        return True


def get_uvicorn_log_config(settings: Settings) -> dict:
    """Get uvicorn log config based on environment."""
    is_dev = settings.is_development

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": '%(levelprefix)s "%(request_line)s" %(status_code)s' if is_dev
                else '%(levelprefix)s %(client_addr)s - "%(request_line)s" %(status_code)s',
            },
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": "%(levelprefix)s %(message)s" if is_dev else "%(asctime)s %(levelprefix)s %(message)s",
            },
        },
        "handlers": {
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
            },
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn.access": {
                "handlers": ["access"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.error": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False,
            },
        },
        "root": {
            "handlers": ["default"],
            "level": settings.log_level,
        },
    }


def setup_logging(settings: Settings) -> None:
    """Configure logging for the application."""
    log_format = DEV_FORMAT if settings.is_development else PROD_FORMAT

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format=log_format,
        stream=sys.stdout,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestIDFilter())

    # Quiet noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosmtplib").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
