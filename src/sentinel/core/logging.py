"""Structured logging for the rollback engine.

Development runs get colourised console lines; ``ENV=production`` switches
to one JSON document per line with the active trace id attached.
"""
import sys
import json
import logging
from contextvars import ContextVar
from typing import Optional

from loguru import logger as loguru_logger
from opentelemetry import trace

from src.sentinel.core.config import settings

# Correlation id of the current request, set by RequestContextMiddleware
trace_id: ContextVar[str] = ContextVar("trace_id", default="")

_DEV_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)

_INTERCEPTED_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "fastapi", "httpx")


def get_trace_id() -> str:
    """Trace id of the recording OpenTelemetry span, else the request correlation id."""
    span = trace.get_current_span()
    if span and span.is_recording():
        span_context = span.get_span_context()
        if span_context.is_valid:
            return format(span_context.trace_id, "032x")

    return trace_id.get() or "no-trace"


class InterceptHandler(logging.Handler):
    """Route stdlib log records into loguru."""

    def emit(self, record):
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def json_formatter(record):
    """Render a loguru record as a single JSON line."""
    entry = {
        "timestamp": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
        "level": record["level"].name,
        "message": record["message"],
        "trace_id": get_trace_id(),
        "service": settings.PROJECT_NAME,
        "module": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    if record["exception"]:
        exc = record["exception"]
        entry["exception"] = {
            "type": exc.type.__name__ if exc.type else "Unknown",
            "value": str(exc.value) if exc.value else "",
        }

    # bound context (deployment version, rollback trigger, ...)
    if record["extra"]:
        entry.update({k: v for k, v in record["extra"].items() if k not in entry})

    # loguru treats the returned string as a format template
    return json.dumps(entry, default=str).replace("{", "{{").replace("}", "}}") + "\n"


def setup_logging(level: Optional[str] = None) -> None:
    """Install loguru sinks and intercept stdlib logging.

    Args:
        level: Explicit log level; defaults to DEBUG/INFO from settings
    """
    log_level = level or ("DEBUG" if settings.DEBUG else "INFO")

    loguru_logger.remove()

    if settings.ENV == "production":
        loguru_logger.add(
            sys.stderr,
            format=json_formatter,
            level=log_level,
            serialize=False,
        )
    else:
        loguru_logger.add(
            sys.stderr,
            format=_DEV_FORMAT,
            level=log_level,
            colorize=True,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for logger_name in _INTERCEPTED_LOGGERS:
        logging.getLogger(logger_name).handlers = [InterceptHandler()]


logger = loguru_logger
