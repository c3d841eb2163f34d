"""
JSON logging for the API and the Celery worker.

Every line is one JSON object: ts, level, logger, message (a snake_case event name)
plus whitelisted extra fields. The request id set by RequestLogMiddleware is attached
to every record emitted while that request is being handled, so purchase and webhook
events can be joined with their http_request line.
"""
import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from app.core.config import settings


request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Loggers that log every outgoing request at INFO; URLs carry order ids
NOISY_LOGGERS = ("httpx", "httpcore")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        return True


class JsonFormatter(logging.Formatter):
    """JSON log formatter with support for extra fields."""

    # Only these extras are emitted; anything else passed in extra= is dropped
    EXTRA_FIELDS = (
        "request_id", "path", "method", "status_code", "latency_ms",
        "user_id", "story_id", "order_id", "amount", "status",
        "transaction_status", "fraud_status", "applied", "error",
        "checked", "resolved",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "env": settings.app_env,
            "message": record.getMessage(),
        }

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> None:
    formatter = JsonFormatter()
    request_filter = RequestIdFilter()

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.addFilter(request_filter)
    handlers: list[logging.Handler] = [handler]
    if settings.log_file:
        file_handler = RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(request_filter)
        handlers.append(file_handler)

    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    root.handlers = handlers
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
