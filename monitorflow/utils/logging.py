"""
Structured JSON logging with correlation IDs and bound event context.

One JSON object per line:
{"timestamp", "level", "correlation_id", "module", "message", ...context}

The correlation ID is set per request by CorrelationIdMiddleware. Ingestion
binds the event/user ids once persisted; asyncio tasks copy the context, so
every fan-out branch logs them without passing `extra=` around.
"""
import json
import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
log_context_ctx: ContextVar[dict] = ContextVar("log_context", default={})

# Record attributes (logger `extra=`) promoted into the JSON line
CONTEXT_FIELDS = ("event_id", "user_id", "webhook_id", "category", "status_code")

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx")


def get_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()


def set_correlation_id(cid: str) -> None:
    correlation_id_ctx.set(cid)


def generate_correlation_id() -> str:
    """UUID4 hex, 32 chars."""
    return uuid.uuid4().hex


def bind_log_context(**fields: Any) -> None:
    """Attach fields to every log line emitted from the current context onwards."""
    merged = dict(log_context_ctx.get())
    merged.update({k: v for k, v in fields.items() if v is not None})
    log_context_ctx.set(merged)


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Scoped bind_log_context(); restores the previous context on exit."""
    token = log_context_ctx.set({**log_context_ctx.get(), **fields})
    try:
        yield
    finally:
        log_context_ctx.reset(token)


class StructuredJsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).strftime(
                "%Y-%m-%dT%H:%M:%S.%fZ"
            ),
            "level": record.levelname,
            "correlation_id": get_correlation_id(),
            "module": record.name,
            "message": record.getMessage(),
        }
        entry.update(log_context_ctx.get())

        # Explicit extra= wins over bound context
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


def configure_structured_logging(log_level: str = "INFO") -> None:
    """Install a single JSON stream handler on the root logger. Call once at startup."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(StructuredJsonFormatter())
    root_logger.addHandler(stream_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
