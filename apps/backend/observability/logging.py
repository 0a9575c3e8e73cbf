"""
Process-wide logging: JSON records in production, a readable line format
locally, both tagged with the request id of the HTTP request being served.

Fan-out work runs in tasks spawned from the request handler, so the request
id lives in a ContextVar and follows those tasks automatically.

Usage:
    from observability import get_logger

    logger = get_logger(__name__)
    logger.info("Aggregation complete", extra={"total_sources": 3, "failed_sources": 1})
"""

import logging
import os
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

from pythonjsonlogger import jsonlogger

from utils.security import redact_secrets_from_text

SERVICE_NAME = "federated-aggregator"
NO_REQUEST = "-"

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Record attributes that may carry credentials when passed through ``extra``
_SECRET_FIELDS = frozenset({
    "api_key",
    "x-api-key",
    "x_api_key",
    "node_registry_api_key",
    "authorization",
    "token",
    "secret",
})


def get_correlation_id() -> Optional[str]:
    return _request_id.get()


def new_correlation_id() -> str:
    return f"req-{uuid.uuid4().hex[:16]}"


@contextmanager
def correlation_id_context(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a request id (given or freshly generated) for the duration of the block."""
    value = correlation_id or new_correlation_id()
    token = _request_id.set(value)
    try:
        yield value
    finally:
        _request_id.reset(token)


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_REQUEST
        return True


class RedactionFilter(logging.Filter):
    """
    Masks credentials before a record is formatted.

    httpx exceptions quote the full request URL, so the message text is
    scrubbed as well as secret-named ``extra`` fields.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_secrets_from_text(record.msg)
        if record.args:
            record.args = _mask(record.args)
        for key in list(vars(record)):
            if key.lower() in _SECRET_FIELDS:
                setattr(record, key, "[REDACTED]")
        return True


def _mask(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: "[REDACTED]" if str(k).lower() in _SECRET_FIELDS else _mask(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_mask(v) for v in value)
    return value


class AggregatorJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["correlation_id"] = getattr(record, "correlation_id", NO_REQUEST)
        log_record["service"] = SERVICE_NAME
        log_record["environment"] = os.getenv("ENVIRONMENT", "development")


def _formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return AggregatorJsonFormatter(
            "%(asctime)s %(level)s %(logger)s %(correlation_id)s %(message)s",
            rename_fields={"asctime": "@timestamp"},
        )
    return logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def setup_logging() -> None:
    """
    Install a single stderr handler on the root logger.

    LOG_LEVEL picks the level (INFO). LOG_FORMAT is ``json`` or ``text``;
    it defaults to json when ENVIRONMENT=production and text otherwise.
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    default_format = "json" if os.getenv("ENVIRONMENT") == "production" else "text"
    log_format = os.getenv("LOG_FORMAT", default_format).lower()

    handler = logging.StreamHandler()
    handler.setFormatter(_formatter(log_format))
    handler.addFilter(RequestContextFilter())
    handler.addFilter(RedactionFilter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    # Node requests are logged by the fetcher; per-request client logs are noise
    for noisy in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


setup_logging()
