"""Structured logging configuration for IsoCanvas.

JSON lines for production, readable text for development. While a delta
stream is being ingested, every record carries that stream's session id
(see ``bound_session``), so a streaming session can be followed across
ingestion, autosave and repository logs.
"""

import contextvars
import json
import logging
import re
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional


session_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("session_id", default="")

# Attributes every LogRecord has; anything else on a record came from ``extra=``.
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


@contextmanager
def bound_session(session_id: str) -> Iterator[None]:
    """Tag log records emitted inside the block with *session_id*."""
    token = session_id_var.set(session_id)
    try:
        yield
    finally:
        session_id_var.reset(token)


def _extra_fields(record: logging.LogRecord) -> dict:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}


class _JsonFormatter(logging.Formatter):
    """One JSON object per record.

    ``logger.info("Created version", extra={"document_id": "doc1"})`` yields
    ``{"message": "Created version", "document_id": "doc1", ...}``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        session_id = session_id_var.get()
        if session_id:
            payload["session_id"] = session_id
        for key, value in _extra_fields(record).items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class _TextFormatter(logging.Formatter):
    """``time - logger - LEVEL - message [session] key=value ...``"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        session_id = session_id_var.get()
        if session_id:
            line += f" [{session_id}]"
        extras = _extra_fields(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())
        return line


# Bearer tokens and key=value secrets; the document API token must never reach the logs.
_SECRET_PATTERNS = [
    re.compile(r'(?i)(bearer\s+)[a-zA-Z0-9._\-]{8,}'),
    re.compile(
        r'(?i)((?:api_key|api_token|secret|password|token|authorization)[=:]\s*)[^\s,\'"]{8,}'
    ),
]

_REDACTED = "***REDACTED***"


def redact(text: str) -> str:
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + _REDACTED, text)
    return text


class _SecretFilter(logging.Filter):
    """Redact secrets from the message, its %-args and exception text."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            # httpx errors passed as args carry request URLs and headers.
            record.msg = record.getMessage()
            record.args = None
        record.msg = redact(str(record.msg))
        if record.exc_text:
            record.exc_text = redact(record.exc_text)
        return True


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure application-wide logging.

    Args:
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL. Defaults to INFO.
        log_format: ``"json"`` for structured output, ``"text"`` for human-readable.
                    Defaults to ``"json"``.
    """
    level = (log_level or "INFO").upper()
    fmt = (log_format or "json").lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_SecretFilter())
    handler.setFormatter(_JsonFormatter() if fmt == "json" else _TextFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("httpx", "httpcore", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging configured", extra={"level": level, "format": fmt})
