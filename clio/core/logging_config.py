"""Logging setup shared by the API process and ``clio-worker``.

Two correlation ids ride on every record when they are set: ``request_id``
(HTTP request context middleware) and ``job_id`` (the orchestrator, for one
job attempt). Analyzer, GitHub client and generator logs therefore carry the
job they belong to without passing it around.

Output is one JSON object per line (``LOG_FORMAT=json``) or a plain text
line with the ids appended (``LOG_FORMAT=text``). Installation tokens and
LLM keys are redacted before either formatter sees the message.
"""

import contextvars
import json
import logging
import re
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional, TextIO

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")
job_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("job_id", default="")

_CORRELATION_IDS = ("request_id", "job_id")

# Libraries that log every request at INFO.
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "LiteLLM")


@contextmanager
def job_context(job_id: str) -> Iterator[None]:
    """Tag every record logged inside the block (and tasks it spawns) with ``job_id``."""
    token = job_id_var.set(job_id)
    try:
        yield
    finally:
        job_id_var.reset(token)


class _ContextFilter(logging.Filter):
    """Copy the correlation ids from contextvars onto the record.

    An explicit ``extra={"job_id": ...}`` wins over the contextvar.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", ""):
            record.request_id = request_id_var.get()
        if not getattr(record, "job_id", ""):
            record.job_id = job_id_var.get()
        return True


_SECRET_PATTERNS = [
    re.compile(r'\bgh[pousr]_[a-zA-Z0-9]{20,}\b'),            # GitHub installation/user tokens
    re.compile(r'\bgithub_pat_[a-zA-Z0-9_]{20,}\b'),          # GitHub fine-grained PATs
    re.compile(r'\bsk-[a-zA-Z0-9_\-]{20,}\b'),                # OpenAI / Anthropic keys
    re.compile(r'(?i)(bearer\s+)[a-zA-Z0-9._\-]{20,}'),       # Authorization headers
    re.compile(r'(?i)((?:api_key|cron_secret|secret|token|authorization)[=:]\s*)[^\s,\'"]{8,}'),
]

_REDACTED = "***REDACTED***"


def redact(text: str) -> str:
    """Replace anything that looks like a credential. Prefixes such as ``Bearer`` are kept."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: (m.group(1) if m.lastindex else "") + _REDACTED, text)
    return text


class _SecretFilter(logging.Filter):
    """Redact the fully formatted message, so ``%s`` arguments are covered too."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Mismatched %-arguments; keep the raw template.
            message = str(record.msg)
        record.msg = redact(message)
        record.args = ()
        if record.exc_text:
            record.exc_text = redact(record.exc_text)
        return True


class _JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields become top-level keys."""

    _RESERVED = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in self._RESERVED or key in payload:
                continue
            if key in _CORRELATION_IDS and not value:
                continue
            payload[key] = value
        if record.exc_info:
            payload["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(payload, default=str)


class _TextFormatter(logging.Formatter):
    """``2026-01-01 12:00:00 INFO clio.worker: message [job_id=...]``"""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        ids = " ".join(f"{key}={getattr(record, key)}" for key in _CORRELATION_IDS if getattr(record, key, ""))
        return f"{line} [{ids}]" if ids else line

    def formatException(self, ei) -> str:
        return redact(super().formatException(ei))


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Install a single root handler. Safe to call again (handlers are replaced).

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL. Defaults to INFO.
        log_format: ``"json"`` (default) or ``"text"``.
        stream: Output stream, stdout by default.
    """
    level = (log_level or "INFO").upper()
    fmt = (log_format or "json").lower()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(_ContextFilter())
    handler.addFilter(_SecretFilter())
    handler.setFormatter(_JsonFormatter() if fmt == "json" else _TextFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug("Logging configured", extra={"level": level, "format": fmt})
