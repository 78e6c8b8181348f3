"""
Structured JSON logging (stdlib-only).

Goals:
- One JSON object per log line (stdout)
- Consistent core fields on every line:
  - service, env, version
  - session_id (the identity uid bound for the current task, when known)
  - event_type, severity
- `log_event` for semantic events with a stable `event_type`
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional, TextIO


_SESSION_ID: ContextVar[Optional[str]] = ContextVar("session_id", default=None)

_RESERVED_ATTRS: frozenset[str] = frozenset(
    {
        # logging.LogRecord built-ins
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        # our injected keys
        "service",
        "env",
        "version",
        "session_id",
        "event_type",
        "severity",
        "message",
        "timestamp",
    }
)


def _utc_ts() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clean_text(v: Any, *, max_len: int = 2000) -> str:
    try:
        s = "" if v is None else str(v)
    except Exception:
        s = ""
    s = s.replace("\n", " ").replace("\r", " ").strip()
    if len(s) > max_len:
        s = s[: max_len - 1] + "…"
    return s


def _env_any(*names: str, default: str = "unknown", max_len: int = 256) -> str:
    for name in names:
        v = os.getenv(name)
        if v is None:
            continue
        s = str(v).strip()
        if s:
            return _clean_text(s, max_len=max_len)
    return default


def _normalize_severity(level: str | int | None) -> str:
    if isinstance(level, int):
        return _normalize_severity(str(logging.getLevelName(level)))
    s = _clean_text(level or "INFO", max_len=16).upper()
    allowed = {"DEBUG", "INFO", "NOTICE", "WARNING", "ERROR", "CRITICAL"}
    if s in allowed:
        return s
    if s == "WARN":
        return "WARNING"
    if s == "FATAL":
        return "CRITICAL"
    return "INFO"


def default_service_name() -> str:
    return _env_any("SERVICE_NAME", "SERVICE", default="ledgersync", max_len=128)


def default_env_name() -> str:
    return _env_any("ENVIRONMENT", "ENV", "APP_ENV", default="unknown", max_len=64)


def default_version() -> str:
    return _env_any("APP_VERSION", "VERSION", default="unknown", max_len=128)


def get_session_id() -> Optional[str]:
    sid = _SESSION_ID.get()
    return _clean_text(sid, max_len=128) if sid else None


@contextmanager
def bind_session_id(session_id: str | None) -> Iterator[Optional[str]]:
    """
    Bind the identity uid for log lines emitted in the current context.
    """
    sid = _clean_text(session_id or "", max_len=128) or None
    token = _SESSION_ID.set(sid)
    try:
        yield sid
    finally:
        _SESSION_ID.reset(token)


class JsonLogFormatter(logging.Formatter):
    def __init__(self, *, service: str | None, env: str | None, version: str | None) -> None:
        super().__init__()
        self._service = _clean_text(service or default_service_name(), max_len=128) or "ledgersync"
        self._env = _clean_text(env or default_env_name(), max_len=64) or "unknown"
        self._version = _clean_text(version or default_version(), max_len=128) or "unknown"

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (format required by logging)
        severity = _normalize_severity(getattr(record, "severity", None) or record.levelname)
        event_type = _clean_text(getattr(record, "event_type", None) or "", max_len=128) or "log"
        sid = _clean_text(getattr(record, "session_id", None) or get_session_id() or "", max_len=128) or None

        payload: dict[str, Any] = {
            "timestamp": _utc_ts(),
            "severity": severity,
            "service": _clean_text(getattr(record, "service", None) or self._service, max_len=128),
            "env": _clean_text(getattr(record, "env", None) or self._env, max_len=64),
            "version": _clean_text(getattr(record, "version", None) or self._version, max_len=128),
            "session_id": sid,
            "event_type": event_type,
            "message": _clean_text(record.getMessage(), max_len=4000),
            "logger": _clean_text(record.name, max_len=256),
        }

        if record.exc_info:
            try:
                payload["exception"] = "".join(traceback.format_exception(*record.exc_info))[-8000:]
            except Exception:
                payload["exception"] = "exception_format_failed"
        elif record.stack_info:
            payload["stack"] = _clean_text(record.stack_info, max_len=8000)

        # Include any extra fields provided via logger.*(..., extra={...})
        for k, v in record.__dict__.items():
            if k in _RESERVED_ATTRS or k.startswith("_"):
                continue
            payload[str(k)] = v

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def init_structured_logging(
    *,
    service: str | None = None,
    env: str | None = None,
    version: str | None = None,
    level: str | int | None = None,
    stream: TextIO | None = None,
) -> None:
    """
    Configure stdlib logging to emit JSON lines (stdout unless `stream` is given).

    Safe to call multiple times (last call wins).
    """
    lvl = level or os.getenv("LOG_LEVEL", "INFO").upper()
    root = logging.getLogger()
    root.setLevel(lvl)

    root.handlers = []
    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setLevel(lvl)
    handler.setFormatter(JsonLogFormatter(service=service, env=env, version=version))
    root.addHandler(handler)

    logging.captureWarnings(True)
    # grpc/google client chatter stays at WARNING unless explicitly debugging.
    if str(lvl).upper() != "DEBUG":
        for name in ("google", "grpc", "urllib3"):
            logging.getLogger(name).setLevel(logging.WARNING)


def log_event(
    logger: logging.Logger,
    event_type: str,
    *,
    severity: str = "INFO",
    message: str | None = None,
    **fields: Any,
) -> None:
    """
    Convenience wrapper for semantic events with stable `event_type`.
    """
    lvl = getattr(logging, str(severity).upper(), logging.INFO)
    logger.log(
        lvl,
        message or event_type,
        extra={"event_type": _clean_text(event_type, max_len=128), **fields},
    )
