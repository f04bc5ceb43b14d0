"""
Structured JSON logging for the trade bridge (stdlib-only).

Goals:
- One JSON object per log line (stdout)
- Consistent core fields on every line:
  - service, env, version, sha
  - message_id (the bus message currently being handled, when bound)
  - event_type, severity
- A single, explicit initialization call at process start (`init_structured_logging`).
  Components receive a `logging.Logger` handle instead of configuring logging themselves.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Optional
from uuid import UUID

from trader.common.errors import ConfigError


_MESSAGE_ID: ContextVar[Optional[str]] = ContextVar("message_id", default=None)

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
        "asctime",
        # our injected keys
        "service",
        "env",
        "version",
        "sha",
        "message_id",
        "event_type",
        "severity",
        "message",
        "timestamp",
    }
)


def _utc_ts() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clean_text(v: Any, *, max_len: int = 2000) -> str:
    s = "" if v is None else str(v)
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
    if s in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return s
    if s == "WARN":
        return "WARNING"
    if s == "FATAL":
        return "CRITICAL"
    return "INFO"


def _to_jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return _to_jsonable(asdict(value))
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_jsonable(v) for v in value]
    return str(value)


def default_service_name() -> str:
    return _env_any("SERVICE_NAME", "SERVICE", "K_SERVICE", default="trader", max_len=128)


def default_env_name() -> str:
    return _env_any("ENVIRONMENT", "ENV", "APP_ENV", default="unknown", max_len=64)


def default_sha() -> str:
    return _env_any("GIT_SHA", "GITHUB_SHA", "COMMIT_SHA", default="unknown", max_len=64)


def default_version() -> str:
    return _env_any("APP_VERSION", "VERSION", "K_REVISION", default="unknown", max_len=128)


def get_message_id() -> Optional[str]:
    return _MESSAGE_ID.get()


@contextmanager
def bind_message_id(message_id: str | None) -> Iterator[Optional[str]]:
    """
    Tag every log line emitted inside the block (in this task) with `message_id`.

    ContextVars are copied per asyncio task, so concurrent handlers never see
    each other's ids.
    """
    mid = _clean_text(message_id or "", max_len=128) or None
    token = _MESSAGE_ID.set(mid)
    try:
        yield mid
    finally:
        _MESSAGE_ID.reset(token)


class JsonLogFormatter(logging.Formatter):
    def __init__(self, *, service: str | None, env: str | None, version: str | None, sha: str | None) -> None:
        super().__init__()
        self._service = _clean_text(service or default_service_name(), max_len=128) or "trader"
        self._env = _clean_text(env or default_env_name(), max_len=64) or "unknown"
        self._version = _clean_text(version or default_version(), max_len=128) or "unknown"
        self._sha = _clean_text(sha or default_sha(), max_len=64) or "unknown"

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (format required by logging)
        severity = _normalize_severity(getattr(record, "severity", None) or record.levelname)
        event_type = _clean_text(getattr(record, "event_type", None) or "", max_len=128) or "log"
        mid = _clean_text(getattr(record, "message_id", None) or get_message_id() or "", max_len=128) or None

        payload: dict[str, Any] = {
            "timestamp": _utc_ts(),
            "severity": severity,
            "service": self._service,
            "env": self._env,
            "version": self._version,
            "sha": self._sha,
            "message_id": mid,
            "event_type": event_type,
            "message": _clean_text(record.getMessage(), max_len=4000),
            "logger": _clean_text(record.name, max_len=256),
        }

        if record.exc_info:
            payload["exception"] = "".join(traceback.format_exception(*record.exc_info))[-8000:]
        elif record.stack_info:
            payload["stack"] = _clean_text(record.stack_info, max_len=8000)

        # Include any extra fields provided via logger.*(..., extra={...})
        for k, v in record.__dict__.items():
            if k in _RESERVED_ATTRS or k.startswith("_"):
                continue
            payload[str(k)] = _to_jsonable(v)

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def _resolve_level(level: str | int) -> str | int:
    if isinstance(level, int):
        return level
    s = str(level).strip().upper()
    if s == "WARN":
        return "WARNING"
    if s in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return s
    raise ConfigError(f"Invalid log level: {level!r}")


def init_structured_logging(
    *,
    service: str | None = None,
    env: str | None = None,
    version: str | None = None,
    sha: str | None = None,
    level: str | int | None = None,
) -> logging.Logger:
    """
    Configure stdlib logging to emit JSON lines to stdout.

    Call once at process start; returns the service logger handle that callers
    pass into the dispatcher. Safe to call multiple times (last call wins).
    """
    lvl = _resolve_level(level or os.getenv("LOG_LEVEL") or "INFO")
    root = logging.getLogger()
    root.setLevel(lvl)

    # Replace handlers to ensure JSON output.
    root.handlers = []
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(lvl)
    handler.setFormatter(JsonLogFormatter(service=service, env=env, version=version, sha=sha))
    root.addHandler(handler)

    logging.captureWarnings(True)
    # google-cloud-pubsub is chatty at INFO about stream lifecycle.
    logging.getLogger("google.cloud.pubsub_v1").setLevel(logging.WARNING)
    return logging.getLogger("trader")


def log_event(
    logger: logging.Logger,
    event_type: str,
    *,
    severity: str = "INFO",
    message: str | None = None,
    exc_info: Any = None,
    **fields: Any,
) -> None:
    """
    Convenience wrapper for semantic events with stable `event_type`.
    """
    lvl = getattr(logging, str(severity).upper(), logging.INFO)
    logger.log(
        lvl,
        message or event_type,
        exc_info=exc_info,
        extra={"event_type": _clean_text(event_type, max_len=128), **fields},
    )
