"""
Environment-driven settings for the trade bridge.

Nested settings use the `SECTION__KEY` convention (e.g. `ALPACA__KEY_ID`), with the
conventional Alpaca names (`APCA_API_KEY_ID`, ...) accepted as fallbacks.
Settings are read once at startup; a `ConfigError` is fatal.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional
from urllib.parse import urlparse

from trader.common.errors import ConfigError


DEFAULT_TRADING_HOST = "https://paper-api.alpaca.markets"
DEFAULT_SUBSCRIPTION_ID = "intended-trades"

_TRUE = {"1", "true", "t", "yes", "y", "on"}
_FALSE = {"0", "false", "f", "no", "n", "off"}


def _first_env(env: Mapping[str, str], *names: str) -> Optional[str]:
    for n in names:
        v = env.get(n)
        if v is not None and str(v).strip():
            return str(v).strip()
    return None


def _parse_bool(name: str, raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    s = raw.strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ConfigError(f"Invalid boolean for {name}: {raw!r}")


def _parse_int(name: str, raw: Optional[str], default: int, *, minimum: int = 0) -> int:
    if raw is None:
        return default
    try:
        v = int(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid integer for {name}: {raw!r}") from e
    if v < minimum:
        raise ConfigError(f"{name} must be >= {minimum} (got {v})")
    return v


def _parse_float(name: str, raw: Optional[str], default: float) -> float:
    if raw is None:
        return default
    try:
        v = float(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid number for {name}: {raw!r}") from e
    if v < 0:
        raise ConfigError(f"{name} must be >= 0 (got {v})")
    return v


def _norm_host(host: str) -> str:
    host = host.strip()
    return host[:-1] if host.endswith("/") else host


@dataclass(frozen=True)
class AlpacaSettings:
    base_url: str = DEFAULT_TRADING_HOST
    key_id: str = ""
    secret_key: str = ""
    request_timeout_s: float = 10.0

    @property
    def trading_base_v2(self) -> str:
        return f"{self.base_url}/v2"

    @property
    def is_paper(self) -> bool:
        return "paper-api.alpaca.markets" in (urlparse(self.base_url).netloc or "").lower()


@dataclass(frozen=True)
class PubSubSettings:
    project_id: str = ""
    subscription_id: str = DEFAULT_SUBSCRIPTION_ID


@dataclass(frozen=True)
class RetrySettings:
    max_attempts: int = 3
    initial_backoff_s: float = 0.5
    max_backoff_s: float = 5.0
    retry_all_errors: bool = False


@dataclass(frozen=True)
class TraderSettings:
    alpaca: AlpacaSettings = field(default_factory=AlpacaSettings)
    pubsub: PubSubSettings = field(default_factory=PubSubSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    max_concurrency: int = 10
    allow_legacy_bare_intent: bool = False
    dry_run: bool = False
    shutdown_grace_s: float = 10.0

    @staticmethod
    def from_env(env: Optional[Mapping[str, str]] = None) -> "TraderSettings":
        e = os.environ if env is None else env

        dry_run = _parse_bool("TRADER_DRY_RUN", _first_env(e, "TRADER_DRY_RUN"), False)

        base_url = _norm_host(
            _first_env(e, "ALPACA__BASE_URL", "APCA_API_BASE_URL") or DEFAULT_TRADING_HOST
        )
        if urlparse(base_url).scheme.lower() != "https":
            raise ConfigError(f"Alpaca base URL must be https: {base_url!r}")
        key_id = _first_env(e, "ALPACA__KEY_ID", "APCA_API_KEY_ID") or ""
        secret_key = _first_env(e, "ALPACA__SECRET_KEY", "APCA_API_SECRET_KEY") or ""
        if not dry_run and not (key_id and secret_key):
            raise ConfigError(
                "Missing Alpaca credentials: set ALPACA__KEY_ID and ALPACA__SECRET_KEY "
                "(or APCA_API_KEY_ID / APCA_API_SECRET_KEY), or enable TRADER_DRY_RUN"
            )

        alpaca = AlpacaSettings(
            base_url=base_url,
            key_id=key_id,
            secret_key=secret_key,
            request_timeout_s=_parse_float(
                "ALPACA__REQUEST_TIMEOUT_S", _first_env(e, "ALPACA__REQUEST_TIMEOUT_S"), 10.0
            ),
        )
        pubsub = PubSubSettings(
            project_id=_first_env(e, "PUBSUB__PROJECT_ID", "GOOGLE_CLOUD_PROJECT", "GCP_PROJECT") or "",
            subscription_id=_first_env(e, "PUBSUB__SUBSCRIPTION_ID") or DEFAULT_SUBSCRIPTION_ID,
        )
        retry = RetrySettings(
            max_attempts=_parse_int(
                "TRADER_SUBMIT_MAX_ATTEMPTS", _first_env(e, "TRADER_SUBMIT_MAX_ATTEMPTS"), 3, minimum=1
            ),
            initial_backoff_s=_parse_float(
                "TRADER_SUBMIT_INITIAL_BACKOFF_S", _first_env(e, "TRADER_SUBMIT_INITIAL_BACKOFF_S"), 0.5
            ),
            max_backoff_s=_parse_float(
                "TRADER_SUBMIT_MAX_BACKOFF_S", _first_env(e, "TRADER_SUBMIT_MAX_BACKOFF_S"), 5.0
            ),
            retry_all_errors=_parse_bool(
                "TRADER_SUBMIT_RETRY_ALL_ERRORS", _first_env(e, "TRADER_SUBMIT_RETRY_ALL_ERRORS"), False
            ),
        )
        if retry.max_backoff_s < retry.initial_backoff_s:
            raise ConfigError("TRADER_SUBMIT_MAX_BACKOFF_S must be >= TRADER_SUBMIT_INITIAL_BACKOFF_S")

        return TraderSettings(
            alpaca=alpaca,
            pubsub=pubsub,
            retry=retry,
            max_concurrency=_parse_int(
                "TRADER_MAX_CONCURRENCY", _first_env(e, "TRADER_MAX_CONCURRENCY"), 10
            ),
            allow_legacy_bare_intent=_parse_bool(
                "ALLOW_LEGACY_BARE_INTENT", _first_env(e, "ALLOW_LEGACY_BARE_INTENT"), False
            ),
            dry_run=dry_run,
            shutdown_grace_s=_parse_float(
                "TRADER_SHUTDOWN_GRACE_S", _first_env(e, "TRADER_SHUTDOWN_GRACE_S"), 10.0
            ),
        )
