import pytest

from trader.common.config import DEFAULT_SUBSCRIPTION_ID, DEFAULT_TRADING_HOST, TraderSettings
from trader.common.errors import ConfigError


_CREDS = {"ALPACA__KEY_ID": "k", "ALPACA__SECRET_KEY": "s"}


def test_defaults():
    s = TraderSettings.from_env(dict(_CREDS))
    assert s.alpaca.base_url == DEFAULT_TRADING_HOST
    assert s.alpaca.trading_base_v2 == "https://paper-api.alpaca.markets/v2"
    assert s.alpaca.is_paper is True
    assert s.pubsub.subscription_id == DEFAULT_SUBSCRIPTION_ID
    assert s.max_concurrency == 10
    assert s.retry.max_attempts == 3
    assert s.retry.retry_all_errors is False
    assert s.allow_legacy_bare_intent is False
    assert s.dry_run is False


def test_nested_names_take_precedence_over_apca_names():
    s = TraderSettings.from_env(
        {
            "ALPACA__KEY_ID": "nested",
            "APCA_API_KEY_ID": "legacy",
            "APCA_API_SECRET_KEY": "legacy_secret",
            "ALPACA__BASE_URL": "https://api.alpaca.markets/",
        }
    )
    assert s.alpaca.key_id == "nested"
    assert s.alpaca.secret_key == "legacy_secret"
    assert s.alpaca.base_url == "https://api.alpaca.markets"
    assert s.alpaca.is_paper is False


def test_missing_credentials_is_fatal():
    with pytest.raises(ConfigError):
        TraderSettings.from_env({})


def test_dry_run_does_not_need_credentials():
    s = TraderSettings.from_env({"TRADER_DRY_RUN": "true"})
    assert s.dry_run is True
    assert s.alpaca.key_id == ""


def test_overrides():
    s = TraderSettings.from_env(
        {
            **_CREDS,
            "PUBSUB__PROJECT_ID": "proj",
            "PUBSUB__SUBSCRIPTION_ID": "trades-sub",
            "TRADER_MAX_CONCURRENCY": "0",
            "TRADER_SUBMIT_MAX_ATTEMPTS": "5",
            "TRADER_SUBMIT_INITIAL_BACKOFF_S": "0.1",
            "TRADER_SUBMIT_MAX_BACKOFF_S": "1.5",
            "TRADER_SUBMIT_RETRY_ALL_ERRORS": "yes",
            "ALLOW_LEGACY_BARE_INTENT": "1",
            "TRADER_SHUTDOWN_GRACE_S": "3",
        }
    )
    assert s.pubsub.project_id == "proj"
    assert s.pubsub.subscription_id == "trades-sub"
    assert s.max_concurrency == 0
    assert s.retry.max_attempts == 5
    assert s.retry.initial_backoff_s == 0.1
    assert s.retry.max_backoff_s == 1.5
    assert s.retry.retry_all_errors is True
    assert s.allow_legacy_bare_intent is True
    assert s.shutdown_grace_s == 3.0


@pytest.mark.parametrize(
    "env",
    [
        {"TRADER_MAX_CONCURRENCY": "ten"},
        {"TRADER_MAX_CONCURRENCY": "-1"},
        {"TRADER_SUBMIT_MAX_ATTEMPTS": "0"},
        {"TRADER_SUBMIT_INITIAL_BACKOFF_S": "-0.5"},
        {"TRADER_SUBMIT_INITIAL_BACKOFF_S": "2", "TRADER_SUBMIT_MAX_BACKOFF_S": "1"},
        {"TRADER_DRY_RUN": "maybe"},
        {"ALPACA__BASE_URL": "http://paper-api.alpaca.markets"},
    ],
)
def test_invalid_values_raise_config_error(env):
    with pytest.raises(ConfigError):
        TraderSettings.from_env({**_CREDS, **env})
