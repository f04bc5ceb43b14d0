"""
Trader process entry point.

    python -m trader --project my-gcp-project --subscription intended-trades

Startup order: parse args → init logging (once) → load settings → build broker
and bus stream → consume until the stream ends or SIGTERM/SIGINT arrives.
A configuration error exits with status 2 before anything is consumed.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from dataclasses import replace
from typing import Any, Optional, Sequence

from trader import __version__
from trader.brokers import Broker
from trader.brokers.alpaca.client import AlpacaBroker, DryRunBroker
from trader.common.config import TraderSettings
from trader.common.errors import ConfigError
from trader.common.logging import init_structured_logging, log_event
from trader.execution.dispatcher import ExecutionDispatcher
from trader.execution.retry import RetryPolicy
from trader.messaging.subscriber import PubSubMessageStream


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trader", description="Message bus → Alpaca order bridge")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-p", "--project", help="Pub/Sub project id (overrides PUBSUB__PROJECT_ID)")
    parser.add_argument("-s", "--subscription", help="Pub/Sub subscription id (overrides PUBSUB__SUBSCRIPTION_ID)")
    parser.add_argument(
        "-c",
        "--max-concurrency",
        type=int,
        help="Maximum messages handled concurrently; 0 = unbounded (overrides TRADER_MAX_CONCURRENCY)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Never route orders to the broker (overrides TRADER_DRY_RUN)",
    )
    parser.add_argument("--log-level", help="Log level (overrides LOG_LEVEL)")
    return parser


def load_settings(args: argparse.Namespace) -> TraderSettings:
    env_overrides: dict[str, str] = {}
    if args.dry_run:
        # Credentials are only required when orders are actually routed.
        env_overrides["TRADER_DRY_RUN"] = "1"
    settings = TraderSettings.from_env({**os.environ, **env_overrides})

    pubsub = settings.pubsub
    if args.project:
        pubsub = replace(pubsub, project_id=args.project)
    if args.subscription:
        pubsub = replace(pubsub, subscription_id=args.subscription)
    if not pubsub.project_id:
        raise ConfigError("Missing Pub/Sub project id: set PUBSUB__PROJECT_ID or pass --project")

    max_concurrency = settings.max_concurrency
    if args.max_concurrency is not None:
        if args.max_concurrency < 0:
            raise ConfigError("--max-concurrency must be >= 0")
        max_concurrency = args.max_concurrency

    return replace(settings, pubsub=pubsub, max_concurrency=max_concurrency)


def build_broker(settings: TraderSettings) -> Broker:
    if settings.dry_run:
        return DryRunBroker()
    return AlpacaBroker(settings.alpaca)


async def run(settings: TraderSettings, *, logger: logging.Logger, stream: Any = None) -> None:
    broker = build_broker(settings)
    if stream is None:
        stream = PubSubMessageStream(
            project_id=settings.pubsub.project_id,
            subscription_id=settings.pubsub.subscription_id,
        )
    dispatcher = ExecutionDispatcher(
        broker,
        logger=logger,
        retry_policy=RetryPolicy.from_settings(settings.retry),
        max_concurrency=settings.max_concurrency,
        allow_legacy_bare_intent=settings.allow_legacy_bare_intent,
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(signum: int, _frame: Any | None = None) -> None:
        log_event(logger, "shutdown.signal", message=f"Received signal {signum}; stopping intake", signum=signum)
        loop.call_soon_threadsafe(stop_event.set)

    installed: list[signal.Signals] = []
    for s in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(s, _handle_signal, int(s), None)
            installed.append(s)
        except NotImplementedError:
            signal.signal(s, _handle_signal)

    log_event(
        logger,
        "startup",
        message="Trader starting",
        subscription=f"{settings.pubsub.project_id}/{settings.pubsub.subscription_id}",
        trading_host=settings.alpaca.base_url,
        paper=settings.alpaca.is_paper,
        dry_run=settings.dry_run,
        max_concurrency=settings.max_concurrency,
        max_attempts=settings.retry.max_attempts,
    )
    try:
        await dispatcher.run(
            stream.stream(),
            stop_event=stop_event,
            shutdown_grace_s=settings.shutdown_grace_s,
        )
    finally:
        for s in installed:
            loop.remove_signal_handler(s)
        close = getattr(stream, "close", None)
        if callable(close):
            close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        logger = init_structured_logging(service="trader", version=__version__, level=args.log_level)
    except ConfigError as e:
        logger = init_structured_logging(service="trader", version=__version__, level="INFO")
        log_event(logger, "startup.config_error", severity="CRITICAL", message=f"Invalid configuration: {e}")
        return 2

    try:
        settings = load_settings(args)
    except ConfigError as e:
        log_event(logger, "startup.config_error", severity="CRITICAL", message=f"Invalid configuration: {e}")
        return 2

    try:
        asyncio.run(run(settings, logger=logger))
    except Exception as e:
        log_event(logger, "fatal", severity="CRITICAL", message=f"An error occurred: {e!r}", exc_info=True)
        return 1
    log_event(logger, "shutdown.complete", message="Done!")
    return 0
