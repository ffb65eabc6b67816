"""Main entry point orchestrating the price monitor."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

from alerts.dispatcher import NotificationDispatcher
from alerts.mailer import build_notifier
from connectors import FxRateCache, build_provider_registry
from core.assets import AssetCategory, AssetDescriptor
from core.event_bus import EventBus
from core.gold_cache import GoldPriceCache
from core.health import ProviderHealth
from core.monitor import PriceMonitor
from core.resolver import AssetPriceResolver
from core.scheduler import CycleScheduler
from core.snapshot import SnapshotBuilder
from rules.config_loader import AppConfig, load_config, load_environment
from rules.price_alerts import AlertEvaluator
from storage.history import HistoryStore
from storage.migrate import initialize_database

LOGGER = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Crypto and gold price monitor")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run a single monitoring cycle")
    mode.add_argument("--loop", action="store_true", help="Run cycles on the configured interval")
    parser.add_argument("--init-db", action="store_true", help="Create database tables and exit")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--env-file", type=Path, default=None, help="Path to .env (default: repo root)")
    return parser.parse_args(list(argv) if argv is not None else None)


def check_provider_ids(assets: Iterable[AssetDescriptor], known: Iterable[str]) -> None:
    registered = set(known)
    for asset in assets:
        unknown = [name for name in asset.providers if name not in registered]
        if unknown:
            raise ValueError(f"{asset.symbol}: unknown provider(s) {', '.join(unknown)}")


def _prime_gold_cache(cache: GoldPriceCache, history: HistoryStore) -> None:
    try:
        row = history.latest(cache.asset.symbol, source="live")
    except sqlite3.Error:
        LOGGER.exception("Could not read last gold price from history")
        return
    if row:
        cache.prime(row["price"], row["ts"], row.get("provider"))
        LOGGER.info("Gold cache primed from history: %s %s at %s", row["price"], row["currency"], row["ts"])


def build_monitor(config: AppConfig) -> PriceMonitor:
    event_bus = EventBus()
    health = ProviderHealth().attach(event_bus)
    timeout = config.providers.timeout_seconds
    fx = FxRateCache(refresh_interval=config.gold.fx_refresh_seconds, timeout=timeout)
    providers = build_provider_registry(
        timeout=timeout,
        fx=fx,
        metalprice_key=config.gold.metalprice_key,
        alphavantage_key=config.gold.alphavantage_key,
    )
    check_provider_ids(config.assets, providers)

    resolver = AssetPriceResolver(
        providers,
        inter_provider_delay=config.providers.inter_provider_delay_seconds,
        event_bus=event_bus,
    )
    history = HistoryStore(retention_seconds=config.monitor.retention_seconds)
    gold_asset = next((a for a in config.assets if a.category is AssetCategory.COMMODITY), None)
    gold_cache: Optional[GoldPriceCache] = None
    if gold_asset is not None:
        gold_cache = GoldPriceCache(gold_asset, resolver, ttl_seconds=config.gold.ttl_seconds)
        _prime_gold_cache(gold_cache, history)

    builder = SnapshotBuilder(
        config.assets,
        resolver,
        gold_cache=gold_cache,
        asset_deadline=config.monitor.asset_deadline_seconds,
    )
    dispatcher = NotificationDispatcher(build_notifier(config.email), event_bus=event_bus)
    return PriceMonitor(
        builder=builder,
        history=history,
        evaluator=AlertEvaluator(config.assets),
        dispatcher=dispatcher,
        health=health,
    )


async def run_once(monitor: PriceMonitor) -> None:
    await monitor.run_cycle()


async def loop_forever(monitor: PriceMonitor, interval_seconds: float) -> None:
    scheduler = CycleScheduler(monitor.run_cycle, interval_seconds=interval_seconds)
    await scheduler.run_forever()


def run_async(entry: Callable[[], Awaitable[None]]) -> None:
    try:
        asyncio.run(entry())
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user.")


def main(argv: Optional[Iterable[str]] = None) -> None:
    configure_logging()
    args = parse_args(argv)
    # ALERT_DB_PATH may come from .env, so it is loaded before the store is opened.
    load_environment(args.env_file)
    try:
        initialize_database()
    except (sqlite3.Error, OSError) as exc:
        LOGGER.critical("Cannot open price database: %s", exc)
        raise SystemExit(1) from exc
    if args.init_db:
        return
    if not (args.once or args.loop):
        raise SystemExit("Specify --once, --loop or --init-db")

    try:
        config = load_config(args.config, args.env_file)
        monitor = build_monitor(config)
    except (OSError, ValueError, TypeError) as exc:
        LOGGER.critical("Invalid configuration: %s", exc)
        raise SystemExit(1) from exc

    if args.once:
        run_async(lambda: run_once(monitor))
    else:
        run_async(lambda: loop_forever(monitor, config.monitor.interval_seconds))


if __name__ == "__main__":
    main()
