"""Async runtime harness that ties ingest, rules, and alert delivery together."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from contextlib import suppress
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from dotenv import load_dotenv

from alerts import EventNotifier, LoggingNotifier
from chain import ChainClient, ReceiptResolver, TimestampCache
from common import CanonicalEvent, EventBus, load_config, setup_logging
from common.config import as_float, as_int, as_mapping, as_str
from ingest import (
    LISTENERS,
    IngestClient,
    LooksRareAPI,
    OrderBookPoller,
    WatchSetScheduler,
    build_ownership_lookup,
)
from rules import FloorConfig, FloorOfferEngine
from rules.floor import DEFAULT_LOWER_BOUND, DEFAULT_UPPER_BOUND
from storage import InMemoryStore, Store
from storage.memory import DEFAULT_MAX_EVENTS

logger = logging.getLogger(__name__)


def _as_decimal(value: object, default: Decimal) -> Decimal:
    try:
        if value is None:
            return default
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def _log_level_from_config(config: Mapping[str, Any]) -> tuple[int, Path | None]:
    logging_cfg = as_mapping(config.get("logging"))
    level_name = str(logging_cfg.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    file_value = logging_cfg.get("file")
    log_file = Path(file_value) if isinstance(file_value, (str, Path)) else None
    return level, log_file


def _build_floor_config(config: Mapping[str, Any]) -> FloorConfig:
    rules = as_mapping(config.get("rules"))
    floor_cfg = as_mapping(rules.get("floor"))
    return FloorConfig(
        lower_bound=_as_decimal(floor_cfg.get("lower_bound"), DEFAULT_LOWER_BOUND),
        upper_bound=_as_decimal(floor_cfg.get("upper_bound"), DEFAULT_UPPER_BOUND),
    )


def _build_store(config: Mapping[str, Any]) -> InMemoryStore:
    storage_cfg = as_mapping(config.get("storage"))
    max_events = as_int(storage_cfg.get("max_events"), DEFAULT_MAX_EVENTS)
    return InMemoryStore(max_events=max_events if max_events > 0 else DEFAULT_MAX_EVENTS)


def _build_chain(config: Mapping[str, Any]) -> tuple[ChainClient, ReceiptResolver] | None:
    chain_cfg = as_mapping(config.get("chain"))
    rpc_url = as_str(chain_cfg.get("rpc_url"))
    if not rpc_url:
        logger.warning("No chain.rpc_url configured; on-chain listeners disabled")
        return None
    chain = ChainClient(
        rpc_url, request_timeout=as_float(chain_cfg.get("request_timeout_seconds"), 30.0)
    )
    timestamps = TimestampCache(
        chain, capacity=as_int(chain_cfg.get("timestamp_cache_size"), 10_000)
    )
    return chain, ReceiptResolver(chain, timestamps)


class BotRuntime:
    """Coordinate listeners, the order-book poller, the engine and notifications."""

    def __init__(self, config_path: Path, store: Optional[Store] = None) -> None:
        self.config_path = config_path
        self.store = store
        self._stop_event = asyncio.Event()

    async def run(self) -> None:
        load_dotenv()
        config = load_config(self.config_path)

        level, log_file = _log_level_from_config(config)
        setup_logging(level, log_file)
        logger.info("Starting bot runtime", extra={"config": str(self.config_path)})

        store = self.store or _build_store(config)
        bus: EventBus[CanonicalEvent] = EventBus()
        notifier = EventNotifier(sink=LoggingNotifier())
        engine = FloorOfferEngine(
            bus=bus,
            store=store,
            config=_build_floor_config(config),
            on_event=notifier,
        )
        engine.start()
        # Let the engine subscribe before producers publish.
        await asyncio.sleep(0)

        chain_parts = _build_chain(config)
        clients = self._build_ingestors(config, bus, chain_parts)
        poller = self._build_poller(config, bus, store)
        if poller is not None:
            clients.append(poller)

        scheduler = self._build_scheduler(config, store)
        scheduler.add_listener(notifier.set_watch_set)
        if poller is not None:
            scheduler.add_listener(poller.set_watch_set)
        clients.insert(0, scheduler)

        for client in clients:
            await client.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with suppress(NotImplementedError):
                loop.add_signal_handler(sig, self._stop_event.set)

        try:
            await self._stop_event.wait()
        finally:
            for client in reversed(clients):
                await client.stop()
            await engine.stop()
            if chain_parts is not None:
                await chain_parts[0].close()
            await bus.close()
            logger.info(
                "Bot runtime stopped after %d events (%d failures)",
                engine.counters.events,
                engine.counters.failures,
            )

    def stop(self) -> None:
        self._stop_event.set()

    def _build_ingestors(
        self,
        config: Mapping[str, Any],
        bus: EventBus[CanonicalEvent],
        chain_parts: tuple[ChainClient, ReceiptResolver] | None,
    ) -> list[IngestClient]:
        if chain_parts is None:
            return []
        chain, resolver = chain_parts
        chain_cfg = as_mapping(config.get("chain"))
        marketplaces_cfg = as_mapping(config.get("marketplaces"))
        poll_interval = as_float(chain_cfg.get("poll_interval_seconds"), 15.0)
        max_block_range = as_int(chain_cfg.get("max_block_range"), 500)

        clients: list[IngestClient] = []
        for key, listener_cls in LISTENERS.items():
            market_cfg = as_mapping(marketplaces_cfg.get(key))
            if not market_cfg.get("enabled", True):
                logger.info("%s listener disabled in configuration", key)
                continue
            clients.append(
                listener_cls(
                    bus,
                    chain,
                    resolver,
                    address=as_str(market_cfg.get("address")) or None,
                    poll_interval=poll_interval,
                    max_block_range=max_block_range,
                )
            )
        return clients

    def _build_poller(
        self, config: Mapping[str, Any], bus: EventBus[CanonicalEvent], store: Store
    ) -> OrderBookPoller | None:
        api_cfg = as_mapping(config.get("looksrare_api"))
        if not api_cfg.get("enabled", True):
            logger.info("LooksRare order-book polling disabled in configuration")
            return None
        chain_cfg = as_mapping(config.get("chain"))
        api = LooksRareAPI(
            api_key=as_str(api_cfg.get("api_key")) or None,
            network=as_str(chain_cfg.get("network"), "homestead"),
            retries=as_int(api_cfg.get("retries"), 3),
            max_jitter=as_float(api_cfg.get("max_jitter_seconds"), 30.0),
        )
        return OrderBookPoller(
            bus=bus,
            api=api,
            store=store,
            slice_size=as_int(api_cfg.get("slice_size"), 60),
            slice_delay=as_float(api_cfg.get("slice_delay_seconds"), 60.0),
        )

    def _build_scheduler(self, config: Mapping[str, Any], store: Store) -> WatchSetScheduler:
        ownership_cfg = as_mapping(config.get("ownership"))
        watchset_cfg = as_mapping(config.get("watchset"))
        ownership = build_ownership_lookup(
            moralis_api_key=as_str(ownership_cfg.get("moralis_api_key")) or None,
            nftscan_api_id=as_str(ownership_cfg.get("nftscan_api_id")) or None,
            nftscan_secret=as_str(ownership_cfg.get("nftscan_secret")) or None,
        )
        return WatchSetScheduler(
            store=store,
            ownership=ownership,
            period=as_float(watchset_cfg.get("period_seconds"), 300.0),
        )


async def run_bot(config_path: str) -> None:
    runtime = BotRuntime(Path(config_path))
    await runtime.run()


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the NFT marketplace activity crawler")
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to YAML configuration file",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    asyncio.run(run_bot(args.config))


if __name__ == "__main__":  # pragma: no cover - CLI execution path
    main()
