"""Periodic rebuild of the set of collections users care about."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Mapping, Optional

from common.errors import NFTWatchError
from common.models import Alert, AlertType, NFTEvent, utcnow
from storage.base import Store

from .base import IngestClient
from .ownership import OwnershipLookup

logger = logging.getLogger(__name__)

WatchSetListener = Callable[["WatchSet"], Any]


def token_collection(token: str) -> str:
    """Collection part of a ``"collection/tokenId"`` string, lower-cased."""

    return token.split("/", 1)[0].lower()


@dataclass(frozen=True)
class WatchSet:
    """Watchers per collection, plus wallet alerts per watched address."""

    by_collection: Mapping[str, tuple[Alert, ...]] = field(default_factory=dict)
    by_address: Mapping[str, tuple[Alert, ...]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.by_collection)

    def __contains__(self, collection: object) -> bool:
        return isinstance(collection, str) and collection.lower() in self.by_collection

    def collections(self) -> list[str]:
        return sorted(self.by_collection)

    def watchers_for(self, event: NFTEvent) -> list[Alert]:
        """Alerts interested in ``event``, each listed once."""

        candidates: list[Alert] = []
        if event.collection:
            candidates.extend(self.by_collection.get(event.collection, ()))
        for address in (event.buyer, event.seller):
            if address:
                candidates.extend(self.by_address.get(address, ()))

        seen: set[Any] = set()
        watchers = []
        for alert in candidates:
            if alert.id in seen:
                continue
            seen.add(alert.id)
            watchers.append(alert)
        return watchers


def build_watch_set(alerts: Iterable[Alert]) -> WatchSet:
    by_collection: dict[str, list[Alert]] = {}
    by_address: dict[str, list[Alert]] = {}
    for alert in alerts:
        collections = {token_collection(token) for token in alert.tokens if token}
        if alert.type is AlertType.COLLECTION:
            collections.add(alert.address)
        elif alert.type is AlertType.WALLET:
            by_address.setdefault(alert.address, []).append(alert)
        for collection in sorted(collections):
            by_collection.setdefault(collection, []).append(alert)
    return WatchSet(
        by_collection={key: tuple(value) for key, value in by_collection.items()},
        by_address={key: tuple(value) for key, value in by_address.items()},
    )


class WatchSetScheduler(IngestClient):
    """Resync wallet tokens and hand the fresh watch set to its listeners."""

    def __init__(
        self,
        store: Store,
        ownership: OwnershipLookup,
        period: float = 300.0,
        listeners: Iterable[WatchSetListener] = (),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(name="watchset")
        self._store = store
        self._ownership = ownership
        self.period = period
        self._listeners = list(listeners)
        self._clock = clock
        self.watch_set = WatchSet()

    def add_listener(self, listener: WatchSetListener) -> None:
        self._listeners.append(listener)

    def _needs_sync(self, alert: Alert, now: datetime) -> bool:
        if alert.type is not AlertType.WALLET:
            return False
        if alert.synced_at is None:
            return True
        return now - alert.synced_at > timedelta(seconds=self.period)

    async def _sync(self, alert: Alert, now: datetime) -> Optional[Alert]:
        tokens = await self._ownership.get_address_nfts(alert.address)
        updated = await self._store.set_alert_tokens(alert.id, tokens)
        return updated or alert.model_copy(update={"tokens": list(tokens), "synced_at": now})

    async def refresh(self) -> WatchSet:
        """Run one pass and return the rebuilt watch set."""

        now = self._clock()
        alerts = []
        for alert in await self._store.get_all_alerts():
            if self._needs_sync(alert, now):
                try:
                    alert = await self._sync(alert, now) or alert
                except NFTWatchError as exc:
                    logger.warning("Could not refresh tokens of alert %s: %s", alert.id, exc)
            alerts.append(alert)

        self.watch_set = build_watch_set(alerts)
        logger.info(
            "Watching %d collections for %d alerts", len(self.watch_set), len(alerts)
        )
        for listener in self._listeners:
            result = listener(self.watch_set)
            if inspect.isawaitable(result):
                await result
        return self.watch_set

    async def run_once(self) -> None:
        while not self.stopped:
            await self.refresh()
            if await self.wait(self.period):
                break


__all__ = ["WatchSet", "WatchSetScheduler", "build_watch_set", "token_collection"]
