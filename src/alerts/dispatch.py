"""Fan-out of finalized events to the alerts watching them."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

from common.models import Alert, CanonicalEvent, EventType, PricedEvent
from ingest.watchset import WatchSet

logger = logging.getLogger(__name__)

IPFS_GATEWAY = "https://ipfs.io/ipfs/"
ARWEAVE_GATEWAY = "https://arweave.net/"


@dataclass(frozen=True)
class WatchedEvent:
    """A finalized event paired with the alerts that should hear about it."""

    event: CanonicalEvent
    watchers: tuple[Alert, ...]


def resolve_uri(uri: Optional[str]) -> Optional[str]:
    """Map ``ipfs://`` and ``ar://`` URIs onto public HTTP gateways."""

    if not uri:
        return uri
    if uri.startswith("ipfs://"):
        path = uri[len("ipfs://") :]
        if path.startswith("ipfs/"):
            path = path[len("ipfs/") :]
        return f"{IPFS_GATEWAY}{path}"
    if uri.startswith("ar://"):
        return f"{ARWEAVE_GATEWAY}{uri[len('ar://') :]}"
    return uri


def is_allowed_by_preferences(event: CanonicalEvent, alert: Alert) -> bool:
    """Apply an alert's marketplace, event-type and offer-depth settings."""

    if event.marketplace not in alert.allowed_marketplaces:
        return False
    if event.event_type not in alert.allowed_events:
        return False

    if event.event_type is EventType.OFFER and isinstance(event, PricedEvent):
        floor = event.collection_floor
        if not floor or event.price >= floor:
            return True
        below_floor = Decimal(100) * (floor - event.price) / floor
        return below_floor < Decimal(str(alert.max_offer_floor_difference))
    return True


def describe_event(event: CanonicalEvent) -> str:
    parts = [event.marketplace.value, event.event_type.value]
    if event.collection:
        token = f"{event.collection}/{event.token_id}" if event.token_id else event.collection
        parts.append(token)
    if isinstance(event, PricedEvent):
        parts.append(f"{event.price.normalize():f} ETH")
        if event.floor_difference is not None:
            parts.append(f"({event.floor_difference * 100:+.2f}% vs floor)")
    return " ".join(parts)


class EventNotifier:
    """Resolve watchers for each finalized event and hand them to ``sink``.

    Used as the engine's ``on_event`` callback. The watch set is replaced as
    a whole whenever the scheduler rebuilds it.
    """

    def __init__(
        self,
        sink: Optional[Callable[[WatchedEvent], Awaitable[Any]]] = None,
        watch_set: Optional[WatchSet] = None,
    ) -> None:
        self._sink = sink
        self.watch_set = watch_set or WatchSet()

    def set_watch_set(self, watch_set: WatchSet) -> None:
        self.watch_set = watch_set

    def resolve_watchers(self, event: CanonicalEvent) -> tuple[Alert, ...]:
        return tuple(
            alert
            for alert in self.watch_set.watchers_for(event)
            if is_allowed_by_preferences(event, alert)
        )

    async def __call__(self, event: CanonicalEvent) -> Optional[WatchedEvent]:
        watchers = self.resolve_watchers(event)
        if not watchers:
            return None
        watched = WatchedEvent(event=event, watchers=watchers)
        if self._sink is not None:
            try:
                await self._sink(watched)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Notification sink failed for %s", describe_event(event))
        return watched


class LoggingNotifier:
    """Sink that writes one log line per watcher."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level
        self.delivered = 0

    async def __call__(self, watched: WatchedEvent) -> None:
        message = describe_event(watched.event)
        for alert in watched.watchers:
            target = alert.channel_id or alert.user_id or alert.address
            logger.log(
                self.level,
                "Alert %s (%s) -> %s: %s",
                alert.id,
                alert.type.value,
                target,
                message,
            )
            self.delivered += 1


__all__ = [
    "EventNotifier",
    "LoggingNotifier",
    "WatchedEvent",
    "describe_event",
    "is_allowed_by_preferences",
    "resolve_uri",
]
