"""Process-local implementation of :class:`storage.base.Store`."""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Sequence, Union

from common.models import (
    Alert,
    CanonicalEvent,
    CollectionFloor,
    CollectionOffer,
    Marketplace,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 10_000


class InMemoryStore:
    """Keep floors, offers, events and alerts in dictionaries.

    Used by the tests and as the default runtime store when no database is
    configured. Floors and offers keep only the latest record per key, and
    only the newest ``max_events`` finalized events are retained.
    """

    def __init__(
        self, clock: Callable[[], datetime] = utcnow, max_events: int = DEFAULT_MAX_EVENTS
    ) -> None:
        if max_events <= 0:
            raise ValueError("max_events must be positive")
        self._clock = clock
        self._floors: dict[str, CollectionFloor] = {}
        self._offers: dict[tuple[str, str], CollectionOffer] = {}
        self._alerts: dict[Union[int, str], Alert] = {}
        self.events: deque[CanonicalEvent] = deque(maxlen=max_events)

    async def get_collection_floor(self, collection: str) -> Optional[CollectionFloor]:
        return self._floors.get(collection.lower())

    async def set_collection_floor(
        self,
        collection: str,
        price: Decimal,
        ends_at: datetime,
        marketplace: Optional[Marketplace],
        order_hash: Optional[str] = None,
    ) -> CollectionFloor:
        floor = CollectionFloor(
            collection=collection,
            price=price,
            ends_at=ends_at,
            marketplace=marketplace,
            order_hash=order_hash,
            observed_at=self._clock(),
        )
        self._floors[floor.collection] = floor
        return floor

    async def get_offer(self, collection: str, token_id: str = "") -> Optional[CollectionOffer]:
        return self._offers.get((collection.lower(), token_id))

    async def set_offer(
        self,
        collection: str,
        price: Decimal,
        ends_at: datetime,
        marketplace: Optional[Marketplace],
        token_id: str = "",
        order_hash: Optional[str] = None,
    ) -> CollectionOffer:
        offer = CollectionOffer(
            collection=collection,
            token_id=token_id,
            price=price,
            ends_at=ends_at,
            marketplace=marketplace,
            order_hash=order_hash,
            observed_at=self._clock(),
        )
        self._offers[(offer.collection, token_id)] = offer
        return offer

    async def add_nft_event(self, event: CanonicalEvent) -> None:
        self.events.append(event)

    def add_alert(self, alert: Alert) -> None:
        self._alerts[alert.id] = alert

    async def get_all_alerts(self) -> Sequence[Alert]:
        return list(self._alerts.values())

    async def set_alert_tokens(
        self, alert_id: Union[int, str], tokens: Sequence[str]
    ) -> Optional[Alert]:
        alert = self._alerts.get(alert_id)
        if alert is None:
            logger.warning("Cannot set tokens of unknown alert %s", alert_id)
            return None
        updated = alert.model_copy(update={"tokens": list(tokens), "synced_at": self._clock()})
        self._alerts[alert_id] = updated
        return updated


__all__ = ["InMemoryStore"]
