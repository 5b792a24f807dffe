"""Floor and highest-offer tracking for canonical marketplace events."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Awaitable, Callable, Optional, Union

from common.bus import EventBus
from common.models import (
    CanonicalEvent,
    CancelOrderEvent,
    CollectionFloor,
    CollectionOffer,
    ListingEvent,
    OfferEvent,
    PricedEvent,
    utcnow,
)
from storage.base import Store

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str]

DEFAULT_LOWER_BOUND = Decimal("-1e9")
DEFAULT_UPPER_BOUND = Decimal("1e9")
# Listings without an end time stay valid until replaced.
NO_EXPIRY = datetime.max.replace(tzinfo=timezone.utc)


def _as_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def floor_difference(
    price: Number,
    floor: Number,
    lower_bound: Number = DEFAULT_LOWER_BOUND,
    upper_bound: Number = DEFAULT_UPPER_BOUND,
) -> Decimal:
    """Relative distance of ``price`` from ``floor``; positive means above it.

    Returns ``1`` when no floor is known and ``-1`` for a zero price, otherwise
    ``(price - floor) / floor`` clamped to ``[lower_bound, upper_bound]``.
    """

    price = _as_decimal(price)
    floor = _as_decimal(floor)
    if floor == 0:
        return Decimal(1)
    if price == 0:
        return Decimal(-1)
    difference = (price - floor) / floor
    return min(max(difference, _as_decimal(lower_bound)), _as_decimal(upper_bound))


@dataclass
class FloorConfig:
    """Bounds applied to the floor difference attached to events."""

    lower_bound: Decimal = DEFAULT_LOWER_BOUND
    upper_bound: Decimal = DEFAULT_UPPER_BOUND


class OrderBookState:
    """Floors and highest offers the engine decides against.

    Keys are lower-cased collection addresses (plus the token id for offers).
    A key that was never loaded reads as the empty, already-expired record.
    """

    def __init__(self) -> None:
        self._floors: dict[str, CollectionFloor] = {}
        self._offers: dict[tuple[str, str], CollectionOffer] = {}

    def has_floor(self, collection: str) -> bool:
        return collection.lower() in self._floors

    def has_offer(self, collection: str, token_id: str = "") -> bool:
        return (collection.lower(), token_id) in self._offers

    def floor(self, collection: str) -> CollectionFloor:
        key = collection.lower()
        return self._floors.get(key) or CollectionFloor.empty(key)

    def offer(self, collection: str, token_id: str = "") -> CollectionOffer:
        key = collection.lower()
        return self._offers.get((key, token_id)) or CollectionOffer.empty(key, token_id)

    def set_floor(self, floor: CollectionFloor) -> None:
        self._floors[floor.collection] = floor

    def set_offer(self, offer: CollectionOffer) -> None:
        self._offers[(offer.collection, offer.token_id)] = offer

    def load_floor(self, collection: str, floor: Optional[CollectionFloor]) -> None:
        self.set_floor(floor or CollectionFloor.empty(collection))

    def load_offer(
        self, collection: str, token_id: str, offer: Optional[CollectionOffer]
    ) -> None:
        self.set_offer(offer or CollectionOffer.empty(collection, token_id))


@dataclass(frozen=True)
class Decision:
    """Outcome of one engine decision: the enriched event and any state written."""

    event: CanonicalEvent
    floor_update: Optional[CollectionFloor] = None
    offer_update: Optional[CollectionOffer] = None


@dataclass
class _Counters:
    events: int = 0
    floor_updates: int = 0
    offer_updates: int = 0
    failures: int = 0
    by_type: dict[str, int] = field(default_factory=dict)


class FloorOfferEngine:
    """Consume canonical events, keep floor/offer state, and forward every event.

    :meth:`decide` is synchronous and writes :attr:`state` before returning, so
    the read and the write for one key never span an ``await``.
    """

    def __init__(
        self,
        bus: EventBus[CanonicalEvent],
        store: Store,
        config: Optional[FloorConfig] = None,
        on_event: Optional[Callable[[CanonicalEvent], Awaitable[None]]] = None,
        state: Optional[OrderBookState] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._bus = bus
        self._store = store
        self._config = config or FloorConfig()
        self._on_event = on_event
        self.state = state or OrderBookState()
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self.counters = _Counters()

    def start(self) -> asyncio.Task[None]:
        """Begin consuming events from the bus."""

        if self._task is not None:
            raise RuntimeError("FloorOfferEngine already running")
        self._task = asyncio.create_task(self._run(), name="floor-offer-engine")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    async def _run(self) -> None:
        queue = self._bus.subscribe("floor-offer-engine")
        try:
            while True:
                event = await queue.get()
                try:
                    await self.handle(event)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    self.counters.failures += 1
                    logger.exception(
                        "Failed to process %s event %s",
                        event.event_type.value,
                        event.transaction_hash or event.order_hash,
                    )
                finally:
                    queue.task_done()
        finally:
            self._bus.unsubscribe(queue)

    async def handle(self, event: CanonicalEvent) -> CanonicalEvent:
        """Decide, persist and forward one event. Returns the enriched event."""

        await self._hydrate(event)
        decision = self.decide(event)

        if decision.floor_update is not None:
            floor = decision.floor_update
            await self._store.set_collection_floor(
                floor.collection, floor.price, floor.ends_at, floor.marketplace, floor.order_hash
            )
            self.counters.floor_updates += 1
        if decision.offer_update is not None:
            offer = decision.offer_update
            await self._store.set_offer(
                offer.collection,
                offer.price,
                offer.ends_at,
                offer.marketplace,
                offer.token_id,
                offer.order_hash,
            )
            self.counters.offer_updates += 1

        await self._store.add_nft_event(decision.event)
        self.counters.events += 1
        key = decision.event.event_type.value
        self.counters.by_type[key] = self.counters.by_type.get(key, 0) + 1

        if self._on_event is not None:
            await self._on_event(decision.event)
        return decision.event

    async def _hydrate(self, event: CanonicalEvent) -> None:
        # Loads stored state for keys seen for the first time; runs before decide().
        if isinstance(event, CancelOrderEvent) or not event.collection:
            return
        collection = event.collection
        if not self.state.has_floor(collection):
            floor = await self._store.get_collection_floor(collection)
            if not self.state.has_floor(collection):
                self.state.load_floor(collection, floor)
        if isinstance(event, OfferEvent) and not self.state.has_offer(collection, event.token_id):
            offer = await self._store.get_offer(collection, event.token_id)
            if not self.state.has_offer(collection, event.token_id):
                self.state.load_offer(collection, event.token_id, offer)

    def _floor_price(self, collection: Optional[str], now: datetime) -> Decimal:
        if not collection:
            return Decimal(0)
        return self.state.floor(collection).live_price(now)

    def _difference(self, price: Decimal, floor: Decimal) -> Decimal:
        return floor_difference(
            price, floor, self._config.lower_bound, self._config.upper_bound
        )

    def decide(self, event: CanonicalEvent, now: Optional[datetime] = None) -> Decision:
        """Apply the floor/offer rules to ``event`` against the current state."""

        now = now or self._clock()
        if isinstance(event, CancelOrderEvent):
            return Decision(event=event)
        if isinstance(event, OfferEvent):
            return self._decide_offer(event, now)
        if isinstance(event, ListingEvent):
            return self._decide_listing(event, now)
        return Decision(event=self._enrich(event, self._floor_price(event.collection, now)))

    def _enrich(self, event: PricedEvent, collection_floor: Decimal, **extra: object) -> PricedEvent:
        update = {
            "collection_floor": collection_floor,
            "floor_difference": self._difference(event.price, collection_floor),
            **extra,
        }
        return event.model_copy(update=update)

    def _decide_offer(self, event: OfferEvent, now: datetime) -> Decision:
        collection_floor = self._floor_price(event.collection, now)
        if not event.collection:
            return Decision(event=self._enrich(event, collection_floor))

        current = self.state.offer(event.collection, event.token_id)
        offer_update = None
        is_highest_offer = False
        if event.is_highest_offer or event.price > current.price or current.is_expired(now):
            is_highest_offer = True
            offer_update = CollectionOffer(
                collection=event.collection,
                token_id=event.token_id,
                price=event.price,
                ends_at=event.ends_at or NO_EXPIRY,
                marketplace=event.marketplace,
                order_hash=event.order_hash,
                observed_at=now,
            )
            self.state.set_offer(offer_update)

        enriched = self._enrich(event, collection_floor, is_highest_offer=is_highest_offer)
        return Decision(event=enriched, offer_update=offer_update)

    def _decide_listing(self, event: ListingEvent, now: datetime) -> Decision:
        if not event.collection:
            return Decision(event=self._enrich(event, Decimal(0)))

        current = self.state.floor(event.collection)
        collection_floor = current.live_price(now)
        replaces_floor = (
            (
                event.is_new_floor
                and event.ends_at != current.ends_at
                and event.price != collection_floor
            )
            or collection_floor == 0
            or event.price < collection_floor
            or current.is_expired(now)
        )
        floor_update = None
        if replaces_floor:
            floor_update = CollectionFloor(
                collection=event.collection,
                price=event.price,
                ends_at=event.ends_at or NO_EXPIRY,
                marketplace=event.marketplace,
                order_hash=event.order_hash,
                observed_at=now,
            )
            self.state.set_floor(floor_update)

        # Floor fields always describe the floor before this listing.
        return Decision(event=self._enrich(event, collection_floor), floor_update=floor_update)


__all__ = [
    "Decision",
    "FloorConfig",
    "FloorOfferEngine",
    "OrderBookState",
    "floor_difference",
]
