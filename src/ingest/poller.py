"""Off-chain polling of LooksRare bids and floor listings."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from chain.codec import ether_to_wei, wei_to_ether
from common.bus import EventBus
from common.models import (
    CanonicalEvent,
    CollectionFloor,
    CollectionOffer,
    ListingEvent,
    Marketplace,
    OfferEvent,
    Standard,
    from_unix,
    utcnow,
)
from storage.base import Store

from .base import IngestClient
from .looksrare_api import LooksRareAPI, Order
from .watchset import WatchSet

logger = logging.getLogger(__name__)

Emit = Callable[[CanonicalEvent], Awaitable[Any]]


@dataclass(frozen=True)
class PollTarget:
    """What is already known about a collection before polling it."""

    collection: str
    offer: CollectionOffer
    floor: CollectionFloor

    @classmethod
    def unknown(cls, collection: str) -> "PollTarget":
        collection = collection.lower()
        return cls(
            collection=collection,
            offer=CollectionOffer.empty(collection),
            floor=CollectionFloor.empty(collection),
        )


def _order_fields(order: Order) -> dict[str, Any]:
    fields: dict[str, Any] = {"order_hash": order.get("hash")}
    if order.get("startTime"):
        fields["starts_at"] = from_unix(order["startTime"])
    if order.get("endTime"):
        fields["ends_at"] = from_unix(order["endTime"])
    if order.get("tokenId"):
        fields["token_id"] = order["tokenId"]
    return fields


class OrderBookPoller(IngestClient):
    """Emit LooksRare top bids and floor listings for watched collections.

    Collections are queried ``slice_size`` at a time, concurrently within a
    slice, with ``slice_delay`` seconds between slices to stay under the
    API's rate limits. A pass ends early once the poller is stopped.
    """

    def __init__(
        self,
        bus: EventBus[CanonicalEvent],
        api: LooksRareAPI,
        store: Store,
        slice_size: int = 60,
        slice_delay: float = 60.0,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(name="looksrare-orders")
        self.bus = bus
        self.api = api
        self._store = store
        self.slice_size = max(1, slice_size)
        self.slice_delay = slice_delay
        self._sleep = sleep or self.wait
        self._clock = clock
        self._collections: list[str] = []

    @property
    def collections(self) -> list[str]:
        return list(self._collections)

    def set_watch_set(self, watch_set: WatchSet | Sequence[str]) -> None:
        if isinstance(watch_set, WatchSet):
            self._collections = watch_set.collections()
        else:
            self._collections = sorted({collection.lower() for collection in watch_set})

    async def collection_map(self) -> dict[str, PollTarget]:
        """Known offer and floor of every watched collection."""

        targets: dict[str, PollTarget] = {}
        for collection in self._collections:
            offer = await self._store.get_offer(collection, "")
            floor = await self._store.get_collection_floor(collection)
            targets[collection] = PollTarget(
                collection=collection,
                offer=offer or CollectionOffer.empty(collection),
                floor=floor or CollectionFloor.empty(collection),
            )
        return targets

    async def _poll_slices(
        self,
        collection_map: Mapping[str, PollTarget],
        fetch: Callable[[PollTarget, datetime], Awaitable[Optional[CanonicalEvent]]],
        emit: Optional[Emit],
        what: str,
    ) -> list[CanonicalEvent]:
        emit = emit or self.bus.publish
        targets = list(collection_map.values())
        emitted: list[CanonicalEvent] = []
        for start in range(0, len(targets), self.slice_size):
            if start and await self._sleep(self.slice_delay):
                break
            if self.stopped:
                break
            chunk = targets[start : start + self.slice_size]
            now = self._clock()
            results = await asyncio.gather(
                *(fetch(target, now) for target in chunk), return_exceptions=True
            )
            for target, result in zip(chunk, results):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                if isinstance(result, BaseException):
                    logger.warning(
                        "Failed to poll %s of %s: %s", what, target.collection, result
                    )
                    continue
                if result is None:
                    continue
                await emit(result)
                emitted.append(result)
        return emitted

    async def _top_bid_event(self, target: PollTarget, now: datetime) -> Optional[OfferEvent]:
        bid = await self.api.get_top_bid(target.collection)
        if not bid:
            return None
        price_wei = int(bid["price"])
        known = target.offer
        if price_wei <= ether_to_wei(known.price) and not known.is_expired(now):
            return None
        return OfferEvent(
            marketplace=Marketplace.LOOKSRARE,
            standard=Standard.ERC721,
            collection=target.collection,
            price=wei_to_ether(price_wei),
            is_highest_offer=True,
            buyer=bid.get("signer"),
            **_order_fields(bid),
        )

    async def _floor_listing_event(
        self, target: PollTarget, now: datetime
    ) -> Optional[ListingEvent]:
        listing = await self.api.get_floor_listing(target.collection)
        if not listing:
            return None
        price_wei = int(listing["price"])
        known = target.floor
        if price_wei == ether_to_wei(known.price) and not known.is_expired(now):
            return None
        return ListingEvent(
            marketplace=Marketplace.LOOKSRARE,
            standard=Standard.ERC721,
            collection=target.collection,
            price=wei_to_ether(price_wei),
            is_new_floor=True,
            seller=listing.get("signer"),
            **_order_fields(listing),
        )

    async def poll_collection_offers(
        self, collection_map: Mapping[str, PollTarget], emit: Optional[Emit] = None
    ) -> list[CanonicalEvent]:
        """Emit an offer for every collection whose top bid beats the known one."""

        return await self._poll_slices(collection_map, self._top_bid_event, emit, "offers")

    async def poll_collection_floors(
        self, collection_map: Mapping[str, PollTarget], emit: Optional[Emit] = None
    ) -> list[CanonicalEvent]:
        """Emit a listing for every collection whose floor listing changed."""

        return await self._poll_slices(
            collection_map, self._floor_listing_event, emit, "floor"
        )

    async def run_once(self) -> None:
        while not self.stopped:
            targets = await self.collection_map()
            if targets:
                await self.poll_collection_offers(targets)
            if await self.wait(self.slice_delay):
                break
            targets = await self.collection_map()
            if targets:
                await self.poll_collection_floors(targets)
            if await self.wait(self.slice_delay):
                break


__all__ = ["Emit", "OrderBookPoller", "PollTarget"]
