import asyncio
from decimal import Decimal

import pytest

pytest.importorskip("pydantic")

from common.models import ListingEvent, Marketplace
from storage import InMemoryStore


def _listing(price: int) -> ListingEvent:
    return ListingEvent(marketplace=Marketplace.X2Y2, collection="0xabc", price=Decimal(price))


def test_event_log_keeps_only_the_newest_events():
    store = InMemoryStore(max_events=3)

    async def _run() -> None:
        for price in range(10):
            await store.add_nft_event(_listing(price))

    asyncio.run(_run())

    assert len(store.events) == 3
    assert [event.price for event in store.events] == [Decimal(7), Decimal(8), Decimal(9)]


def test_event_log_bound_must_be_positive():
    with pytest.raises(ValueError):
        InMemoryStore(max_events=0)
