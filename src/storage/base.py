"""Persistence interface the core relies on."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol, Sequence, Union

from common.models import Alert, CanonicalEvent, CollectionFloor, CollectionOffer, Marketplace


class Store(Protocol):
    """Key/value and relational storage of floors, offers, events and alerts."""

    async def get_collection_floor(self, collection: str) -> Optional[CollectionFloor]: ...

    async def set_collection_floor(
        self,
        collection: str,
        price: Decimal,
        ends_at: datetime,
        marketplace: Optional[Marketplace],
        order_hash: Optional[str] = None,
    ) -> CollectionFloor: ...

    async def get_offer(self, collection: str, token_id: str = "") -> Optional[CollectionOffer]: ...

    async def set_offer(
        self,
        collection: str,
        price: Decimal,
        ends_at: datetime,
        marketplace: Optional[Marketplace],
        token_id: str = "",
        order_hash: Optional[str] = None,
    ) -> CollectionOffer: ...

    async def add_nft_event(self, event: CanonicalEvent) -> None: ...

    async def get_all_alerts(self) -> Sequence[Alert]: ...

    async def set_alert_tokens(
        self, alert_id: Union[int, str], tokens: Sequence[str]
    ) -> Optional[Alert]: ...


__all__ = ["Store"]
