"""LooksRare exchange log listener."""

from __future__ import annotations

from typing import Any, Optional

from chain.abis import LOOKSRARE_EVENTS, LOOKSRARE_EXCHANGE_ADDRESS
from common.models import CanonicalEvent, EventType, Marketplace

from .contract import ContractLogListener, Handler


class LooksRareListener(ContractLogListener):
    marketplace = Marketplace.LOOKSRARE
    address = LOOKSRARE_EXCHANGE_ADDRESS
    events = LOOKSRARE_EVENTS

    def handlers(self) -> dict[str, Handler]:
        return {
            "TakerAsk": self.on_taker_ask,
            "TakerBid": self.on_taker_bid,
            "CancelMultipleOrders": self.on_cancel_multiple_orders,
        }

    async def _trade(
        self, event_type: EventType, args: dict[str, Any], tx_hash: Optional[str], **parties: str
    ) -> CanonicalEvent:
        info = await self.receipt(tx_hash)
        return self.sale_event(
            event_type,
            tx_hash,
            args["price"],
            info,
            collection=args["collection"],
            token_id=args["tokenId"],
            amount=args["amount"],
            order_hash=args["orderHash"],
            **parties,
        )

    async def on_taker_ask(self, args: dict[str, Any], tx_hash: Optional[str]) -> CanonicalEvent:
        """A seller filled a bid."""

        return await self._trade(
            EventType.ACCEPT_OFFER, args, tx_hash, buyer=args["maker"], seller=args["taker"]
        )

    async def on_taker_bid(self, args: dict[str, Any], tx_hash: Optional[str]) -> CanonicalEvent:
        """A buyer filled an ask."""

        return await self._trade(
            EventType.ACCEPT_ASK, args, tx_hash, buyer=args["taker"], seller=args["maker"]
        )

    async def on_cancel_multiple_orders(
        self, args: dict[str, Any], tx_hash: Optional[str]
    ) -> CanonicalEvent:
        return await self.cancel_event(tx_hash)


__all__ = ["LooksRareListener"]
