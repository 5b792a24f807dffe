"""OpenSea (Wyvern exchange) log listener."""

from __future__ import annotations

from typing import Any, Optional

from chain.abis import OPENSEA_EVENTS, OPENSEA_WYVERN_ADDRESS
from common.models import CanonicalEvent, EventType, Marketplace

from .contract import ContractLogListener, Handler


class OpenSeaListener(ContractLogListener):
    marketplace = Marketplace.OPENSEA
    address = OPENSEA_WYVERN_ADDRESS
    events = OPENSEA_EVENTS

    def handlers(self) -> dict[str, Handler]:
        return {
            "OrdersMatched": self.on_orders_matched,
            "OrderCancelled": self.on_order_cancelled,
        }

    async def on_orders_matched(
        self, args: dict[str, Any], tx_hash: Optional[str]
    ) -> CanonicalEvent:
        info = await self.receipt(tx_hash)
        # The token leaves the wallet that sent the transaction: a seller
        # filling a standing bid.
        if info.from_address and info.from_address == info.initiator:
            return self.sale_event(
                EventType.ACCEPT_OFFER,
                tx_hash,
                args["price"],
                info,
                buyer=args["maker"],
                seller=args["taker"],
                order_hash=args["buyHash"],
            )
        return self.sale_event(
            EventType.ACCEPT_ASK,
            tx_hash,
            args["price"],
            info,
            buyer=args["taker"],
            seller=args["maker"],
            order_hash=args["sellHash"],
        )

    async def on_order_cancelled(
        self, args: dict[str, Any], tx_hash: Optional[str]
    ) -> CanonicalEvent:
        return await self.cancel_event(tx_hash, order_hash=args["hash"])


__all__ = ["OpenSeaListener"]
