"""X2Y2 exchange log listener."""

from __future__ import annotations

from typing import Any, Optional

from chain.abis import X2Y2_EVENTS, X2Y2_EXCHANGE_ADDRESS
from common.models import CanonicalEvent, EventType, Marketplace

from .contract import ContractLogListener, Handler

INTENT_BUY = 3


class X2Y2Listener(ContractLogListener):
    marketplace = Marketplace.X2Y2
    address = X2Y2_EXCHANGE_ADDRESS
    events = X2Y2_EVENTS

    def handlers(self) -> dict[str, Handler]:
        return {"EvInventory": self.on_inventory, "EvCancel": self.on_cancel}

    async def on_inventory(self, args: dict[str, Any], tx_hash: Optional[str]) -> CanonicalEvent:
        info = await self.receipt(tx_hash)
        price = args["item"]["price"]
        if int(args["intent"]) == INTENT_BUY:
            return self.sale_event(
                EventType.ACCEPT_OFFER,
                tx_hash,
                price,
                info,
                buyer=args["maker"],
                seller=args["taker"],
                order_hash=args["itemHash"],
            )
        return self.sale_event(
            EventType.ACCEPT_ASK,
            tx_hash,
            price,
            info,
            buyer=args["taker"],
            seller=args["maker"],
            order_hash=args["itemHash"],
        )

    async def on_cancel(self, args: dict[str, Any], tx_hash: Optional[str]) -> CanonicalEvent:
        return await self.cancel_event(tx_hash, order_hash=args["itemHash"])


__all__ = ["INTENT_BUY", "X2Y2Listener"]
