"""Rarible exchange log listener."""

from __future__ import annotations

from typing import Any, Optional

from chain.abis import RARIBLE_EVENTS, RARIBLE_EXCHANGE_ADDRESS
from common.models import CanonicalEvent, EventType, Marketplace

from .contract import ContractLogListener, Handler

# ERC20 and ETH asset classes: a left side paying with currency is a bid.
CURRENCY_ASSET_CLASSES = frozenset({"0x8ae85d84", "0xaaaebeba"})


class RaribleListener(ContractLogListener):
    marketplace = Marketplace.RARIBLE
    address = RARIBLE_EXCHANGE_ADDRESS
    events = RARIBLE_EVENTS

    def handlers(self) -> dict[str, Handler]:
        return {"Match": self.on_match, "Cancel": self.on_cancel}

    async def on_match(self, args: dict[str, Any], tx_hash: Optional[str]) -> CanonicalEvent:
        info = await self.receipt(tx_hash)
        asset_class = str(args["leftAsset"]["assetClass"]).lower()
        if asset_class in CURRENCY_ASSET_CLASSES:
            return self.sale_event(
                EventType.ACCEPT_OFFER,
                tx_hash,
                args["newRightFill"],
                info,
                buyer=args["leftMaker"],
                seller=args["rightMaker"],
                amount=args["newLeftFill"],
                order_hash=args["leftHash"],
            )
        return self.sale_event(
            EventType.ACCEPT_ASK,
            tx_hash,
            args["newLeftFill"],
            info,
            buyer=args["rightMaker"],
            seller=args["leftMaker"],
            amount=args["newRightFill"],
            order_hash=args["leftHash"],
        )

    async def on_cancel(self, args: dict[str, Any], tx_hash: Optional[str]) -> CanonicalEvent:
        return await self.cancel_event(tx_hash, order_hash=args["hash"])


__all__ = ["CURRENCY_ASSET_CLASSES", "RaribleListener"]
