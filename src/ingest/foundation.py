"""Foundation reserve-auction log listener."""

from __future__ import annotations

from typing import Any, Optional

from chain.abis import FOUNDATION_EVENTS, FOUNDATION_MARKET_ADDRESS
from common.models import CanonicalEvent, EventType, Marketplace, from_unix

from .contract import ContractLogListener, Handler


class FoundationListener(ContractLogListener):
    marketplace = Marketplace.FOUNDATION
    address = FOUNDATION_MARKET_ADDRESS
    events = FOUNDATION_EVENTS

    def handlers(self) -> dict[str, Handler]:
        return {
            "ReserveAuctionFinalized": self.on_auction_finalized,
            "ReserveAuctionCanceled": self.on_auction_canceled,
            "ReserveAuctionBidPlaced": self.on_bid_placed,
            "ReserveAuctionCreated": self.on_auction_created,
        }

    async def on_auction_finalized(
        self, args: dict[str, Any], tx_hash: Optional[str]
    ) -> CanonicalEvent:
        info = await self.receipt(tx_hash)
        # The winning bid is split between the three recipients.
        price = args["f8nFee"] + args["creatorFee"] + args["ownerRev"]
        return self.sale_event(
            EventType.SETTLE_AUCTION,
            tx_hash,
            price,
            info,
            buyer=args["bidder"],
            seller=args["seller"],
        )

    async def on_auction_canceled(
        self, args: dict[str, Any], tx_hash: Optional[str]
    ) -> CanonicalEvent:
        return await self.cancel_event(tx_hash, order_hash=str(args["auctionId"]))

    async def on_bid_placed(self, args: dict[str, Any], tx_hash: Optional[str]) -> CanonicalEvent:
        info = await self.receipt(tx_hash)
        return self.auction_event(
            EventType.PLACE_BID,
            tx_hash,
            args["amount"],
            info,
            buyer=args["bidder"],
            ends_at=from_unix(args["endTime"]),
            order_hash=str(args["auctionId"]),
        )

    async def on_auction_created(
        self, args: dict[str, Any], tx_hash: Optional[str]
    ) -> CanonicalEvent:
        info = await self.receipt(tx_hash)
        return self.auction_event(
            EventType.CREATE_AUCTION,
            tx_hash,
            args["reservePrice"],
            info,
            seller=args["seller"],
            collection=args["nftContract"],
            token_id=args["tokenId"],
            order_hash=str(args["auctionId"]),
        )


__all__ = ["FoundationListener"]
