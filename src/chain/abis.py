"""Contract addresses and event ABI fragments for the watched marketplaces."""

from __future__ import annotations

from typing import Any, Optional

AbiParam = dict[str, Any]
EventAbi = dict[str, Any]


def _param(
    name: str,
    type_: str,
    indexed: bool = False,
    components: Optional[list[AbiParam]] = None,
) -> AbiParam:
    param: AbiParam = {"name": name, "type": type_, "indexed": indexed}
    if components is not None:
        param["components"] = components
    return param


def _event(name: str, *inputs: AbiParam) -> EventAbi:
    return {"type": "event", "name": name, "anonymous": False, "inputs": list(inputs)}


OPENSEA_WYVERN_ADDRESS = "0x7f268357a8c2552623316e2562d90e642bb538e5"
LOOKSRARE_EXCHANGE_ADDRESS = "0x59728544b08ab483533076417fbbb2fd0b17ce3a"
RARIBLE_EXCHANGE_ADDRESS = "0x9757f2d2b135150bbeb65308d4a91804107cd8d6"
FOUNDATION_MARKET_ADDRESS = "0xcda72070e455bb31c7690a170224ce43623d0b6f"
X2Y2_EXCHANGE_ADDRESS = "0x74312363e45dcaba76c59ec49a7aa8a65a67eed3"

# Legacy contracts whose token details need special handling.
OPENSEA_SHARED_STOREFRONT_ADDRESS = "0x495f947276749ce646f68ac8c248420045cb7b5e"
TOWN_STAR_ADDRESS = "0xc36cf0cfcb5d905b8b513860db0cfe63f6cf9f5c"

_RARIBLE_ASSET_TYPE = [_param("assetClass", "bytes4"), _param("data", "bytes")]

OPENSEA_EVENTS: list[EventAbi] = [
    _event(
        "OrdersMatched",
        _param("buyHash", "bytes32"),
        _param("sellHash", "bytes32"),
        _param("maker", "address", indexed=True),
        _param("taker", "address", indexed=True),
        _param("price", "uint256"),
        _param("metadata", "bytes32", indexed=True),
    ),
    _event("OrderCancelled", _param("hash", "bytes32", indexed=True)),
]

_LOOKSRARE_TAKER_INPUTS = (
    _param("orderHash", "bytes32"),
    _param("orderNonce", "uint256"),
    _param("taker", "address", indexed=True),
    _param("maker", "address", indexed=True),
    _param("strategy", "address", indexed=True),
    _param("currency", "address"),
    _param("collection", "address"),
    _param("tokenId", "uint256"),
    _param("amount", "uint256"),
    _param("price", "uint256"),
)

LOOKSRARE_EVENTS: list[EventAbi] = [
    _event("TakerAsk", *_LOOKSRARE_TAKER_INPUTS),
    _event("TakerBid", *_LOOKSRARE_TAKER_INPUTS),
    _event(
        "CancelMultipleOrders",
        _param("user", "address", indexed=True),
        _param("orderNonces", "uint256[]"),
    ),
]

RARIBLE_EVENTS: list[EventAbi] = [
    _event(
        "Match",
        _param("leftHash", "bytes32"),
        _param("rightHash", "bytes32"),
        _param("leftMaker", "address"),
        _param("rightMaker", "address"),
        _param("newLeftFill", "uint256"),
        _param("newRightFill", "uint256"),
        _param("leftAsset", "tuple", components=_RARIBLE_ASSET_TYPE),
        _param("rightAsset", "tuple", components=_RARIBLE_ASSET_TYPE),
    ),
    _event(
        "Cancel",
        _param("hash", "bytes32"),
        _param("maker", "address"),
        _param("makeAssetType", "tuple", components=_RARIBLE_ASSET_TYPE),
        _param("takeAssetType", "tuple", components=_RARIBLE_ASSET_TYPE),
    ),
]

FOUNDATION_EVENTS: list[EventAbi] = [
    _event(
        "ReserveAuctionFinalized",
        _param("auctionId", "uint256", indexed=True),
        _param("seller", "address", indexed=True),
        _param("bidder", "address", indexed=True),
        _param("f8nFee", "uint256"),
        _param("creatorFee", "uint256"),
        _param("ownerRev", "uint256"),
    ),
    _event("ReserveAuctionCanceled", _param("auctionId", "uint256", indexed=True)),
    _event(
        "ReserveAuctionBidPlaced",
        _param("auctionId", "uint256", indexed=True),
        _param("bidder", "address", indexed=True),
        _param("amount", "uint256"),
        _param("endTime", "uint256"),
    ),
    _event(
        "ReserveAuctionCreated",
        _param("seller", "address", indexed=True),
        _param("nftContract", "address", indexed=True),
        _param("tokenId", "uint256", indexed=True),
        _param("duration", "uint256"),
        _param("extensionDuration", "uint256"),
        _param("reservePrice", "uint256"),
        _param("auctionId", "uint256"),
    ),
]

_X2Y2_FEE = [_param("percentage", "uint256"), _param("to", "address")]

X2Y2_EVENTS: list[EventAbi] = [
    _event(
        "EvInventory",
        _param("itemHash", "bytes32", indexed=True),
        _param("maker", "address"),
        _param("taker", "address"),
        _param("orderSalt", "uint256"),
        _param("settleSalt", "uint256"),
        _param("intent", "uint256"),
        _param("delegateType", "uint256"),
        _param("deadline", "uint256"),
        _param("currency", "address"),
        _param("dataMask", "bytes"),
        _param(
            "item",
            "tuple",
            components=[_param("price", "uint256"), _param("data", "bytes")],
        ),
        _param(
            "detail",
            "tuple",
            components=[
                _param("op", "uint8"),
                _param("orderIdx", "uint256"),
                _param("itemIdx", "uint256"),
                _param("price", "uint256"),
                _param("itemHash", "bytes32"),
                _param("executionDelegate", "address"),
                _param("dataReplacement", "bytes"),
                _param("bidIncentivePct", "uint256"),
                _param("aucMinIncrementPct", "uint256"),
                _param("aucIncDurationSecs", "uint256"),
                _param("fees", "tuple[]", components=_X2Y2_FEE),
            ],
        ),
    ),
    _event("EvCancel", _param("itemHash", "bytes32", indexed=True)),
]

ERC721_TRANSFER = "Transfer(address,address,uint256)"
ERC1155_TRANSFER_SINGLE = "TransferSingle(address,address,address,uint256,uint256)"
ERC1155_URI = "URI(string,uint256)"

__all__ = [
    "ERC1155_TRANSFER_SINGLE",
    "ERC1155_URI",
    "ERC721_TRANSFER",
    "FOUNDATION_EVENTS",
    "FOUNDATION_MARKET_ADDRESS",
    "LOOKSRARE_EVENTS",
    "LOOKSRARE_EXCHANGE_ADDRESS",
    "OPENSEA_EVENTS",
    "OPENSEA_SHARED_STOREFRONT_ADDRESS",
    "OPENSEA_WYVERN_ADDRESS",
    "RARIBLE_EVENTS",
    "RARIBLE_EXCHANGE_ADDRESS",
    "TOWN_STAR_ADDRESS",
    "X2Y2_EVENTS",
    "X2Y2_EXCHANGE_ADDRESS",
]
