"""Common utilities shared across the NFT activity crawler."""

from .bus import EventBus  # noqa: F401
from .config import load_config  # noqa: F401
from .errors import NFTWatchError  # noqa: F401
from .logging import setup_logging  # noqa: F401
from .models import (  # noqa: F401
    Alert,
    AlertType,
    AuctionEvent,
    CancelOrderEvent,
    CanonicalEvent,
    CollectionFloor,
    CollectionOffer,
    EventType,
    ListingEvent,
    Marketplace,
    NFTEvent,
    OfferEvent,
    PricedEvent,
    ReceiptInfo,
    SaleEvent,
    Standard,
    from_unix,
    utcnow,
)

__all__ = [
    "Alert",
    "AlertType",
    "AuctionEvent",
    "CancelOrderEvent",
    "CanonicalEvent",
    "CollectionFloor",
    "CollectionOffer",
    "EventBus",
    "EventType",
    "ListingEvent",
    "Marketplace",
    "NFTEvent",
    "NFTWatchError",
    "OfferEvent",
    "PricedEvent",
    "ReceiptInfo",
    "SaleEvent",
    "Standard",
    "from_unix",
    "load_config",
    "setup_logging",
    "utcnow",
]
