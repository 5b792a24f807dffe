"""Shared data models and enums used across the project."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def from_unix(seconds: Any) -> datetime:
    """Aware UTC datetime from unix seconds (int or numeric string)."""

    return datetime.fromtimestamp(int(seconds), tz=timezone.utc)


class EventType(str, Enum):
    """Enumeration of canonical marketplace event types."""

    OFFER = "offer"
    LISTING = "listing"
    ACCEPT_OFFER = "acceptOffer"
    ACCEPT_ASK = "acceptAsk"
    CANCEL_ORDER = "cancelOrder"
    CREATE_AUCTION = "createAuction"
    PLACE_BID = "placeBid"
    SETTLE_AUCTION = "settleAuction"


class Marketplace(str, Enum):
    OPENSEA = "openSea"
    LOOKSRARE = "looksRare"
    RARIBLE = "rarible"
    FOUNDATION = "foundation"
    X2Y2 = "x2y2"


class Standard(str, Enum):
    ERC721 = "ERC-721"
    ERC1155 = "ERC-1155"
    UNKNOWN = "unknown"


class AlertType(str, Enum):
    WALLET = "wallet"
    SERVER = "server"
    COLLECTION = "collection"


class NFTEvent(BaseModel):
    """Fields shared by every canonical event regardless of its type."""

    model_config = ConfigDict(frozen=True)

    event_type: EventType
    marketplace: Marketplace = Field(..., description="Marketplace the event came from")
    network: str = Field("eth", description="Chain identifier")
    collection: Optional[str] = Field(None, description="Collection contract address")
    token_id: str = Field("", description="Token id, empty for collection-level orders")
    standard: Standard = Standard.UNKNOWN
    buyer: Optional[str] = None
    seller: Optional[str] = None
    initiator: Optional[str] = Field(
        None, description="Address that sent the transaction, may not be a user"
    )
    transaction_hash: Optional[str] = None
    order_hash: Optional[str] = Field(
        None, description="Marketplace order hash for off-chain orders"
    )
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    metadata_uri: Optional[str] = None
    gas: Optional[int] = None
    amount: Optional[int] = None

    @field_validator("collection", "buyer", "seller", "initiator")
    @classmethod
    def _lower_address(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value

    @field_validator("token_id", mode="before")
    @classmethod
    def _token_id_as_str(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)


class PricedEvent(NFTEvent):
    """An event carrying a price, enriched with the collection floor."""

    price: Decimal = Field(..., ge=0, description="Price in the chain's native token")
    collection_floor: Optional[Decimal] = Field(
        None, description="Collection floor at the time the event was processed"
    )
    floor_difference: Optional[Decimal] = Field(
        None, description="(price - floor) / floor, positive when above the floor"
    )


class OfferEvent(PricedEvent):
    event_type: Literal[EventType.OFFER] = EventType.OFFER
    is_highest_offer: bool = Field(
        False,
        description="True when the offer is the top of book; set by the poller or the engine",
    )


class ListingEvent(PricedEvent):
    event_type: Literal[EventType.LISTING] = EventType.LISTING
    is_new_floor: bool = False


class SaleEvent(PricedEvent):
    event_type: Literal[
        EventType.ACCEPT_OFFER, EventType.ACCEPT_ASK, EventType.SETTLE_AUCTION
    ]


class AuctionEvent(PricedEvent):
    event_type: Literal[EventType.CREATE_AUCTION, EventType.PLACE_BID]


class CancelOrderEvent(NFTEvent):
    """Cancellations never carry a price or floor-derived fields."""

    event_type: Literal[EventType.CANCEL_ORDER] = EventType.CANCEL_ORDER


CanonicalEvent = Annotated[
    Union[OfferEvent, ListingEvent, SaleEvent, AuctionEvent, CancelOrderEvent],
    Field(discriminator="event_type"),
]


class _OrderRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    collection: str
    price: Decimal = Decimal(0)
    ends_at: datetime = EPOCH
    marketplace: Optional[Marketplace] = None
    order_hash: Optional[str] = None
    observed_at: datetime = Field(default_factory=utcnow)

    @field_validator("collection")
    @classmethod
    def _lower_collection(cls, value: str) -> str:
        return value.lower()

    def is_expired(self, now: datetime) -> bool:
        return self.ends_at < now

    def live_price(self, now: datetime) -> Decimal:
        """Price of the record, or zero when the order has already expired."""

        if self.is_expired(now):
            return Decimal(0)
        return self.price


class CollectionFloor(_OrderRecord):
    """Lowest live listing known for a collection."""

    @classmethod
    def empty(cls, collection: str) -> "CollectionFloor":
        return cls(collection=collection, observed_at=EPOCH)


class CollectionOffer(_OrderRecord):
    """Highest live bid known for a collection, or for one of its tokens."""

    token_id: str = ""

    @classmethod
    def empty(cls, collection: str, token_id: str = "") -> "CollectionOffer":
        return cls(collection=collection, token_id=token_id, observed_at=EPOCH)


def _all_marketplaces() -> list[Marketplace]:
    return list(Marketplace)


def _all_event_types() -> list[EventType]:
    return list(EventType)


class Alert(BaseModel):
    """A watcher: a user, server, or collection subscription."""

    model_config = ConfigDict(frozen=True)

    id: Union[int, str]
    type: AlertType
    address: str
    tokens: list[str] = Field(
        default_factory=list, description='Owned tokens as "collection/tokenId"'
    )
    synced_at: Optional[datetime] = None
    user_id: Optional[str] = None
    channel_id: Optional[str] = None
    nickname: Optional[str] = None
    allowed_marketplaces: list[Marketplace] = Field(default_factory=_all_marketplaces)
    allowed_events: list[EventType] = Field(default_factory=_all_event_types)
    max_offer_floor_difference: float = Field(
        15.0, description="Max. percentage below the floor an offer may be to notify"
    )

    @field_validator("address")
    @classmethod
    def _lower_address(cls, value: str) -> str:
        return value.lower()


@dataclass(frozen=True)
class ReceiptInfo:
    """Token-level details recovered from a transaction receipt.

    Every field is optional: ``ReceiptInfo()`` is returned when the receipt
    could not be fetched at all.
    """

    timestamp: Optional[int] = None
    initiator: Optional[str] = None
    gas: Optional[int] = None
    collection: Optional[str] = None
    token_id: Optional[str] = None
    token_id_hex: Optional[str] = None
    metadata_uri: Optional[str] = None
    standard: Optional[Standard] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None

    def event_fields(self) -> dict[str, Any]:
        """Keyword arguments to merge into a canonical event."""

        fields: dict[str, Any] = {
            "initiator": self.initiator,
            "gas": self.gas,
            "metadata_uri": self.metadata_uri,
        }
        if self.timestamp is not None:
            fields["starts_at"] = datetime.fromtimestamp(self.timestamp, tz=timezone.utc)
        if self.collection is not None:
            fields["collection"] = self.collection
        if self.token_id is not None:
            fields["token_id"] = self.token_id
        if self.standard is not None:
            fields["standard"] = self.standard
        return fields


__all__ = [
    "EPOCH",
    "Alert",
    "AlertType",
    "AuctionEvent",
    "CancelOrderEvent",
    "CanonicalEvent",
    "CollectionFloor",
    "CollectionOffer",
    "EventType",
    "ListingEvent",
    "Marketplace",
    "NFTEvent",
    "OfferEvent",
    "PricedEvent",
    "ReceiptInfo",
    "SaleEvent",
    "Standard",
    "from_unix",
    "utcnow",
]
