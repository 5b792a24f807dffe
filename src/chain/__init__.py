"""On-chain access: RPC client, log decoding, timestamps and receipt resolution."""

from .client import ChainClient  # noqa: F401
from .codec import EventDecoder, ether_to_wei, wei_to_ether  # noqa: F401
from .receipts import ReceiptResolver  # noqa: F401
from .timestamps import TimestampCache  # noqa: F401

__all__ = [
    "ChainClient",
    "EventDecoder",
    "ReceiptResolver",
    "TimestampCache",
    "ether_to_wei",
    "wei_to_ether",
]
