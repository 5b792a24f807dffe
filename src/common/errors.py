"""Exception types raised across the NFT activity pipeline."""

from __future__ import annotations


class NFTWatchError(Exception):
    """Base class for every error raised by this project."""


class ConfigError(NFTWatchError, ValueError):
    """Raised when the YAML configuration cannot be used."""


class ChainError(NFTWatchError):
    """An RPC call against the chain provider failed."""


class ReceiptUnavailable(ChainError):
    """The transaction receipt could not be fetched or was empty."""

    def __init__(self, tx_hash: str, reason: str = "") -> None:
        message = f"Receipt unavailable for {tx_hash}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.tx_hash = tx_hash


class UnknownTokenFormat(NFTWatchError):
    """No recognised NFT transfer log was found in a receipt."""

    def __init__(self, tx_hash: str | None) -> None:
        super().__init__(f"Unknown token format in transaction {tx_hash}")
        self.tx_hash = tx_hash


class OrderBookError(NFTWatchError):
    """The off-chain order book returned an unusable response."""


class RateLimited(OrderBookError):
    """The order book answered with its rate-limit signal."""


class OwnershipLookupError(NFTWatchError):
    """A wallet ownership provider failed to answer."""


__all__ = [
    "ChainError",
    "ConfigError",
    "NFTWatchError",
    "OrderBookError",
    "OwnershipLookupError",
    "RateLimited",
    "ReceiptUnavailable",
    "UnknownTokenFormat",
]
