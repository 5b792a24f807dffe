"""Floor and offer bookkeeping applied to canonical events."""

from .floor import (
    Decision,
    FloorConfig,
    FloorOfferEngine,
    OrderBookState,
    floor_difference,
)

__all__ = [
    "Decision",
    "FloorConfig",
    "FloorOfferEngine",
    "OrderBookState",
    "floor_difference",
]
