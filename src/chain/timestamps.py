"""Bounded block-number to block-timestamp memo shared by all listeners."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, Optional, Protocol

from common.errors import ChainError

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10_000


class BlockSource(Protocol):
    async def get_block(self, block_number: int) -> Mapping[str, Any]: ...


class TimestampCache:
    """Cache block timestamps (unix seconds) to spare the provider's rate limit.

    When the cache is full the next insertion replaces the whole cache with a
    single entry holding the newest block, rather than evicting one entry at a
    time.
    """

    def __init__(
        self,
        chain: BlockSource,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._chain = chain
        self.capacity = capacity
        self._clock = clock
        self._entries: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, block_number: object) -> bool:
        return block_number in self._entries

    def _now(self) -> int:
        return int(self._clock())

    def insert(self, block_number: int, timestamp: int) -> None:
        if len(self._entries) < self.capacity:
            self._entries[block_number] = timestamp
        else:
            logger.debug("Timestamp cache full (%d); collapsing to newest entry", self.capacity)
            self._entries = {block_number: timestamp}

    async def get_timestamp(self, block_number: Optional[int]) -> int:
        """Return the block's timestamp, falling back to the wall clock.

        Never raises: a failed block fetch yields the current time.
        """

        if block_number is None:
            return self._now()

        cached = self._entries.get(block_number)
        if cached is not None:
            return cached

        try:
            block = await self._chain.get_block(block_number)
            timestamp = int(block["timestamp"])
        except (ChainError, KeyError, TypeError, ValueError) as exc:
            logger.debug("Using wall clock for block %s: %s", block_number, exc)
            return self._now()

        self.insert(block_number, timestamp)
        return timestamp


__all__ = ["DEFAULT_CAPACITY", "TimestampCache"]
