"""Polling of marketplace contract logs into canonical events."""

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from typing import Any, Awaitable, Callable, ClassVar, Mapping, Optional

from eth_abi.exceptions import DecodingError

from chain.abis import EventAbi
from chain.client import ChainClient
from chain.codec import EventDecoder, to_hex, wei_to_ether
from chain.receipts import ReceiptResolver
from common.bus import EventBus
from common.errors import ChainError
from common.models import (
    AuctionEvent,
    CancelOrderEvent,
    CanonicalEvent,
    EventType,
    Marketplace,
    ReceiptInfo,
    SaleEvent,
)

from .base import IngestClient

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any], Optional[str]], Awaitable[Optional[CanonicalEvent]]]


class ContractLogListener(IngestClient):
    """Follow one marketplace contract and publish its trades.

    Subclasses set :attr:`marketplace`, :attr:`address` and :attr:`events`
    and map event names to coroutine handlers in :meth:`handlers`. Logs are
    fetched with ``eth_getLogs`` from the last processed block to the chain
    head in windows of at most ``max_block_range`` blocks.
    """

    marketplace: ClassVar[Marketplace]
    address: ClassVar[str]
    events: ClassVar[list[EventAbi]]

    def __init__(
        self,
        bus: EventBus[CanonicalEvent],
        chain: ChainClient,
        resolver: ReceiptResolver,
        *,
        address: Optional[str] = None,
        poll_interval: float = 15.0,
        max_block_range: int = 500,
        start_block: Optional[int] = None,
    ) -> None:
        super().__init__(name=f"{self.marketplace.value}-logs")
        self.bus = bus
        self.chain = chain
        self.resolver = resolver
        self.contract_address = (address or self.address).lower()
        self.poll_interval = poll_interval
        self.max_block_range = max(1, max_block_range)
        self.decoder = EventDecoder(self.events)
        self._last_block: Optional[int] = None if start_block is None else start_block - 1
        self._handlers = self.handlers()

    @property
    def last_block(self) -> Optional[int]:
        return self._last_block

    @abstractmethod
    def handlers(self) -> dict[str, Handler]:
        """Map of contract event name to the coroutine that converts it."""

    async def run_once(self) -> None:
        while not self.stopped:
            try:
                await self.poll()
            except ChainError as exc:
                logger.warning("%s could not poll logs: %s", self.name, exc)
            if await self.wait(self.poll_interval):
                break

    async def poll(self) -> list[CanonicalEvent]:
        """Process every new log up to the current head."""

        head = await self.chain.block_number()
        if self._last_block is None:
            self._last_block = head - 1
        published: list[CanonicalEvent] = []
        from_block = self._last_block + 1
        while from_block <= head:
            to_block = min(head, from_block + self.max_block_range - 1)
            logs = await self.chain.get_logs(
                {
                    "address": self.contract_address,
                    "fromBlock": from_block,
                    "toBlock": to_block,
                    "topics": [self.decoder.topics],
                }
            )
            for log in logs:
                event = await self.process_log(log)
                if event is not None:
                    published.append(event)
            self._last_block = to_block
            from_block = to_block + 1
        return published

    async def process_log(self, log: Mapping[str, Any]) -> Optional[CanonicalEvent]:
        """Decode one log, run its handler and publish the result."""

        tx_hash = log.get("transactionHash")
        tx_hash = to_hex(tx_hash).lower() if tx_hash is not None else None
        try:
            matched = self.decoder.match(log)
        except (DecodingError, ValueError) as exc:
            logger.warning("%s could not decode log of %s: %s", self.name, tx_hash, exc)
            return None
        if matched is None:
            return None

        name, args = matched
        handler = self._handlers.get(name)
        if handler is None:
            logger.debug("%s ignores %s", self.name, name)
            return None
        try:
            event = await handler(args, tx_hash)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s failed to handle %s in %s", self.name, name, tx_hash)
            return None

        if event is not None:
            await self.bus.publish(event)
        return event

    async def receipt(
        self, tx_hash: Optional[str], event_type: Optional[EventType] = None
    ) -> ReceiptInfo:
        if not tx_hash:
            return ReceiptInfo()
        return await self.resolver.resolve(tx_hash, event_type)

    async def cancel_event(
        self, tx_hash: Optional[str], order_hash: Optional[str] = None
    ) -> CancelOrderEvent:
        info = await self.receipt(tx_hash, EventType.CANCEL_ORDER)
        return CancelOrderEvent(
            marketplace=self.marketplace,
            transaction_hash=tx_hash,
            order_hash=order_hash,
            **info.event_fields(),
        )

    def sale_event(
        self,
        event_type: EventType,
        tx_hash: Optional[str],
        price_wei: int,
        info: ReceiptInfo,
        **fields: Any,
    ) -> SaleEvent:
        return SaleEvent(
            event_type=event_type,
            marketplace=self.marketplace,
            transaction_hash=tx_hash,
            price=wei_to_ether(price_wei),
            **{**fields, **info.event_fields()},
        )

    def auction_event(
        self,
        event_type: EventType,
        tx_hash: Optional[str],
        price_wei: int,
        info: ReceiptInfo,
        **fields: Any,
    ) -> AuctionEvent:
        return AuctionEvent(
            event_type=event_type,
            marketplace=self.marketplace,
            transaction_hash=tx_hash,
            price=wei_to_ether(price_wei),
            **{**fields, **info.event_fields()},
        )


__all__ = ["ContractLogListener", "Handler"]
