"""Shared fakes for chain access."""

from __future__ import annotations

from typing import Any, Mapping, Optional

import pytest

from common.errors import ChainError


def address_topic(address: str) -> str:
    return "0x" + "0" * 24 + address.lower()[2:]


def uint_topic(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


def _topic_matches(wanted: Any, actual: Optional[str]) -> bool:
    if wanted is None:
        return True
    if actual is None:
        return False
    if isinstance(wanted, (list, tuple)):
        return actual.lower() in {item.lower() for item in wanted}
    return actual.lower() == str(wanted).lower()


class FakeChain:
    """In-memory stand-in for :class:`chain.client.ChainClient`."""

    def __init__(
        self,
        receipts: Optional[dict[str, Any]] = None,
        blocks: Optional[dict[int, int]] = None,
        call_results: Optional[dict[tuple[str, str], Any]] = None,
        logs: Optional[list[dict[str, Any]]] = None,
        head: int = 100,
    ) -> None:
        self.receipts = receipts or {}
        self.blocks = blocks or {}
        self.call_results = call_results or {}
        self.logs = logs or []
        self.head = head
        self.block_requests: list[int] = []
        self.log_requests: list[dict[str, Any]] = []
        self.calls: list[tuple[str, str, list[Any]]] = []

    async def block_number(self) -> int:
        return self.head

    async def get_block(self, block_number: int) -> Mapping[str, Any]:
        self.block_requests.append(block_number)
        if block_number not in self.blocks:
            raise ChainError(f"unknown block {block_number}")
        return {"number": block_number, "timestamp": self.blocks[block_number]}

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        receipt = self.receipts.get(tx_hash)
        if isinstance(receipt, Exception):
            raise receipt
        return receipt

    async def call(self, address, signature, args, return_types) -> tuple[Any, ...]:
        self.calls.append((address.lower(), signature, list(args)))
        result = self.call_results.get((address.lower(), signature))
        if result is None:
            raise ChainError("execution reverted")
        return (result,)

    async def get_logs(self, params: Mapping[str, Any]) -> list[Mapping[str, Any]]:
        self.log_requests.append(dict(params))
        from_block = int(params.get("fromBlock", 0))
        to_block = params.get("toBlock", self.head)
        to_block = self.head if to_block == "latest" else int(to_block)
        address = str(params.get("address", "")).lower()
        wanted_topics = list(params.get("topics") or [])
        found = []
        for log in self.logs:
            if address and str(log.get("address", "")).lower() != address:
                continue
            if not from_block <= log.get("blockNumber", 0) <= to_block:
                continue
            topics = log.get("topics") or []
            if all(
                _topic_matches(wanted, topics[index] if index < len(topics) else None)
                for index, wanted in enumerate(wanted_topics)
            ):
                found.append(log)
        return found


@pytest.fixture
def fake_chain_cls() -> type[FakeChain]:
    return FakeChain


@pytest.fixture
def topics():
    class _Topics:
        address = staticmethod(address_topic)
        uint = staticmethod(uint_topic)

    return _Topics
