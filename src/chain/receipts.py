"""Recover token-level details of a marketplace trade from its receipt."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Mapping, Optional, Protocol, Sequence

from eth_abi import decode
from eth_abi.exceptions import DecodingError

from common.errors import ChainError, ReceiptUnavailable, UnknownTokenFormat
from common.models import EventType, ReceiptInfo, Standard

from .abis import (
    ERC1155_TRANSFER_SINGLE,
    ERC1155_URI,
    ERC721_TRANSFER,
    OPENSEA_SHARED_STOREFRONT_ADDRESS,
    TOWN_STAR_ADDRESS,
)
from .codec import event_topic, to_bytes, to_hex, unpad_address
from .timestamps import TimestampCache

logger = logging.getLogger(__name__)

ERC721_TRANSFER_TOPIC = event_topic(ERC721_TRANSFER)
ERC1155_TRANSFER_SINGLE_TOPIC = event_topic(ERC1155_TRANSFER_SINGLE)
ERC1155_URI_TOPIC = event_topic(ERC1155_URI)


class ReceiptSource(Protocol):
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]: ...

    async def call(
        self, address: str, signature: str, args: Sequence[Any], return_types: Sequence[str]
    ) -> tuple[Any, ...]: ...

    async def get_logs(self, params: Mapping[str, Any]) -> list[Mapping[str, Any]]: ...


def _topics(log: Mapping[str, Any]) -> list[str]:
    return [to_hex(topic).lower() for topic in log.get("topics") or []]


def _token_id_from_data(log: Mapping[str, Any]) -> tuple[int, str]:
    word = to_bytes(log.get("data"))[:32]
    if len(word) < 32:
        raise ValueError("log data too short to hold a token id")
    return int.from_bytes(word, "big"), to_hex(word)


class ReceiptResolver:
    """Turn a transaction hash into a :class:`ReceiptInfo`.

    Failures never propagate: a missing receipt yields an empty
    ``ReceiptInfo()``, an unrecognised log set yields only the timestamp and
    initiator, and failed metadata calls leave ``metadata_uri`` as ``None``.
    """

    def __init__(self, chain: ReceiptSource, timestamps: TimestampCache) -> None:
        self._chain = chain
        self._timestamps = timestamps

    async def fetch_receipt(self, tx_hash: str) -> Mapping[str, Any]:
        """Receipt of ``tx_hash``; raises :class:`ReceiptUnavailable` otherwise."""

        try:
            receipt = await self._chain.get_transaction_receipt(tx_hash)
        except ReceiptUnavailable:
            raise
        except ChainError as exc:
            raise ReceiptUnavailable(tx_hash, str(exc)) from exc
        if receipt is None:
            raise ReceiptUnavailable(tx_hash, "null receipt")
        return receipt

    async def resolve(
        self, tx_hash: str, event_type: Optional[EventType] = None
    ) -> ReceiptInfo:
        try:
            receipt = await self.fetch_receipt(tx_hash)
        except ReceiptUnavailable as exc:
            logger.warning("%s", exc)
            return ReceiptInfo()

        initiator = receipt.get("from")
        timestamp = await self._timestamps.get_timestamp(receipt.get("blockNumber"))
        base = ReceiptInfo(
            timestamp=timestamp, initiator=initiator.lower() if initiator else None
        )
        if event_type is EventType.CANCEL_ORDER:
            return base

        try:
            info = await self._token_info(receipt.get("logs") or [], tx_hash)
        except UnknownTokenFormat as exc:
            logger.warning("%s", exc)
            return base
        except (DecodingError, IndexError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Error getting the token info of %s: %s", tx_hash, exc)
            return base

        gas_used = receipt.get("gasUsed")
        return replace(
            info,
            timestamp=base.timestamp,
            initiator=base.initiator,
            gas=int(gas_used) if gas_used else 0,
        )

    async def _token_info(
        self, logs: Sequence[Mapping[str, Any]], tx_hash: str
    ) -> ReceiptInfo:
        for log in logs:
            if str(log.get("address", "")).lower() == OPENSEA_SHARED_STOREFRONT_ADDRESS:
                return await self._shared_storefront_transfer(log)

        for log in logs:
            topics = _topics(log)
            if topics and topics[0] == ERC721_TRANSFER_TOPIC and len(topics) == 4:
                return await self._erc721_transfer(log, topics)

        for log in logs:
            topics = _topics(log)
            if topics and topics[0] == ERC1155_TRANSFER_SINGLE_TOPIC:
                return await self._erc1155_transfer(log, topics)

        raise UnknownTokenFormat(tx_hash)

    async def _shared_storefront_transfer(self, log: Mapping[str, Any]) -> ReceiptInfo:
        topics = _topics(log)
        token_id, token_id_hex = _token_id_from_data(log)
        metadata_uri = await self._call_uri(
            OPENSEA_SHARED_STOREFRONT_ADDRESS, "uri(uint256)", token_id
        )
        if metadata_uri and "0x{id}" in metadata_uri:
            metadata_uri = metadata_uri.replace("0x{id}", token_id_hex)
        return ReceiptInfo(
            collection=OPENSEA_SHARED_STOREFRONT_ADDRESS,
            token_id=str(token_id),
            token_id_hex=token_id_hex,
            metadata_uri=metadata_uri,
            standard=Standard.ERC1155,
            from_address=unpad_address(topics[2]),
            to_address=unpad_address(topics[3]),
        )

    async def _erc721_transfer(self, log: Mapping[str, Any], topics: list[str]) -> ReceiptInfo:
        collection = str(log["address"]).lower()
        token_id_hex = topics[3]
        token_id = int(token_id_hex, 16)
        metadata_uri = await self._call_uri(collection, "tokenURI(uint256)", token_id)
        return ReceiptInfo(
            collection=collection,
            token_id=str(token_id),
            token_id_hex=token_id_hex,
            metadata_uri=metadata_uri,
            standard=Standard.ERC721,
            from_address=unpad_address(topics[1]),
            to_address=unpad_address(topics[2]),
        )

    async def _erc1155_transfer(self, log: Mapping[str, Any], topics: list[str]) -> ReceiptInfo:
        collection = str(log["address"]).lower()
        token_id, token_id_hex = _token_id_from_data(log)
        if collection == TOWN_STAR_ADDRESS:
            metadata_uri = await self._town_star_uri(token_id_hex)
        else:
            metadata_uri = await self._call_uri(collection, "uri(uint256)", token_id)
        return ReceiptInfo(
            collection=collection,
            token_id=str(token_id),
            token_id_hex=token_id_hex,
            metadata_uri=metadata_uri,
            standard=Standard.ERC1155,
            from_address=unpad_address(topics[2]),
            to_address=unpad_address(topics[3]),
        )

    async def _call_uri(self, address: str, signature: str, token_id: int) -> Optional[str]:
        try:
            (uri,) = await self._chain.call(address, signature, [token_id], ["string"])
        except (ChainError, ValueError) as exc:
            logger.debug("No metadata URI for %s #%s: %s", address, token_id, exc)
            return None
        return uri or None

    async def _town_star_uri(self, token_id_hex: str) -> Optional[str]:
        # Town Star never implemented uri(); the URI is only announced in logs.
        try:
            logs = await self._chain.get_logs(
                {
                    "address": TOWN_STAR_ADDRESS,
                    "fromBlock": 0,
                    "toBlock": "latest",
                    "topics": [ERC1155_URI_TOPIC, token_id_hex],
                }
            )
            if not logs:
                return None
            (uri,) = decode(["string"], to_bytes(logs[0].get("data")))
        except (ChainError, DecodingError, ValueError) as exc:
            logger.debug("No Town Star URI for %s: %s", token_id_hex, exc)
            return None
        return uri or None


__all__ = ["ReceiptResolver"]
