"""Thin async wrapper over web3 for the RPC calls the crawler needs."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional, Sequence

import aiohttp
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from web3 import AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound, Web3Exception

from common.errors import ChainError

from .codec import function_selector, to_bytes

logger = logging.getLogger(__name__)

_RPC_ERRORS = (Web3Exception, aiohttp.ClientError, asyncio.TimeoutError, ValueError)


class ChainClient:
    """Provider-agnostic access to logs, receipts, blocks and read-only calls.

    Every failure surfaces as :class:`ChainError` so callers only need to
    handle one exception type.
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        w3: Optional[AsyncWeb3] = None,
        request_timeout: float = 30.0,
    ) -> None:
        if w3 is None:
            if not rpc_url:
                raise ValueError("ChainClient needs either rpc_url or a configured AsyncWeb3")
            provider = AsyncWeb3.AsyncHTTPProvider(
                rpc_url,
                request_kwargs={"timeout": aiohttp.ClientTimeout(total=request_timeout)},
            )
            w3 = AsyncWeb3(provider)
        self._w3 = w3

    async def block_number(self) -> int:
        try:
            return int(await self._w3.eth.block_number)
        except _RPC_ERRORS as exc:
            raise ChainError(f"Failed to fetch block number: {exc}") from exc

    async def get_block(self, block_number: int) -> Mapping[str, Any]:
        try:
            return await self._w3.eth.get_block(block_number)
        except _RPC_ERRORS as exc:
            raise ChainError(f"Failed to fetch block {block_number}: {exc}") from exc

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Mapping[str, Any]]:
        """Return the receipt, or ``None`` when the node does not know the hash."""

        try:
            return await self._w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except _RPC_ERRORS as exc:
            raise ChainError(f"Failed to fetch receipt {tx_hash}: {exc}") from exc

    async def get_logs(self, params: Mapping[str, Any]) -> list[Mapping[str, Any]]:
        filter_params = dict(params)
        address = filter_params.get("address")
        if isinstance(address, str):
            filter_params["address"] = Web3.to_checksum_address(address)
        try:
            return list(await self._w3.eth.get_logs(filter_params))
        except _RPC_ERRORS as exc:
            raise ChainError(f"Failed to fetch logs for {params}: {exc}") from exc

    async def call(
        self,
        address: str,
        signature: str,
        args: Sequence[Any],
        return_types: Sequence[str],
    ) -> tuple[Any, ...]:
        """Call a view function, e.g. ``call(addr, "tokenURI(uint256)", [1], ["string"])``."""

        arg_types = signature[signature.index("(") + 1 : -1]
        types = [item for item in arg_types.split(",") if item]
        data = function_selector(signature) + encode(types, list(args))
        transaction = {"to": Web3.to_checksum_address(address), "data": Web3.to_hex(data)}
        try:
            result = await self._w3.eth.call(transaction)
        except _RPC_ERRORS as exc:
            raise ChainError(f"Call {signature} on {address} failed: {exc}") from exc
        try:
            return tuple(decode(list(return_types), to_bytes(result)))
        except DecodingError as exc:
            raise ChainError(f"Call {signature} on {address} returned undecodable data") from exc

    async def close(self) -> None:
        disconnect = getattr(self._w3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()


__all__ = ["ChainClient"]
