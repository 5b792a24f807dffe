"""Wallet ownership lookups used to decide which collections to poll."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol, Sequence

import aiohttp

from common.errors import OwnershipLookupError
from common.models import EPOCH, utcnow

logger = logging.getLogger(__name__)

MORALIS_API = "https://deep-index.moralis.io/api/v2.2"
NFTSCAN_API = "https://restapi.nftscan.com"


class OwnershipLookup(Protocol):
    async def get_address_nfts(self, address: str) -> list[str]:
        """Tokens held by ``address`` as ``"collection/tokenId"`` strings."""


class _HTTPLookup:
    def __init__(self, session: aiohttp.ClientSession | None, timeout: float) -> None:
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        session = self._session or aiohttp.ClientSession()
        try:
            async with session.request(method, url, timeout=self._timeout, **kwargs) as resp:
                resp.raise_for_status()
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise OwnershipLookupError(f"{method} {url} failed: {exc}") from exc
        finally:
            if self._session is None:
                await session.close()


class MoralisClient(_HTTPLookup):
    """Primary provider: the Moralis EVM API."""

    def __init__(
        self,
        api_key: str,
        session: aiohttp.ClientSession | None = None,
        chain: str = "eth",
        timeout: float = 30.0,
    ) -> None:
        super().__init__(session, timeout)
        self.api_key = api_key
        self.chain = chain

    async def get_address_nfts(self, address: str) -> list[str]:
        if not self.api_key:
            raise OwnershipLookupError("Moralis API key is not configured")
        payload = await self._request(
            "GET",
            f"{MORALIS_API}/{address}/nft",
            params={"chain": self.chain, "format": "decimal"},
            headers={"X-API-Key": self.api_key, "Accept": "application/json"},
        )
        try:
            return [
                f"{item['token_address'].lower()}/{item['token_id']}"
                for item in payload.get("result") or []
            ]
        except (AttributeError, KeyError, TypeError) as exc:
            raise OwnershipLookupError(f"Unexpected Moralis payload: {exc}") from exc


class NFTScanClient(_HTTPLookup):
    """Backup provider. Access tokens are cached until they expire."""

    def __init__(
        self,
        api_id: str,
        secret: str,
        session: aiohttp.ClientSession | None = None,
        page_size: int = 100,
        timeout: float = 30.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(session, timeout)
        self.api_id = api_id
        self.secret = secret
        self.page_size = page_size
        self._clock = clock
        self._token = ""
        self._token_expiry = EPOCH

    async def access_token(self) -> str:
        if self._token and self._token_expiry > self._clock():
            return self._token
        if not self.api_id or not self.secret:
            raise OwnershipLookupError("NFTScan credentials are not configured")

        payload = await self._request(
            "GET",
            f"{NFTSCAN_API}/gw/token",
            params={"apiKey": self.api_id, "apiSecret": self.secret},
        )
        try:
            data = payload["data"]
            self._token = data["accessToken"]
            self._token_expiry = self._clock() + timedelta(seconds=int(data["expiration"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise OwnershipLookupError(f"Unexpected NFTScan token payload: {exc}") from exc
        return self._token

    async def get_address_nfts(self, address: str) -> list[str]:
        token = await self.access_token()
        payload = await self._request(
            "POST",
            f"{NFTSCAN_API}/api/v1/getAllNftByUserAddress",
            headers={"Access-Token": token},
            json={
                "erc": "erc721",
                "page_index": 1,
                "page_size": self.page_size,
                "user_address": address,
            },
        )
        try:
            content = (payload.get("data") or {}).get("content") or []
            return [
                f"{item['nft_creator'].lower()}/{int(item['nft_asset_id'], 16)}"
                for item in content
            ]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise OwnershipLookupError(f"Unexpected NFTScan payload: {exc}") from exc


class FallbackOwnershipLookup:
    """Ask each provider in order; ``[]`` when all of them fail."""

    def __init__(self, providers: Sequence[OwnershipLookup]) -> None:
        self.providers = list(providers)

    async def get_address_nfts(self, address: str) -> list[str]:
        for provider in self.providers:
            try:
                return await provider.get_address_nfts(address)
            except OwnershipLookupError as exc:
                logger.warning(
                    "%s could not list NFTs of %s: %s", type(provider).__name__, address, exc
                )
        return []


def build_ownership_lookup(
    moralis_api_key: Optional[str] = None,
    nftscan_api_id: Optional[str] = None,
    nftscan_secret: Optional[str] = None,
    session: aiohttp.ClientSession | None = None,
) -> FallbackOwnershipLookup:
    providers: list[OwnershipLookup] = []
    if moralis_api_key:
        providers.append(MoralisClient(moralis_api_key, session=session))
    if nftscan_api_id and nftscan_secret:
        providers.append(NFTScanClient(nftscan_api_id, nftscan_secret, session=session))
    if not providers:
        logger.warning("No ownership provider configured; wallet tokens will stay empty")
    return FallbackOwnershipLookup(providers)


__all__ = [
    "FallbackOwnershipLookup",
    "MoralisClient",
    "NFTScanClient",
    "OwnershipLookup",
    "build_ownership_lookup",
]
