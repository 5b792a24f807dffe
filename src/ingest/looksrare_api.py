"""Client for the LooksRare REST order book."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Mapping, Optional

import aiohttp

from common.errors import OrderBookError, RateLimited

logger = logging.getLogger(__name__)

MAINNET_API = "https://api.looksrare.org"
RINKEBY_API = "https://api-rinkeby.looksrare.org"
ORDERS_PATH = "/api/v1/orders"

COLLECTION_BID_STRATEGY = "0x86f909f70813cdb1bc733f4d97dc6b03b8e7e8f3"
STANDARD_SALE_FIXED_PRICE_STRATEGY = "0x56244bb70cbd3ea9dc8007399f61dfc065190031"

Order = dict[str, Any]


class LooksRareAPI:
    """Fetch orders from LooksRare with jittered retries.

    Every query degrades to an empty list: rate limiting and dropped
    connections are retried up to ``retries`` times after sleeping a random
    ``[0, max_jitter]`` seconds, anything else gives up immediately.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        api_key: Optional[str] = None,
        network: str = "homestead",
        retries: int = 3,
        max_jitter: float = 30.0,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self._session = session
        self.api_key = api_key or None
        self.base_url = MAINNET_API if network == "homestead" else RINKEBY_API
        self.retries = retries
        self.max_jitter = max_jitter
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._sleep = sleep
        self._jitter = jitter

    @property
    def headers(self) -> dict[str, str]:
        if self.api_key:
            return {"X-Looks-Api-Key": self.api_key}
        return {}

    async def call_with_retries(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        retries: Optional[int] = None,
    ) -> Any:
        """GET ``path`` and return the ``data`` of a successful answer, else ``[]``."""

        remaining = self.retries if retries is None else retries
        url = f"{self.base_url}{path}"
        session = self._session or aiohttp.ClientSession()
        try:
            while True:
                try:
                    return await self._fetch(session, url, params)
                except (RateLimited, aiohttp.ClientConnectionError, asyncio.TimeoutError) as exc:
                    if remaining <= 0:
                        logger.warning("Giving up on LooksRare %s: %s", path, exc or type(exc).__name__)
                        return []
                    delay = self._jitter(0, self.max_jitter)
                    logger.warning(
                        "LooksRare API unavailable (%s). Delaying the next request by %.1fs",
                        exc or type(exc).__name__,
                        delay,
                    )
                    await self._sleep(delay)
                    remaining -= 1
                except (OrderBookError, aiohttp.ClientError, ValueError) as exc:
                    logger.warning("LooksRare %s failed: %s", path, exc)
                    return []
        finally:
            if self._session is None:
                await session.close()

    async def _fetch(
        self,
        session: aiohttp.ClientSession,
        url: str,
        params: Optional[Mapping[str, Any]],
    ) -> Any:
        async with session.get(
            url, params=params, headers=self.headers, timeout=self._timeout
        ) as resp:
            payload = await resp.json(content_type=None)
            status = resp.status

        if isinstance(payload, Mapping):
            if payload.get("success") is True:
                data = payload.get("data")
                return [] if data is None else data
            message = payload.get("message")
        else:
            message = None
        if status == 429 or message == "Too Many Requests":
            raise RateLimited(message or "HTTP 429")
        raise OrderBookError(f"HTTP {status}: {message or payload!r}")

    async def get_orders(self, params: Mapping[str, Any]) -> list[Order]:
        data = await self.call_with_retries(ORDERS_PATH, params)
        return list(data) if isinstance(data, list) else []

    async def get_highest_offers(
        self, collection: str, token_id: Optional[str] = None, first: int = 1
    ) -> list[Order]:
        """Valid collection bids, highest price first."""

        params: dict[str, Any] = {
            "isOrderAsk": "false",
            "collection": collection,
            "strategy": COLLECTION_BID_STRATEGY,
            "pagination[first]": first,
            "status[]": "VALID",
            "sort": "PRICE_DESC",
        }
        if token_id:
            params["tokenId"] = token_id
        return await self.get_orders(params)

    async def get_top_bid(self, collection: str) -> Optional[Order]:
        offers = await self.get_highest_offers(collection)
        return offers[0] if offers else None

    async def get_floor_listing(self, collection: str) -> Optional[Order]:
        """Cheapest valid fixed-price listing of ``collection``."""

        listings = await self.get_orders(
            {
                "isOrderAsk": "true",
                "collection": collection,
                "strategy": STANDARD_SALE_FIXED_PRICE_STRATEGY,
                "pagination[first]": 1,
                "status[]": "VALID",
                "sort": "PRICE_ASC",
            }
        )
        return listings[0] if listings else None


__all__ = [
    "COLLECTION_BID_STRATEGY",
    "LooksRareAPI",
    "MAINNET_API",
    "RINKEBY_API",
    "STANDARD_SALE_FIXED_PRICE_STRATEGY",
]
