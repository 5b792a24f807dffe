import re
from datetime import datetime, timedelta, timezone

import pytest

pytest.importorskip("aioresponses")

from aioresponses import aioresponses

from common.errors import OwnershipLookupError
from ingest import MoralisClient, NFTScanClient, build_ownership_lookup

WALLET = "0x9999999999999999999999999999999999999999"
MORALIS_URL = re.compile(r"^https://deep-index\.moralis\.io/api/v2\.2/0x9+/nft.*")
NFTSCAN_TOKEN_URL = re.compile(r"^https://restapi\.nftscan\.com/gw/token.*")
NFTSCAN_NFTS_URL = "https://restapi.nftscan.com/api/v1/getAllNftByUserAddress"


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2022, 5, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.mark.asyncio
async def test_moralis_lists_collection_and_token_ids():
    client = MoralisClient("moralis-key")

    with aioresponses() as mocked:
        mocked.get(
            MORALIS_URL,
            payload={
                "result": [
                    {"token_address": "0xABCDEF", "token_id": "17"},
                    {"token_address": "0x123456", "token_id": "2"},
                ]
            },
        )
        tokens = await client.get_address_nfts(WALLET)

        (calls,) = mocked.requests.values()
        assert calls[0].kwargs["headers"]["X-API-Key"] == "moralis-key"

    assert tokens == ["0xabcdef/17", "0x123456/2"]


@pytest.mark.asyncio
async def test_moralis_http_error_is_a_lookup_error():
    client = MoralisClient("moralis-key")

    with aioresponses() as mocked:
        mocked.get(MORALIS_URL, status=401, payload={"message": "Invalid key"})
        with pytest.raises(OwnershipLookupError):
            await client.get_address_nfts(WALLET)


@pytest.mark.asyncio
async def test_nftscan_caches_access_token_until_expiry():
    clock = _Clock()
    client = NFTScanClient("api-id", "secret", clock=clock)
    nfts = {
        "data": {
            "content": [{"nft_creator": "0xABCDEF", "nft_asset_id": "0x0a"}],
        }
    }

    with aioresponses() as mocked:
        mocked.get(NFTSCAN_TOKEN_URL, payload={"data": {"accessToken": "tok-1", "expiration": 60}})
        mocked.post(NFTSCAN_NFTS_URL, payload=nfts)
        mocked.post(NFTSCAN_NFTS_URL, payload=nfts)
        first = await client.get_address_nfts(WALLET)
        second = await client.get_address_nfts(WALLET)

        clock.now += timedelta(seconds=61)
        mocked.get(NFTSCAN_TOKEN_URL, payload={"data": {"accessToken": "tok-2", "expiration": 60}})
        assert await client.access_token() == "tok-2"

    assert first == second == ["0xabcdef/10"]


@pytest.mark.asyncio
async def test_nftscan_without_credentials_fails_fast():
    with pytest.raises(OwnershipLookupError):
        await NFTScanClient("", "").get_address_nfts(WALLET)


def test_lookup_uses_only_configured_providers():
    lookup = build_ownership_lookup(moralis_api_key="key", nftscan_api_id="id")

    assert [type(provider) for provider in lookup.providers] == [MoralisClient]
    assert build_ownership_lookup().providers == []
