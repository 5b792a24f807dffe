import asyncio

import pytest

pytest.importorskip("web3")

from eth_abi import encode

from chain.abis import OPENSEA_SHARED_STOREFRONT_ADDRESS, TOWN_STAR_ADDRESS
from chain.receipts import (
    ERC1155_TRANSFER_SINGLE_TOPIC,
    ERC1155_URI_TOPIC,
    ERC721_TRANSFER_TOPIC,
    ReceiptResolver,
)
from chain.timestamps import TimestampCache
from common.errors import ChainError, ReceiptUnavailable
from common.models import EventType, ReceiptInfo, Standard

SELLER = "0x1111111111111111111111111111111111111111"
BUYER = "0x2222222222222222222222222222222222222222"
OPERATOR = "0x3333333333333333333333333333333333333333"
COLLECTION = "0xbc4ca0eda7647a8ab7c2061c2e118a18a936f13d"
TX = "0xfeed"


def _receipt(logs, sender=SELLER, gas_used=150_000):
    return {"from": sender, "blockNumber": 10, "gasUsed": gas_used, "logs": logs}


def _erc721_log(topics, token_id=7, address=COLLECTION):
    return {
        "address": address,
        "topics": [
            ERC721_TRANSFER_TOPIC,
            topics.address(SELLER),
            topics.address(BUYER),
            topics.uint(token_id),
        ],
        "data": "0x",
    }


def _transfer_single_log(topics, address, token_id, value=1):
    return {
        "address": address,
        "topics": [
            ERC1155_TRANSFER_SINGLE_TOPIC,
            topics.address(OPERATOR),
            topics.address(SELLER),
            topics.address(BUYER),
        ],
        "data": "0x" + encode(["uint256", "uint256"], [token_id, value]).hex(),
    }


def _resolver(chain):
    return ReceiptResolver(chain, TimestampCache(chain, clock=lambda: 5.0))


def test_unknown_logs_return_timestamp_and_initiator_only(fake_chain_cls):
    chain = fake_chain_cls(
        receipts={TX: _receipt([{"address": COLLECTION, "topics": ["0x" + "ab" * 32], "data": "0x"}])},
        blocks={10: 1_650_000_000},
    )

    info = asyncio.run(_resolver(chain).resolve(TX))

    assert info == ReceiptInfo(timestamp=1_650_000_000, initiator=SELLER)


def test_missing_or_failing_receipt_gives_empty_info(fake_chain_cls):
    chain = fake_chain_cls(receipts={"0xboom": ChainError("rpc down")})
    resolver = _resolver(chain)

    assert asyncio.run(resolver.resolve("0xmissing")) == ReceiptInfo()
    assert asyncio.run(resolver.resolve("0xboom")) == ReceiptInfo()


def test_erc721_transfer(fake_chain_cls, topics):
    chain = fake_chain_cls(
        receipts={TX: _receipt([_erc721_log(topics)])},
        blocks={10: 1_650_000_000},
        call_results={(COLLECTION, "tokenURI(uint256)"): "ipfs://Qm/7"},
    )

    info = asyncio.run(_resolver(chain).resolve(TX, EventType.ACCEPT_ASK))

    assert info.collection == COLLECTION
    assert info.token_id == "7"
    assert info.standard is Standard.ERC721
    assert info.metadata_uri == "ipfs://Qm/7"
    assert info.from_address == SELLER
    assert info.to_address == BUYER
    assert info.initiator == SELLER
    assert info.gas == 150_000
    assert info.timestamp == 1_650_000_000
    assert chain.calls == [(COLLECTION, "tokenURI(uint256)", [7])]


def test_erc721_transfer_needs_four_topics(fake_chain_cls, topics):
    # ERC-20 transfers share the signature but keep the amount in data.
    erc20 = _erc721_log(topics)
    erc20["topics"] = erc20["topics"][:3]
    chain = fake_chain_cls(receipts={TX: _receipt([erc20])}, blocks={10: 1})

    info = asyncio.run(_resolver(chain).resolve(TX))

    assert info.collection is None
    assert info.timestamp == 1


def test_failed_metadata_call_leaves_uri_empty(fake_chain_cls, topics):
    chain = fake_chain_cls(receipts={TX: _receipt([_erc721_log(topics)])}, blocks={10: 1})

    info = asyncio.run(_resolver(chain).resolve(TX))

    assert info.collection == COLLECTION
    assert info.metadata_uri is None


def test_shared_storefront_has_priority(fake_chain_cls, topics):
    token_id = int("ab" * 20 + "0" * 22 + "01", 16)
    storefront = _transfer_single_log(topics, OPENSEA_SHARED_STOREFRONT_ADDRESS, token_id)
    chain = fake_chain_cls(
        receipts={TX: _receipt([_erc721_log(topics), storefront])},
        blocks={10: 1},
        call_results={
            (OPENSEA_SHARED_STOREFRONT_ADDRESS, "uri(uint256)"): "https://api.opensea.io/0x{id}"
        },
    )

    info = asyncio.run(_resolver(chain).resolve(TX))

    token_hex = "0x" + token_id.to_bytes(32, "big").hex()
    assert info.collection == OPENSEA_SHARED_STOREFRONT_ADDRESS
    assert info.standard is Standard.ERC1155
    assert info.token_id == str(token_id)
    assert info.token_id_hex == token_hex
    assert info.metadata_uri == f"https://api.opensea.io/{token_hex}"
    assert info.from_address == SELLER
    assert info.to_address == BUYER


def test_town_star_uri_comes_from_logs(fake_chain_cls, topics):
    uri_log = {
        "address": TOWN_STAR_ADDRESS,
        "blockNumber": 5,
        "topics": [ERC1155_URI_TOPIC, topics.uint(12)],
        "data": "0x" + encode(["string"], ["https://townstar.example/12.json"]).hex(),
    }
    chain = fake_chain_cls(
        receipts={TX: _receipt([_transfer_single_log(topics, TOWN_STAR_ADDRESS, 12)])},
        blocks={10: 1},
        logs=[uri_log],
    )

    info = asyncio.run(_resolver(chain).resolve(TX))

    assert info.collection == TOWN_STAR_ADDRESS
    assert info.token_id == "12"
    assert info.metadata_uri == "https://townstar.example/12.json"
    assert chain.calls == []


def test_cancel_skips_token_scan(fake_chain_cls, topics):
    chain = fake_chain_cls(receipts={TX: _receipt([_erc721_log(topics)])}, blocks={10: 3})

    info = asyncio.run(_resolver(chain).resolve(TX, EventType.CANCEL_ORDER))

    assert info == ReceiptInfo(timestamp=3, initiator=SELLER)
    assert chain.calls == []


def test_fetch_receipt_raises_when_unavailable(fake_chain_cls):
    chain = fake_chain_cls(receipts={"0xboom": ChainError("rpc down")})
    resolver = _resolver(chain)

    with pytest.raises(ReceiptUnavailable) as missing:
        asyncio.run(resolver.fetch_receipt("0xmissing"))
    assert missing.value.tx_hash == "0xmissing"

    with pytest.raises(ReceiptUnavailable, match="rpc down"):
        asyncio.run(resolver.fetch_receipt("0xboom"))
