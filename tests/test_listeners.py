"""Decoding of marketplace contract logs into canonical events."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

pytest.importorskip("web3")

from eth_abi import encode

from chain.receipts import ERC721_TRANSFER_TOPIC, ReceiptResolver
from chain.timestamps import TimestampCache
from common import EventBus
from common.models import (
    AuctionEvent,
    CancelOrderEvent,
    EventType,
    Marketplace,
    SaleEvent,
    Standard,
)
from ingest import (
    ContractLogListener,
    FoundationListener,
    LooksRareListener,
    OpenSeaListener,
    RaribleListener,
    X2Y2Listener,
)

SELLER = "0x1111111111111111111111111111111111111111"
BUYER = "0x2222222222222222222222222222222222222222"
STRATEGY = "0x56244bb70cbd3ea9dc8007399f61dfc065190031"
WETH = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
COLLECTION = "0xbc4ca0eda7647a8ab7c2061c2e118a18a936f13d"
BUY_HASH = bytes.fromhex("aa" * 32)
SELL_HASH = bytes.fromhex("bb" * 32)
ONE_ETH = 10**18


def _listener(cls, chain, **kwargs):
    bus = EventBus()
    queue = bus.subscribe()
    resolver = ReceiptResolver(chain, TimestampCache(chain, clock=lambda: 0.0))
    return cls(bus, chain, resolver, **kwargs), queue


def _sale_receipt(topics, sender):
    transfer = {
        "address": COLLECTION,
        "topics": [
            ERC721_TRANSFER_TOPIC,
            topics.address(SELLER),
            topics.address(BUYER),
            topics.uint(7),
        ],
        "data": "0x",
    }
    return {"from": sender, "blockNumber": 50, "gasUsed": 210_000, "logs": [transfer]}


def _orders_matched_log(listener, topics, maker, taker, tx_hash, price=3 * ONE_ETH // 2):
    return {
        "address": listener.contract_address,
        "blockNumber": 50,
        "transactionHash": tx_hash,
        "topics": [
            listener.decoder.topic_for("OrdersMatched"),
            topics.address(maker),
            topics.address(taker),
            "0x" + "00" * 32,
        ],
        "data": "0x"
        + encode(["bytes32", "bytes32", "uint256"], [BUY_HASH, SELL_HASH, price]).hex(),
    }


def _looksrare_log(listener, topics, name, block, taker, maker, price, amount=1):
    data = encode(
        ["bytes32", "uint256", "address", "address", "uint256", "uint256", "uint256"],
        [BUY_HASH, 4, WETH, COLLECTION, 7, amount, price],
    )
    return {
        "address": listener.contract_address,
        "blockNumber": block,
        "transactionHash": f"0x{block:064x}",
        "topics": [
            listener.decoder.topic_for(name),
            topics.address(taker),
            topics.address(maker),
            topics.address(STRATEGY),
        ],
        "data": "0x" + data.hex(),
    }


def test_opensea_seller_initiated_match_is_accept_offer(fake_chain_cls, topics):
    chain = fake_chain_cls(
        receipts={"0x01": _sale_receipt(topics, sender=SELLER)}, blocks={50: 1_650_000_000}
    )
    listener, queue = _listener(OpenSeaListener, chain)
    log = _orders_matched_log(listener, topics, maker=BUYER, taker=SELLER, tx_hash="0x01")

    event = asyncio.run(listener.process_log(log))

    assert isinstance(event, SaleEvent)
    assert event.event_type is EventType.ACCEPT_OFFER
    assert event.marketplace is Marketplace.OPENSEA
    assert event.buyer == BUYER
    assert event.seller == SELLER
    assert event.order_hash == "0x" + "aa" * 32
    assert event.price == Decimal("1.5")
    assert event.collection == COLLECTION
    assert event.token_id == "7"
    assert event.standard is Standard.ERC721
    assert event.starts_at == datetime.fromtimestamp(1_650_000_000, tz=timezone.utc)
    assert event.gas == 210_000
    assert queue.get_nowait() == event


def test_opensea_buyer_initiated_match_is_accept_ask(fake_chain_cls, topics):
    chain = fake_chain_cls(receipts={"0x02": _sale_receipt(topics, sender=BUYER)})
    listener, _ = _listener(OpenSeaListener, chain)
    log = _orders_matched_log(listener, topics, maker=SELLER, taker=BUYER, tx_hash="0x02")

    event = asyncio.run(listener.process_log(log))

    assert event.event_type is EventType.ACCEPT_ASK
    assert event.buyer == BUYER
    assert event.seller == SELLER
    assert event.order_hash == "0x" + "bb" * 32


def test_opensea_cancel_uses_order_hash_and_no_price(fake_chain_cls, topics):
    chain = fake_chain_cls(receipts={"0x03": _sale_receipt(topics, sender=SELLER)})
    listener, _ = _listener(OpenSeaListener, chain)
    log = {
        "address": listener.contract_address,
        "blockNumber": 50,
        "transactionHash": "0x03",
        "topics": [listener.decoder.topic_for("OrderCancelled"), "0x" + "cc" * 32],
        "data": "0x",
    }

    event = asyncio.run(listener.process_log(log))

    assert isinstance(event, CancelOrderEvent)
    assert event.order_hash == "0x" + "cc" * 32
    assert event.initiator == SELLER
    assert event.collection is None
    assert not hasattr(event, "price")


def test_looksrare_poll_walks_block_windows(fake_chain_cls, topics):
    chain = fake_chain_cls(head=105)
    listener, queue = _listener(LooksRareListener, chain, start_block=100, max_block_range=3)
    chain.logs = [
        _looksrare_log(listener, topics, "TakerBid", 101, taker=BUYER, maker=SELLER, price=2 * ONE_ETH),
        _looksrare_log(
            listener, topics, "TakerAsk", 104, taker=SELLER, maker=BUYER, price=ONE_ETH, amount=3
        ),
    ]

    events = asyncio.run(listener.poll())

    assert [(req["fromBlock"], req["toBlock"]) for req in chain.log_requests] == [
        (100, 102),
        (103, 105),
    ]
    assert listener.last_block == 105
    bid, ask = events
    assert bid.event_type is EventType.ACCEPT_ASK
    assert (bid.buyer, bid.seller) == (BUYER, SELLER)
    assert bid.price == Decimal(2)
    assert bid.collection == COLLECTION
    assert ask.event_type is EventType.ACCEPT_OFFER
    assert (ask.buyer, ask.seller) == (BUYER, SELLER)
    assert ask.amount == 3
    assert queue.qsize() == 2

    # Nothing new: the next poll starts after the processed head.
    assert asyncio.run(listener.poll()) == []
    assert len(chain.log_requests) == 2


def test_first_poll_starts_at_chain_head(fake_chain_cls):
    chain = fake_chain_cls(head=500)
    listener, _ = _listener(LooksRareListener, chain)

    asyncio.run(listener.poll())

    assert chain.log_requests[0]["fromBlock"] == 500
    assert chain.log_requests[0]["toBlock"] == 500


def test_failing_handler_is_skipped(fake_chain_cls, topics):
    chain = fake_chain_cls(head=105)
    listener, queue = _listener(LooksRareListener, chain, start_block=101)

    async def broken(args, tx_hash):
        raise KeyError("price")

    listener._handlers["TakerBid"] = broken
    chain.logs = [
        _looksrare_log(listener, topics, "TakerBid", 101, taker=BUYER, maker=SELLER, price=ONE_ETH),
        _looksrare_log(listener, topics, "TakerAsk", 102, taker=SELLER, maker=BUYER, price=ONE_ETH),
    ]

    events = asyncio.run(listener.poll())

    assert [event.event_type for event in events] == [EventType.ACCEPT_OFFER]
    assert queue.qsize() == 1


def test_logs_of_other_events_are_ignored(fake_chain_cls):
    listener, queue = _listener(OpenSeaListener, fake_chain_cls())
    log = {"address": listener.contract_address, "topics": ["0x" + "12" * 32], "data": "0x"}

    assert asyncio.run(listener.process_log(log)) is None
    assert queue.empty()


@pytest.mark.parametrize(
    ("asset_class", "event_type", "price", "amount", "buyer", "seller"),
    [
        ("0xaaaebeba", EventType.ACCEPT_OFFER, Decimal(2), 1, BUYER, SELLER),
        ("0x8ae85d84", EventType.ACCEPT_OFFER, Decimal(2), 1, BUYER, SELLER),
        ("0x73ad2146", EventType.ACCEPT_ASK, Decimal(1), 2 * ONE_ETH, BUYER, SELLER),
    ],
)
def test_rarible_match_side_depends_on_left_asset(
    fake_chain_cls, asset_class, event_type, price, amount, buyer, seller
):
    listener, _ = _listener(RaribleListener, fake_chain_cls())
    args = {
        "leftHash": "0x" + "01" * 32,
        "rightHash": "0x" + "02" * 32,
        "leftMaker": BUYER if event_type is EventType.ACCEPT_OFFER else SELLER,
        "rightMaker": SELLER if event_type is EventType.ACCEPT_OFFER else BUYER,
        "newLeftFill": 1 if event_type is EventType.ACCEPT_OFFER else ONE_ETH,
        "newRightFill": 2 * ONE_ETH,
        "leftAsset": {"assetClass": asset_class, "data": "0x"},
        "rightAsset": {"assetClass": "0x73ad2146", "data": "0x"},
    }

    event = asyncio.run(listener.on_match(args, "0x04"))

    assert event.event_type is event_type
    assert event.marketplace is Marketplace.RARIBLE
    assert event.price == price
    assert event.amount == amount
    assert (event.buyer, event.seller) == (buyer, seller)


def test_foundation_settlement_price_includes_every_share(fake_chain_cls):
    listener, _ = _listener(FoundationListener, fake_chain_cls())
    args = {
        "auctionId": 9,
        "seller": SELLER,
        "bidder": BUYER,
        "f8nFee": 15 * ONE_ETH // 100,
        "creatorFee": 10 * ONE_ETH // 100,
        "ownerRev": 75 * ONE_ETH // 100,
    }

    event = asyncio.run(listener.on_auction_finalized(args, "0x05"))

    assert event.event_type is EventType.SETTLE_AUCTION
    assert event.marketplace is Marketplace.FOUNDATION
    assert event.price == Decimal(1)
    assert (event.buyer, event.seller) == (BUYER, SELLER)


def test_foundation_bid_and_auction_creation(fake_chain_cls):
    listener, _ = _listener(FoundationListener, fake_chain_cls())

    bid = asyncio.run(
        listener.on_bid_placed(
            {"auctionId": 9, "bidder": BUYER, "amount": ONE_ETH // 2, "endTime": 1_650_086_400},
            "0x06",
        )
    )
    created = asyncio.run(
        listener.on_auction_created(
            {
                "seller": SELLER,
                "nftContract": COLLECTION,
                "tokenId": 42,
                "duration": 86_400,
                "extensionDuration": 900,
                "reservePrice": ONE_ETH,
                "auctionId": 9,
            },
            "0x07",
        )
    )

    assert isinstance(bid, AuctionEvent)
    assert bid.event_type is EventType.PLACE_BID
    assert bid.price == Decimal("0.5")
    assert bid.ends_at == datetime.fromtimestamp(1_650_086_400, tz=timezone.utc)
    assert created.event_type is EventType.CREATE_AUCTION
    assert created.collection == COLLECTION
    assert created.token_id == "42"
    assert created.price == Decimal(1)
    assert created.marketplace is Marketplace.FOUNDATION


@pytest.mark.parametrize(
    ("intent", "event_type", "buyer", "seller"),
    [(3, EventType.ACCEPT_OFFER, BUYER, SELLER), (1, EventType.ACCEPT_ASK, BUYER, SELLER)],
)
def test_x2y2_intent_selects_side(fake_chain_cls, intent, event_type, buyer, seller):
    listener, _ = _listener(X2Y2Listener, fake_chain_cls())
    maker, taker = (BUYER, SELLER) if intent == 3 else (SELLER, BUYER)
    args = {
        "itemHash": "0x" + "0d" * 32,
        "maker": maker,
        "taker": taker,
        "intent": intent,
        "item": {"price": 3 * ONE_ETH, "data": "0x"},
    }

    event = asyncio.run(listener.on_inventory(args, "0x08"))

    assert event.event_type is event_type
    assert event.marketplace is Marketplace.X2Y2
    assert event.price == Decimal(3)
    assert (event.buyer, event.seller) == (buyer, seller)


def test_listener_without_handlers_cannot_be_built(fake_chain_cls):
    class Incomplete(ContractLogListener):
        marketplace = Marketplace.OPENSEA
        address = COLLECTION
        events = ()

    chain = fake_chain_cls()
    resolver = ReceiptResolver(chain, TimestampCache(chain, clock=lambda: 0.0))

    with pytest.raises(TypeError):
        Incomplete(EventBus(), chain, resolver)
