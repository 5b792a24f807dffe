"""Producers of canonical marketplace events.

Modules in this package expose async producers that push normalized events
into the shared internal event bus for downstream consumers.
"""

from .base import BackoffConfig, IngestClient  # noqa: F401
from .contract import ContractLogListener  # noqa: F401
from .foundation import FoundationListener  # noqa: F401
from .looksrare import LooksRareListener  # noqa: F401
from .looksrare_api import LooksRareAPI  # noqa: F401
from .opensea import OpenSeaListener  # noqa: F401
from .ownership import (  # noqa: F401
    FallbackOwnershipLookup,
    MoralisClient,
    NFTScanClient,
    build_ownership_lookup,
)
from .poller import OrderBookPoller, PollTarget  # noqa: F401
from .rarible import RaribleListener  # noqa: F401
from .watchset import WatchSet, WatchSetScheduler, build_watch_set  # noqa: F401
from .x2y2 import X2Y2Listener  # noqa: F401

LISTENERS = {
    "openSea": OpenSeaListener,
    "looksRare": LooksRareListener,
    "rarible": RaribleListener,
    "foundation": FoundationListener,
    "x2y2": X2Y2Listener,
}

__all__ = [
    "BackoffConfig",
    "ContractLogListener",
    "FallbackOwnershipLookup",
    "FoundationListener",
    "IngestClient",
    "LISTENERS",
    "LooksRareAPI",
    "LooksRareListener",
    "MoralisClient",
    "NFTScanClient",
    "OpenSeaListener",
    "OrderBookPoller",
    "PollTarget",
    "RaribleListener",
    "WatchSet",
    "WatchSetScheduler",
    "X2Y2Listener",
    "build_ownership_lookup",
    "build_watch_set",
]
