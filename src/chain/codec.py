"""Helpers to decode raw EVM logs and convert token amounts."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from eth_abi import decode
from web3 import Web3

from .abis import AbiParam, EventAbi

WEI_PER_ETHER = Decimal(10**18)
_PADDED_ADDRESS_PREFIX = "0x000000000000000000000000"


def to_hex(value: Any) -> str:
    """Render bytes (including ``HexBytes``) or text as a 0x-prefixed string."""

    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(bytes(value))
    if isinstance(value, int):
        return Web3.to_hex(value)
    return str(value)


def to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = str(value or "")
    if text.startswith("0x"):
        text = text[2:]
    return bytes.fromhex(text)


def event_topic(signature: str) -> str:
    """Return topic0 for an event signature such as ``Transfer(address,address,uint256)``."""

    return Web3.to_hex(Web3.keccak(text=signature))


def function_selector(signature: str) -> bytes:
    return bytes(Web3.keccak(text=signature)[:4])


def unpad_address(value: Any) -> str:
    """Strip the 12 zero bytes that pad addresses stored in log topics."""

    text = to_hex(value).lower()
    if text.startswith(_PADDED_ADDRESS_PREFIX):
        return f"0x{text[len(_PADDED_ADDRESS_PREFIX):]}"
    return text


def wei_to_ether(value: Any) -> Decimal:
    return Decimal(int(value)) / WEI_PER_ETHER


def ether_to_wei(value: Any) -> int:
    return int((Decimal(str(value)) * WEI_PER_ETHER).to_integral_value())


def abi_type(param: AbiParam) -> str:
    type_ = param["type"]
    if type_.startswith("tuple"):
        inner = ",".join(abi_type(component) for component in param["components"])
        return f"({inner}){type_[len('tuple'):]}"
    return type_


def event_signature(abi: EventAbi) -> str:
    inputs = ",".join(abi_type(param) for param in abi["inputs"])
    return f"{abi['name']}({inputs})"


def _is_hashed_topic(type_: str) -> bool:
    # Indexed dynamic values are stored as their keccak hash.
    return type_ in ("string", "bytes") or type_.startswith("tuple") or type_.endswith("]")


def _normalise(param: AbiParam, value: Any) -> Any:
    type_ = param["type"]
    if type_.endswith("[]"):
        inner = {**param, "type": type_[:-2]}
        return [_normalise(inner, item) for item in value]
    if type_ == "tuple":
        return {
            component["name"]: _normalise(component, item)
            for component, item in zip(param["components"], value)
        }
    if type_.startswith("bytes"):
        return Web3.to_hex(value)
    if type_ == "address":
        return value.lower()
    return value


def decode_log(abi: EventAbi, log: Mapping[str, Any]) -> dict[str, Any]:
    """Decode a log's topics and data into a dict keyed by argument name.

    Raises:
        ValueError: If the log's topics do not match the event's indexed inputs.
    """

    topics = [to_hex(topic) for topic in log.get("topics", [])]
    indexed = [param for param in abi["inputs"] if param.get("indexed")]
    plain = [param for param in abi["inputs"] if not param.get("indexed")]
    if len(topics) - 1 != len(indexed):
        raise ValueError(
            f"{abi['name']} expects {len(indexed)} indexed topics, got {len(topics) - 1}"
        )

    args: dict[str, Any] = {}
    for param, topic in zip(indexed, topics[1:]):
        if _is_hashed_topic(param["type"]):
            args[param["name"]] = topic
            continue
        (value,) = decode([abi_type(param)], to_bytes(topic))
        args[param["name"]] = _normalise(param, value)

    values = decode([abi_type(param) for param in plain], to_bytes(log.get("data")))
    for param, value in zip(plain, values):
        args[param["name"]] = _normalise(param, value)
    return args


class EventDecoder:
    """Look up the ABI fragment matching a log's topic0 and decode it."""

    def __init__(self, events: Iterable[EventAbi]) -> None:
        self._by_topic: dict[str, EventAbi] = {
            event_topic(event_signature(abi)): abi for abi in events
        }

    @property
    def topics(self) -> list[str]:
        return list(self._by_topic)

    def topic_for(self, name: str) -> str:
        for topic, abi in self._by_topic.items():
            if abi["name"] == name:
                return topic
        raise KeyError(name)

    def match(self, log: Mapping[str, Any]) -> Optional[tuple[str, dict[str, Any]]]:
        """Return ``(event_name, args)`` or ``None`` for logs of other events."""

        topics = log.get("topics") or []
        if not topics:
            return None
        abi = self._by_topic.get(to_hex(topics[0]).lower())
        if abi is None:
            return None
        return abi["name"], decode_log(abi, log)


__all__ = [
    "EventDecoder",
    "WEI_PER_ETHER",
    "abi_type",
    "decode_log",
    "ether_to_wei",
    "event_signature",
    "event_topic",
    "function_selector",
    "to_bytes",
    "to_hex",
    "unpad_address",
    "wei_to_ether",
]
