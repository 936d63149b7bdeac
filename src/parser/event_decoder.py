"""Decoder turning raw contract logs into typed indexer events.

Each watched event is described by its ABI inputs. topic0 is the keccak hash
of the canonical signature, indexed inputs are read from the remaining
topics and the rest are ABI-decoded from the data field.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from beartype import beartype
from eth_abi import decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from src.events.models import (
    Bonded,
    Event,
    EventKind,
    NewToken,
    PairCreated,
    Side,
    TradeEvent,
    Transfer,
    Venue,
)
from src.utils.logger import get_logger

logger = get_logger(__name__)


def to_bytes(value: object) -> bytes:
    """Bytes from a hex string ("0x..." or bare) or a bytes-like value."""
    if isinstance(value, str):
        text = value[2:] if value.startswith(("0x", "0X")) else value
        return bytes.fromhex(text)
    return bytes(value)


def to_hex(value: object) -> str:
    """Lowercase 0x-prefixed hex, independent of the HexBytes version."""
    return "0x" + to_bytes(value).hex()


@dataclass(frozen=True)
class EventABI:
    """Name and (name, type, indexed) inputs of one event."""

    name: str
    inputs: tuple[tuple[str, str, bool], ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(abi_type for _, abi_type, _ in self.inputs)})"

    @property
    def topic(self) -> str:
        return to_hex(Web3.keccak(text=self.signature))

    @property
    def indexed(self) -> list[tuple[str, str]]:
        return [(name, abi_type) for name, abi_type, is_indexed in self.inputs if is_indexed]

    @property
    def non_indexed(self) -> list[tuple[str, str]]:
        return [(name, abi_type) for name, abi_type, is_indexed in self.inputs if not is_indexed]


NEW_TOKEN_CREATED = EventABI(
    "NewTokenCreated",
    (
        ("token", "address", True),
        ("dev", "address", True),
        ("bondingCurve", "address", False),
        ("name", "string", False),
        ("symbol", "string", False),
    ),
)
BONDED = EventABI("Bonded", (("token", "address", True),))
BUY = EventABI(
    "Buy",
    (
        ("user", "address", True),
        ("token", "address", True),
        ("quantityETH", "uint256", False),
        ("quantityTokens", "uint256", False),
    ),
)
SELL = EventABI("Sell", BUY.inputs)
PAIR_CREATED = EventABI(
    "PairCreated",
    (
        ("token0", "address", True),
        ("token1", "address", True),
        ("pair", "address", False),
        ("pairIndex", "uint256", False),
    ),
)
TRANSFER = EventABI(
    "Transfer",
    (
        ("from", "address", True),
        ("to", "address", True),
        ("value", "uint256", False),
    ),
)

ALL_EVENTS = (NEW_TOKEN_CREATED, BONDED, BUY, SELL, PAIR_CREATED, TRANSFER)

# Events each kind of contract is polled for
DATABASE_CONTRACT_EVENTS = (NEW_TOKEN_CREATED, BONDED)
DEX_FACTORY_EVENTS = (PAIR_CREATED, BUY, SELL)
KIND_EVENTS: dict[EventKind, tuple[EventABI, ...]] = {
    EventKind.TRANSFER: (TRANSFER,),
    EventKind.CURVE_TRADE: (BUY, SELL),
}


@beartype
def topics_for_kinds(kinds: Iterable[EventKind]) -> list[str]:
    """topic0 values for a set of event kinds."""
    topics: list[str] = []
    for kind in kinds:
        for abi in KIND_EVENTS[kind]:
            if abi.topic not in topics:
                topics.append(abi.topic)
    return topics


def _decode_topic(abi_type: str, topic: bytes) -> object:
    if abi_type == "address":
        return "0x" + topic[-20:].hex()
    return decode([abi_type], topic)[0]


class EventDecoder:
    """Decodes logs from the launch contracts into typed events."""

    def __init__(self, dex_factory_address: str | None = None) -> None:
        """
        Initialize event decoder.

        Args:
            dex_factory_address: Emitter whose Buy/Sell logs are DEX trades;
                Buy/Sell from any other address is a bonding-curve trade
        """
        self.dex_factory_address = dex_factory_address.lower() if dex_factory_address else None
        self._by_topic = {abi.topic: abi for abi in ALL_EVENTS}

    def _decode_args(self, abi: EventABI, log: Mapping[str, object]) -> dict[str, object]:
        topics = [to_bytes(topic) for topic in log["topics"]]
        if len(topics) != len(abi.indexed) + 1:
            raise ValueError(
                f"{abi.name} expects {len(abi.indexed)} indexed topics, got {len(topics) - 1}",
            )

        args: dict[str, object] = {}
        for (name, abi_type), topic in zip(abi.indexed, topics[1:]):
            args[name] = _decode_topic(abi_type, topic)

        names = [name for name, _ in abi.non_indexed]
        types = [abi_type for _, abi_type in abi.non_indexed]
        if types:
            values = decode(types, to_bytes(log["data"]))
            args.update(zip(names, values))
        return args

    @beartype
    def decode(self, log: Mapping[str, object], block_timestamp: int) -> Event | None:
        """
        Decode one log.

        Args:
            log: Log receipt (address, topics, data, transactionHash, logIndex)
            block_timestamp: Timestamp of the log's block

        Returns:
            Typed event, or None for unknown or malformed logs
        """
        if not log.get("topics"):
            return None

        topic0 = to_hex(log["topics"][0])
        abi = self._by_topic.get(topic0)
        if abi is None:
            logger.debug(f"Skipping log with unknown topic {topic0}")
            return None

        try:
            args = self._decode_args(abi, log)
        except (DecodingError, ValueError) as e:
            logger.warning(
                f"Failed to decode {abi.name} log {to_hex(log.get('transactionHash', b''))}"
                f"-{log.get('logIndex')}: {e}",
            )
            return None

        emitter = str(log["address"]).lower()

        if abi is NEW_TOKEN_CREATED:
            return NewToken(
                token=args["token"].lower(),
                dev=args["dev"].lower(),
                bonding_curve=args["bondingCurve"].lower(),
                timestamp=block_timestamp,
                name=args["name"] or None,
                symbol=args["symbol"] or None,
            )
        if abi is BONDED:
            return Bonded(token=args["token"].lower(), timestamp=block_timestamp)
        if abi is PAIR_CREATED:
            return PairCreated(
                token0=args["token0"].lower(),
                token1=args["token1"].lower(),
                pair=args["pair"].lower(),
                timestamp=block_timestamp,
            )
        if abi is TRANSFER:
            return Transfer(
                token=emitter,
                from_address=args["from"].lower(),
                to_address=args["to"].lower(),
                value_raw=int(args["value"]),
                timestamp=block_timestamp,
            )

        # Buy / Sell
        venue = Venue.DEX if emitter == self.dex_factory_address else Venue.CURVE
        return TradeEvent(
            venue=venue,
            side=Side.BUY if abi is BUY else Side.SELL,
            user=args["user"].lower(),
            token=args["token"].lower(),
            eth_raw=int(args["quantityETH"]),
            token_raw=int(args["quantityTokens"]),
            timestamp=block_timestamp,
            tx_hash=to_hex(log["transactionHash"]),
            log_index=int(log["logIndex"]),
        )
