"""Typed inbound events, as decoded from contract logs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Venue(str, Enum):
    """Trading mechanism that produced a trade."""

    DEX = "DEX"
    CURVE = "CURVE"


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class EventKind(str, Enum):
    """Groups of events a dynamically discovered contract is watched for."""

    TRANSFER = "TRANSFER"
    CURVE_TRADE = "CURVE_TRADE"


@dataclass(frozen=True)
class NewToken:
    """A token registered on the launch database contract."""

    token: str
    dev: str
    bonding_curve: str
    timestamp: int
    name: str | None = None
    symbol: str | None = None


@dataclass(frozen=True)
class Bonded:
    """A token graduated from its bonding curve."""

    token: str
    timestamp: int


@dataclass(frozen=True)
class TradeEvent:
    """A buy or sell on either venue; amounts are raw uint256 values."""

    venue: Venue
    side: Side
    user: str
    token: str
    eth_raw: int
    token_raw: int
    timestamp: int
    tx_hash: str
    log_index: int


@dataclass(frozen=True)
class PairCreated:
    token0: str
    token1: str
    pair: str
    timestamp: int


@dataclass(frozen=True)
class Transfer:
    """ERC20 Transfer; token is the emitting contract."""

    token: str
    from_address: str
    to_address: str
    value_raw: int
    timestamp: int


Event = NewToken | Bonded | TradeEvent | PairCreated | Transfer
