"""Aggregate entities derived from the event stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from beartype import beartype

from src.accounting.fixed_point import FixedPoint
from src.events.models import Side, Venue
from src.utils.config import DEFAULT_TOKEN_DECIMALS


class EntityKind(str, Enum):
    TOKEN = "token"
    TRADE = "trade"
    POSITION = "position"
    TOKEN_HOLDER = "token_holder"


@beartype
def normalize_address(address: str) -> str:
    """Lowercase hex form used in every entity id."""
    return address.lower()


@beartype
def trade_id(tx_hash: str, log_index: int) -> str:
    """Composite key of one on-chain log: txHash-logIndex."""
    return f"{tx_hash.lower()}-{log_index}"


@beartype
def position_id(user: str, token: str) -> str:
    return f"{normalize_address(user)}-{normalize_address(token)}"


@beartype
def holder_id(token: str, holder: str) -> str:
    return f"{normalize_address(token)}-{normalize_address(holder)}"


@dataclass
class Token:
    id: str  # token contract address
    creator: str
    bonding_curve: str
    created_at: int
    updated_at: int
    name: str | None = None
    symbol: str | None = None
    decimals: int = DEFAULT_TOKEN_DECIMALS
    pair: str | None = None
    bonded: bool = False
    bonded_at: int | None = None
    latest_price_eth: FixedPoint | None = None


@dataclass
class Trade:
    """Immutable record of one buy/sell log."""

    id: str
    tx_hash: str
    log_index: int
    timestamp: int
    user: str
    token: str
    side: Side
    source: Venue
    quantity_eth: FixedPoint
    quantity_tokens: FixedPoint


@dataclass
class Position:
    """Per (user, token) holdings with average-cost accounting."""

    id: str
    user: str
    token: str
    balance: int = 0  # raw token units, never negative
    avg_cost_eth_per_token: FixedPoint = field(default_factory=FixedPoint.zero)
    total_eth_bought: FixedPoint = field(default_factory=FixedPoint.zero)
    total_tokens_bought: FixedPoint = field(default_factory=FixedPoint.zero)
    total_eth_sold: FixedPoint = field(default_factory=FixedPoint.zero)
    total_tokens_sold: FixedPoint = field(default_factory=FixedPoint.zero)
    realized_pnl_eth: FixedPoint = field(default_factory=FixedPoint.zero)
    updated_at: int = 0


@dataclass
class TokenHolder:
    """Per (token, holder) balance driven purely by transfers."""

    id: str
    token: str
    holder: str
    balance: FixedPoint = field(default_factory=FixedPoint.zero)
    updated_at: int = 0


Entity = Token | Trade | Position | TokenHolder
