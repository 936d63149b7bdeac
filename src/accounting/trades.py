"""Immutable trade records keyed by (transaction hash, log index)."""

from __future__ import annotations

from beartype import beartype

from src.accounting.fixed_point import raw_to_decimal
from src.database.entities import EntityKind, Token, Trade, normalize_address, trade_id
from src.database.store import EntityStore
from src.events.models import Side, Venue
from src.utils.config import DEFAULT_TOKEN_DECIMALS, ETH_DECIMALS, TOKEN_DECIMALS_OVERRIDES
from src.utils.logger import get_logger

logger = get_logger(__name__)


@beartype
def token_decimals(store: EntityStore, token: str) -> int:
    """
    Decimals to scale a token's raw amounts with.

    Uses the Token entity when it exists, then the configured overrides,
    then the 18-digit default.
    """
    address = normalize_address(token)
    entity = store.load(EntityKind.TOKEN, address)
    if isinstance(entity, Token):
        return entity.decimals
    return TOKEN_DECIMALS_OVERRIDES.get(address, DEFAULT_TOKEN_DECIMALS)


@beartype
def record_trade(
    store: EntityStore,
    venue: Venue,
    side: Side,
    timestamp: int,
    tx_hash: str,
    log_index: int,
    user: str,
    token: str,
    eth_raw: int,
    token_raw: int,
    decimals: int | None = None,
) -> tuple[Trade, bool]:
    """
    Write the Trade record for one buy/sell log.

    The write is unconditional: redelivering a log overwrites the record with
    identical values, so there is never a second logical trade per key.

    Args:
        store: Entity store
        venue: DEX or CURVE
        side: BUY or SELL
        timestamp: Block timestamp
        tx_hash: Transaction hash
        log_index: Log index within the block
        user: Trader address
        token: Token address
        eth_raw: ETH amount in wei
        token_raw: Token amount in base units
        decimals: Token decimals (looked up if None)

    Returns:
        Tuple of (trade, is_new) where is_new is False for a replayed key
    """
    if decimals is None:
        decimals = token_decimals(store, token)

    key = trade_id(tx_hash, log_index)
    trade = Trade(
        id=key,
        tx_hash=tx_hash.lower(),
        log_index=log_index,
        timestamp=timestamp,
        user=normalize_address(user),
        token=normalize_address(token),
        side=side,
        source=venue,
        quantity_eth=raw_to_decimal(eth_raw, ETH_DECIMALS),
        quantity_tokens=raw_to_decimal(token_raw, decimals),
    )

    existing = store.load(EntityKind.TRADE, key)
    if existing is not None and existing != trade:
        logger.debug(f"Trade {key} redelivered with a different payload, overwriting")

    store.save(EntityKind.TRADE, trade)
    return trade, existing is None
