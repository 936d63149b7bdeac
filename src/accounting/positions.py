"""Per-(user, token) position accounting with weighted-average cost basis.

Buys blend the purchase into the average cost of the units held; sells
realize PnL against that average (no lot tracking). Balances are kept in raw
token units and floored at zero: a debit larger than the balance means an
upstream inconsistency, which is counted but not raised.
"""

from __future__ import annotations

from beartype import beartype

from src.accounting.fixed_point import FixedPoint, raw_to_decimal
from src.accounting.trades import token_decimals
from src.database.entities import EntityKind, Position, Token, normalize_address, position_id
from src.database.store import EntityStore
from src.events.models import ZERO_ADDRESS, Side
from src.utils.logger import get_logger

logger = get_logger(__name__)

BALANCE_CLAMP_COUNTER = "position_balance_clamped"


@beartype
def load_or_create_position(store: EntityStore, user: str, token: str) -> Position:
    """
    Load the position for (user, token), or a zero-valued one if none exists.

    The new position is not saved here; callers persist it after applying
    their update.
    """
    key = position_id(user, token)
    position = store.load(EntityKind.POSITION, key)
    if position is None:
        position = Position(id=key, user=normalize_address(user), token=normalize_address(token))
    return position


def _debit(position: Position, amount_raw: int) -> None:
    """Subtract from the raw balance, flooring at zero."""
    if amount_raw > position.balance:
        count = logger.increment(BALANCE_CLAMP_COUNTER)
        logger.debug(
            f"Clamping balance of {position.id} to zero "
            f"(balance={position.balance}, debit={amount_raw}, total clamps={count})",
        )
        position.balance = 0
    else:
        position.balance -= amount_raw


def _apply_buy(position: Position, eth_qty: FixedPoint, token_qty: FixedPoint, token_raw: int, decimals: int) -> None:
    held = raw_to_decimal(position.balance, decimals)
    prev_avg = position.avg_cost_eth_per_token
    new_held = held + token_qty

    new_avg = prev_avg
    if new_held > FixedPoint.zero():
        new_avg = (prev_avg * held + eth_qty) / new_held

    position.avg_cost_eth_per_token = new_avg
    position.total_eth_bought += eth_qty
    position.total_tokens_bought += token_qty
    position.balance += token_raw


def _apply_sell(position: Position, eth_qty: FixedPoint, token_qty: FixedPoint, token_raw: int) -> None:
    cost_basis = position.avg_cost_eth_per_token * token_qty
    position.realized_pnl_eth += eth_qty - cost_basis
    position.total_eth_sold += eth_qty
    position.total_tokens_sold += token_qty
    _debit(position, token_raw)


@beartype
def update_latest_price(
    store: EntityStore,
    token: str,
    eth_qty: FixedPoint,
    token_qty: FixedPoint,
    timestamp: int,
) -> Token | None:
    """
    Set the token's last-trade price (ETH per token) if the token is known.

    Last write wins; a zero-quantity trade touches only updated_at.
    """
    entity = store.load(EntityKind.TOKEN, normalize_address(token))
    if not isinstance(entity, Token):
        return None
    if token_qty > FixedPoint.zero():
        entity.latest_price_eth = eth_qty / token_qty
    entity.updated_at = timestamp
    store.save(EntityKind.TOKEN, entity)
    return entity


@beartype
def apply_trade(
    store: EntityStore,
    side: Side,
    user: str,
    token: str,
    eth_qty: FixedPoint,
    token_raw: int,
    timestamp: int,
    decimals: int | None = None,
) -> Position:
    """
    Apply a buy or sell to the trader's position and persist it.

    Args:
        store: Entity store
        side: BUY or SELL
        user: Trader address
        token: Token address
        eth_qty: ETH paid (buy) or received (sell)
        token_raw: Token amount in raw units
        timestamp: Block timestamp
        decimals: Token decimals (looked up if None)

    Returns:
        The updated position
    """
    if decimals is None:
        decimals = token_decimals(store, token)
    token_qty = raw_to_decimal(token_raw, decimals)

    position = load_or_create_position(store, user, token)
    if side is Side.BUY:
        _apply_buy(position, eth_qty, token_qty, token_raw, decimals)
    else:
        _apply_sell(position, eth_qty, token_qty, token_raw)

    position.updated_at = timestamp

    # Position save is the last reducer write for a trade
    update_latest_price(store, token, eth_qty, token_qty, timestamp)
    store.save(EntityKind.POSITION, position)
    return position


@beartype
def apply_transfer(
    store: EntityStore,
    from_address: str,
    to_address: str,
    token: str,
    value_raw: int,
    timestamp: int,
) -> list[Position]:
    """
    Move raw balance between two positions for an ERC20 transfer.

    Only balance and updated_at change: transfers carry no price, so cost
    basis and PnL are left alone. Mints and burns skip the zero-address side.

    Returns:
        The positions that were written (empty for a zero-value transfer)
    """
    raw_to_decimal(value_raw)  # rejects negative amounts before any write
    if value_raw == 0:
        return []

    touched: list[Position] = []

    # credit receiver
    if normalize_address(to_address) != ZERO_ADDRESS:
        receiver = load_or_create_position(store, to_address, token)
        receiver.balance += value_raw
        receiver.updated_at = timestamp
        store.save(EntityKind.POSITION, receiver)
        touched.append(receiver)

    # debit sender
    if normalize_address(from_address) != ZERO_ADDRESS:
        sender = load_or_create_position(store, from_address, token)
        _debit(sender, value_raw)
        sender.updated_at = timestamp
        store.save(EntityKind.POSITION, sender)
        touched.append(sender)

    return touched


def clamp_count() -> int:
    """Number of balance debits floored at zero since startup."""
    return logger.counters[BALANCE_CLAMP_COUNTER]
