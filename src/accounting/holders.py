"""Per-(token, holder) balances driven purely by ERC20 transfers."""

from __future__ import annotations

from beartype import beartype

from src.accounting.fixed_point import FixedPoint, raw_to_decimal
from src.accounting.trades import token_decimals
from src.database.entities import EntityKind, TokenHolder, holder_id, normalize_address
from src.database.store import EntityStore
from src.events.models import ZERO_ADDRESS
from src.utils.logger import get_logger

logger = get_logger(__name__)

HOLDER_CLAMP_COUNTER = "holder_balance_clamped"


@beartype
def apply_holder_transfer(
    store: EntityStore,
    token: str,
    from_address: str,
    to_address: str,
    value_raw: int,
    timestamp: int,
    decimals: int | None = None,
) -> list[TokenHolder]:
    """
    Apply one transfer to the receiver's and sender's TokenHolder records.

    Zero-value transfers are no-ops. The receiver is credited first and
    created on first credit, so a self-transfer nets out. A sender without a
    record is skipped (it never received through a tracked transfer), and a
    debit beyond the balance floors it at zero.

    Returns:
        The holder records that were written
    """
    if decimals is None:
        decimals = token_decimals(store, token)
    amount = raw_to_decimal(value_raw, decimals)
    if value_raw == 0:
        return []

    touched: list[TokenHolder] = []

    if normalize_address(to_address) != ZERO_ADDRESS:
        key = holder_id(token, to_address)
        receiver = store.load(EntityKind.TOKEN_HOLDER, key)
        if receiver is None:
            receiver = TokenHolder(
                id=key,
                token=normalize_address(token),
                holder=normalize_address(to_address),
            )
        receiver.balance += amount
        receiver.updated_at = timestamp
        store.save(EntityKind.TOKEN_HOLDER, receiver)
        touched.append(receiver)

    if normalize_address(from_address) != ZERO_ADDRESS:
        sender = store.load(EntityKind.TOKEN_HOLDER, holder_id(token, from_address))
        if sender is None:
            logger.debug(f"Transfer from untracked holder {from_address} of {token}")
        else:
            if amount > sender.balance:
                logger.increment(HOLDER_CLAMP_COUNTER)
                sender.balance = FixedPoint.zero()
            else:
                sender.balance -= amount
            sender.updated_at = timestamp
            store.save(EntityKind.TOKEN_HOLDER, sender)
            touched.append(sender)

    return touched
