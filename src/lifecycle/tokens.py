"""Token lifecycle: creation, bonding and DEX pair linkage."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from beartype import beartype

from src.accounting.errors import EntityNotFound
from src.database.entities import EntityKind, Token, normalize_address
from src.database.store import EntityStore
from src.events.models import Bonded, EventKind, NewToken, PairCreated
from src.utils.config import DEFAULT_TOKEN_DECIMALS, TOKEN_DECIMALS_OVERRIDES
from src.utils.logger import get_logger

logger = get_logger(__name__)

# A new token's own contract emits Transfers; its curve emits Buy/Sell
TOKEN_CONTRACT_KINDS = frozenset({EventKind.TRANSFER})
CURVE_CONTRACT_KINDS = frozenset({EventKind.CURVE_TRADE})


@runtime_checkable
class Subscriber(Protocol):
    """Host capability to start delivering events from a new contract.

    Must be idempotent: subscribing the same address twice is harmless.
    """

    def subscribe(self, address: str, kinds: frozenset[EventKind]) -> None: ...


@beartype
def require_token(store: EntityStore, token: str) -> Token:
    """
    Load a token or fail.

    Raises:
        EntityNotFound: If no Token exists for the address
    """
    entity = store.load(EntityKind.TOKEN, normalize_address(token))
    if entity is None:
        raise EntityNotFound(EntityKind.TOKEN.value, normalize_address(token))
    return entity


@beartype
def handle_new_token(store: EntityStore, subscriber: Subscriber, event: NewToken) -> Token:
    """
    Create the Token and start watching its contract and bonding curve.

    A repeated creation event keeps the original creator, curve and
    created_at; it only fills in name/symbol and bumps updated_at.
    """
    address = normalize_address(event.token)
    token = store.load(EntityKind.TOKEN, address)
    if token is None:
        token = Token(
            id=address,
            creator=normalize_address(event.dev),
            bonding_curve=normalize_address(event.bonding_curve),
            created_at=event.timestamp,
            updated_at=event.timestamp,
            decimals=TOKEN_DECIMALS_OVERRIDES.get(address, DEFAULT_TOKEN_DECIMALS),
        )
        logger.info(f"New token {address} (curve {token.bonding_curve})")
    else:
        logger.debug(f"Token {address} created again, keeping original record")

    if event.name is not None:
        token.name = event.name
    if event.symbol is not None:
        token.symbol = event.symbol
    token.updated_at = event.timestamp
    store.save(EntityKind.TOKEN, token)

    subscriber.subscribe(address, TOKEN_CONTRACT_KINDS)
    subscriber.subscribe(token.bonding_curve, CURVE_CONTRACT_KINDS)
    return token


@beartype
def handle_bonded(store: EntityStore, event: Bonded) -> Token | None:
    """
    Move a token from Created to Bonded.

    The transition happens once; later bonding events leave bonded_at alone.
    An unknown token is logged as a warning and the event is dropped.

    Returns:
        The token, or None if it doesn't exist
    """
    try:
        token = require_token(store, event.token)
    except EntityNotFound as e:
        logger.warning(f"Bonded event for a token that does not exist: {e.entity_id}")
        return None

    if token.bonded:
        logger.debug(f"Token {token.id} already bonded at {token.bonded_at}")
        return token

    token.bonded = True
    token.bonded_at = event.timestamp
    token.updated_at = event.timestamp
    store.save(EntityKind.TOKEN, token)
    logger.info(f"Token {token.id} bonded at {event.timestamp}")
    return token


@beartype
def paired_token(event: PairCreated, base_address: str) -> str | None:
    """
    The non-base side of a pair, or None unless exactly one side is the base.
    """
    base = normalize_address(base_address)
    token0 = normalize_address(event.token0)
    token1 = normalize_address(event.token1)
    if token0 == base and token1 != base:
        return token1
    if token1 == base and token0 != base:
        return token0
    return None


@beartype
def handle_pair_created(store: EntityStore, event: PairCreated, base_address: str) -> Token | None:
    """
    Link a token to its DEX pair when the pair is against the base token.

    Returns:
        The updated token, or None if nothing was linked
    """
    other = paired_token(event, base_address)
    if other is None:
        return None

    token = store.load(EntityKind.TOKEN, other)
    if token is None:
        logger.debug(f"Pair {event.pair} for untracked token {other}")
        return None

    token.pair = normalize_address(event.pair)
    token.updated_at = event.timestamp
    store.save(EntityKind.TOKEN, token)
    logger.info(f"Token {token.id} paired at {token.pair}")
    return token
