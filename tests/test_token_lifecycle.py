"""Tests for token creation, bonding and pair linkage."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock, call

import pytest

from src.accounting.errors import EntityNotFound
from src.database.entities import EntityKind
from src.database.store import InMemoryEntityStore
from src.events.models import Bonded, EventKind, NewToken, PairCreated
from src.lifecycle.tokens import (
    handle_bonded,
    handle_new_token,
    handle_pair_created,
    paired_token,
    require_token,
)

TOKEN = "0x3333333333333333333333333333333333333333"
CURVE = "0x4444444444444444444444444444444444444444"
DEV = "0x5555555555555555555555555555555555555555"
BASE = "0x6100E367285b01F48D07953803A2d8dCA5D19873"
PAIR = "0x7777777777777777777777777777777777777777"
OTHER = "0x8888888888888888888888888888888888888888"


def create(store: InMemoryEntityStore, subscriber: MagicMock | None = None, ts: int = 100):
    event = NewToken(token=TOKEN, dev=DEV, bonding_curve=CURVE, timestamp=ts, name="Pepe", symbol="PEPE")
    return handle_new_token(store, subscriber or MagicMock(), event)


def test_new_token_creates_entity_and_subscribes() -> None:
    """Test token creation stores the token and watches both contracts."""
    store = InMemoryEntityStore()
    subscriber = MagicMock()
    token = create(store, subscriber)

    assert token.id == TOKEN
    assert token.creator == DEV
    assert token.bonding_curve == CURVE
    assert token.name == "Pepe"
    assert token.symbol == "PEPE"
    assert token.bonded is False
    assert token.created_at == token.updated_at == 100
    assert store.load(EntityKind.TOKEN, TOKEN) == token

    subscriber.subscribe.assert_has_calls(
        [
            call(TOKEN, frozenset({EventKind.TRANSFER})),
            call(CURVE, frozenset({EventKind.CURVE_TRADE})),
        ],
    )


def test_repeated_new_token_keeps_original() -> None:
    """Test a second creation event keeps creator and created_at."""
    store = InMemoryEntityStore()
    create(store, ts=100)
    event = NewToken(token=TOKEN, dev=OTHER, bonding_curve=OTHER, timestamp=200)
    token = handle_new_token(store, MagicMock(), event)

    assert token.creator == DEV
    assert token.bonding_curve == CURVE
    assert token.created_at == 100
    assert token.updated_at == 200
    assert token.name == "Pepe"


def test_bonded_transitions_once() -> None:
    """Test bonding sets the flag once and keeps the first bonded_at."""
    store = InMemoryEntityStore()
    create(store)

    token = handle_bonded(store, Bonded(token=TOKEN, timestamp=300))
    assert token.bonded is True
    assert token.bonded_at == 300

    token = handle_bonded(store, Bonded(token=TOKEN, timestamp=400))
    assert token.bonded_at == 300
    assert store.load(EntityKind.TOKEN, TOKEN).bonded_at == 300


def test_bonded_unknown_token_warns(caplog: pytest.LogCaptureFixture) -> None:
    """Test bonding an unknown token is logged and dropped."""
    store = InMemoryEntityStore()
    with caplog.at_level(logging.WARNING):
        assert handle_bonded(store, Bonded(token=TOKEN, timestamp=1)) is None

    assert store.count(EntityKind.TOKEN) == 0
    assert any("does not exist" in record.getMessage() for record in caplog.records)


def test_require_token_raises_entity_not_found() -> None:
    """Test the lookup helper raises for missing tokens."""
    with pytest.raises(EntityNotFound, match=TOKEN):
        require_token(InMemoryEntityStore(), TOKEN)


def test_pair_with_base_links_other_token() -> None:
    """Test PairCreated(BASE, X) links X and leaves BASE untouched."""
    store = InMemoryEntityStore()
    create(store)

    token = handle_pair_created(store, PairCreated(token0=BASE, token1=TOKEN, pair=PAIR, timestamp=500), BASE)

    assert token.pair == PAIR
    assert token.updated_at == 500
    assert store.load(EntityKind.TOKEN, BASE.lower()) is None


def test_pair_base_as_token1() -> None:
    """Test the base may be either side of the pair."""
    store = InMemoryEntityStore()
    create(store)

    token = handle_pair_created(store, PairCreated(token0=TOKEN, token1=BASE.lower(), pair=PAIR, timestamp=500), BASE)
    assert token.pair == PAIR


def test_pair_without_base_is_ignored() -> None:
    """Test neither side matching the base leaves tokens untouched."""
    store = InMemoryEntityStore()
    create(store)

    assert handle_pair_created(store, PairCreated(token0=TOKEN, token1=OTHER, pair=PAIR, timestamp=1), BASE) is None
    assert store.load(EntityKind.TOKEN, TOKEN).pair is None


def test_pair_both_base_is_ignored() -> None:
    """Test a base/base pair links nothing."""
    assert paired_token(PairCreated(token0=BASE, token1=BASE, pair=PAIR, timestamp=1), BASE) is None


def test_pair_for_untracked_token() -> None:
    """Test a pair for a token never created is ignored."""
    store = InMemoryEntityStore()
    assert handle_pair_created(store, PairCreated(token0=BASE, token1=OTHER, pair=PAIR, timestamp=1), BASE) is None
    assert store.count(EntityKind.TOKEN) == 0
