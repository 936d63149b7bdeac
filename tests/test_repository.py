"""Tests for the sqlite entity store."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from src.accounting.errors import StoreFailure
from src.accounting.fixed_point import FixedPoint
from src.database.entities import EntityKind, Position, Token, TokenHolder, Trade, position_id, trade_id
from src.database.repository import SQLiteEntityStore
from src.database.store import EntityStore
from src.events.dispatcher import EventDispatcher
from src.events.models import NewToken, Side, TradeEvent, Transfer, Venue

USER = "0x1111111111111111111111111111111111111111"
TOKEN = "0x3333333333333333333333333333333333333333"
CURVE = "0x4444444444444444444444444444444444444444"
TX = "0x" + "cd" * 32


@pytest.fixture
def store(tmp_path):
    with SQLiteEntityStore(tmp_path / "indexer.db") as store:
        yield store


def make_token(**overrides) -> Token:
    fields = dict(id=TOKEN, creator=USER, bonding_curve=CURVE, created_at=1, updated_at=1)
    fields.update(overrides)
    return Token(**fields)


def test_store_satisfies_protocol(store) -> None:
    """Test the sqlite store is usable wherever an EntityStore is."""
    assert isinstance(store, EntityStore)


def test_missing_entity_loads_as_none(store) -> None:
    """Test loading an unknown id returns None."""
    assert store.load(EntityKind.POSITION, "nope") is None


def test_token_roundtrip(store) -> None:
    """Test optional token fields and prices survive persistence."""
    token = make_token(name="Pepe", symbol="PEPE", bonded=True, bonded_at=9, latest_price_eth=FixedPoint.from_string("0.25"))
    store.save(EntityKind.TOKEN, token)
    assert store.load(EntityKind.TOKEN, TOKEN) == token

    bare = make_token(id=CURVE)
    store.save(EntityKind.TOKEN, bare)
    assert store.load(EntityKind.TOKEN, CURVE) == bare


def test_position_keeps_uint256_balance_and_negative_pnl(store) -> None:
    """Test values beyond 64-bit integers and negative PnL are stored exactly."""
    position = Position(
        id=position_id(USER, TOKEN),
        user=USER,
        token=TOKEN,
        balance=2**256 - 1,
        avg_cost_eth_per_token=FixedPoint.from_string("0.000000000000000001"),
        realized_pnl_eth=FixedPoint.from_string("-12.345"),
        updated_at=7,
    )
    store.save(EntityKind.POSITION, position)

    loaded = store.load(EntityKind.POSITION, position.id)
    assert loaded == position
    assert loaded.balance == 2**256 - 1


def test_save_overwrites(store) -> None:
    """Test saving an existing id replaces the row."""
    store.save(EntityKind.TOKEN, make_token())
    store.save(EntityKind.TOKEN, make_token(name="Renamed", updated_at=5))

    assert store.count(EntityKind.TOKEN) == 1
    assert store.load(EntityKind.TOKEN, TOKEN).name == "Renamed"


def test_wrong_kind_is_rejected(store) -> None:
    """Test an entity can't be saved under another kind's table."""
    with pytest.raises(TypeError):
        store.save(EntityKind.POSITION, make_token())


def test_read_helpers(store) -> None:
    """Test per-token counts and listings."""
    for index, user in enumerate([USER, CURVE]):
        store.save(
            EntityKind.POSITION,
            Position(id=position_id(user, TOKEN), user=user, token=TOKEN, balance=index, updated_at=index),
        )
        store.save(
            EntityKind.TRADE,
            Trade(
                id=trade_id(TX, index),
                tx_hash=TX,
                log_index=index,
                timestamp=100,
                user=user,
                token=TOKEN,
                side=Side.BUY,
                source=Venue.CURVE,
                quantity_eth=FixedPoint.from_int(1),
                quantity_tokens=FixedPoint.from_int(10),
            ),
        )
    store.save(
        EntityKind.TOKEN_HOLDER,
        TokenHolder(id=f"{TOKEN}-{USER}", token=TOKEN, holder=USER, balance=FixedPoint.from_int(3), updated_at=1),
    )

    assert store.count(EntityKind.POSITION, token=TOKEN) == 2
    assert store.count(EntityKind.POSITION, token=CURVE) == 0
    assert [p.user for p in store.positions_for_token(TOKEN)] == [CURVE, USER]
    assert [t.log_index for t in store.trades_for_token(TOKEN)] == [0, 1]
    assert len(store.trades_for_token(TOKEN, limit=1)) == 1
    assert store.holders_for_token(TOKEN)[0].balance == FixedPoint.from_int(3)


def test_metadata(store) -> None:
    """Test indexer metadata key/value storage."""
    assert store.get_metadata("last_processed_block") is None
    store.set_metadata("last_processed_block", "123")
    store.set_metadata("last_processed_block", "456")
    assert store.get_metadata("last_processed_block") == "456"


def test_closed_connection_raises_store_failure(tmp_path) -> None:
    """Test sqlite errors surface as StoreFailure."""
    store = SQLiteEntityStore(tmp_path / "indexer.db")
    store.close()

    with pytest.raises(StoreFailure):
        store.load(EntityKind.TOKEN, TOKEN)
    with pytest.raises(StoreFailure):
        store.save(EntityKind.TOKEN, make_token())


def test_data_persists_across_reopen(tmp_path) -> None:
    """Test a second store on the same file sees committed writes."""
    path = tmp_path / "indexer.db"
    with SQLiteEntityStore(path) as store:
        store.save(EntityKind.TOKEN, make_token())

    with SQLiteEntityStore(path) as store:
        assert store.list_tokens() == [make_token()]


def test_in_memory_database() -> None:
    """Test the ":memory:" path works on a single connection."""
    with SQLiteEntityStore(":memory:") as store:
        store.save(EntityKind.TOKEN, make_token())
        assert store.count(EntityKind.TOKEN) == 1


def test_dispatcher_against_sqlite(store) -> None:
    """Test a create/trade/transfer sequence persists through the dispatcher."""
    dispatcher = EventDispatcher(store, MagicMock())
    dispatcher.dispatch(NewToken(token=TOKEN, dev=USER, bonding_curve=CURVE, timestamp=1))
    dispatcher.dispatch(
        TradeEvent(
            venue=Venue.CURVE,
            side=Side.BUY,
            user=USER,
            token=TOKEN,
            eth_raw=10**18,
            token_raw=4 * 10**18,
            timestamp=2,
            tx_hash=TX,
            log_index=0,
        ),
    )
    dispatcher.dispatch(Transfer(token=TOKEN, from_address=CURVE, to_address=USER, value_raw=4 * 10**18, timestamp=2))

    position = store.load(EntityKind.POSITION, position_id(USER, TOKEN))
    assert position.balance == 4 * 10**18
    assert position.avg_cost_eth_per_token == FixedPoint.from_string("0.25")
    assert store.load(EntityKind.TOKEN, TOKEN).latest_price_eth == FixedPoint.from_string("0.25")
    assert store.count(EntityKind.TOKEN_HOLDER, token=TOKEN) == 1
