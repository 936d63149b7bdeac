"""SQLite-backed entity store."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from pathlib import Path
from sqlite3 import Connection

from beartype import beartype

from src.accounting.errors import StoreFailure
from src.accounting.fixed_point import FixedPoint
from src.database.connection import create_schema, get_connection
from src.database.entities import (
    Entity,
    EntityKind,
    Position,
    Token,
    TokenHolder,
    Trade,
    normalize_address,
)
from src.database.store import check_kind
from src.events.models import Side, Venue
from src.utils.config import DB_PATH
from src.utils.logger import get_logger

logger = get_logger(__name__)

TABLE_NAMES: dict[EntityKind, str] = {
    EntityKind.TOKEN: "tokens",
    EntityKind.TRADE: "trades",
    EntityKind.POSITION: "positions",
    EntityKind.TOKEN_HOLDER: "token_holders",
}


def _fp(text: str) -> FixedPoint:
    return FixedPoint.from_string(text)


def _token_to_row(token: Token) -> dict[str, object]:
    return {
        "id": token.id,
        "creator": token.creator,
        "bonding_curve": token.bonding_curve,
        "name": token.name,
        "symbol": token.symbol,
        "decimals": token.decimals,
        "pair": token.pair,
        "bonded": int(token.bonded),
        "created_at": token.created_at,
        "updated_at": token.updated_at,
        "bonded_at": token.bonded_at,
        "latest_price_eth": str(token.latest_price_eth) if token.latest_price_eth is not None else None,
    }


def _row_to_token(row: sqlite3.Row) -> Token:
    price = row["latest_price_eth"]
    return Token(
        id=row["id"],
        creator=row["creator"],
        bonding_curve=row["bonding_curve"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        name=row["name"],
        symbol=row["symbol"],
        decimals=row["decimals"],
        pair=row["pair"],
        bonded=bool(row["bonded"]),
        bonded_at=row["bonded_at"],
        latest_price_eth=_fp(price) if price is not None else None,
    )


def _trade_to_row(trade: Trade) -> dict[str, object]:
    return {
        "id": trade.id,
        "tx_hash": trade.tx_hash,
        "log_index": trade.log_index,
        "timestamp": trade.timestamp,
        "user": trade.user,
        "token": trade.token,
        "side": trade.side.value,
        "source": trade.source.value,
        "quantity_eth": str(trade.quantity_eth),
        "quantity_tokens": str(trade.quantity_tokens),
    }


def _row_to_trade(row: sqlite3.Row) -> Trade:
    return Trade(
        id=row["id"],
        tx_hash=row["tx_hash"],
        log_index=row["log_index"],
        timestamp=row["timestamp"],
        user=row["user"],
        token=row["token"],
        side=Side(row["side"]),
        source=Venue(row["source"]),
        quantity_eth=_fp(row["quantity_eth"]),
        quantity_tokens=_fp(row["quantity_tokens"]),
    )


def _position_to_row(position: Position) -> dict[str, object]:
    return {
        "id": position.id,
        "user": position.user,
        "token": position.token,
        "balance": str(position.balance),
        "avg_cost_eth_per_token": str(position.avg_cost_eth_per_token),
        "total_eth_bought": str(position.total_eth_bought),
        "total_tokens_bought": str(position.total_tokens_bought),
        "total_eth_sold": str(position.total_eth_sold),
        "total_tokens_sold": str(position.total_tokens_sold),
        "realized_pnl_eth": str(position.realized_pnl_eth),
        "updated_at": position.updated_at,
    }


def _row_to_position(row: sqlite3.Row) -> Position:
    return Position(
        id=row["id"],
        user=row["user"],
        token=row["token"],
        balance=int(row["balance"]),
        avg_cost_eth_per_token=_fp(row["avg_cost_eth_per_token"]),
        total_eth_bought=_fp(row["total_eth_bought"]),
        total_tokens_bought=_fp(row["total_tokens_bought"]),
        total_eth_sold=_fp(row["total_eth_sold"]),
        total_tokens_sold=_fp(row["total_tokens_sold"]),
        realized_pnl_eth=_fp(row["realized_pnl_eth"]),
        updated_at=row["updated_at"],
    )


def _holder_to_row(holder: TokenHolder) -> dict[str, object]:
    return {
        "id": holder.id,
        "token": holder.token,
        "holder": holder.holder,
        "balance": str(holder.balance),
        "updated_at": holder.updated_at,
    }


def _row_to_holder(row: sqlite3.Row) -> TokenHolder:
    return TokenHolder(
        id=row["id"],
        token=row["token"],
        holder=row["holder"],
        balance=_fp(row["balance"]),
        updated_at=row["updated_at"],
    )


_TO_ROW: dict[EntityKind, Callable[..., dict[str, object]]] = {
    EntityKind.TOKEN: _token_to_row,
    EntityKind.TRADE: _trade_to_row,
    EntityKind.POSITION: _position_to_row,
    EntityKind.TOKEN_HOLDER: _holder_to_row,
}

_FROM_ROW: dict[EntityKind, Callable[[sqlite3.Row], Entity]] = {
    EntityKind.TOKEN: _row_to_token,
    EntityKind.TRADE: _row_to_trade,
    EntityKind.POSITION: _row_to_position,
    EntityKind.TOKEN_HOLDER: _row_to_holder,
}


class SQLiteEntityStore:
    """Entity store writing each save through to sqlite immediately."""

    def __init__(
        self,
        db_path: Path | str = DB_PATH,
        conn: Connection | None = None,
    ) -> None:
        """
        Open (and if needed create) the indexer database.

        Args:
            db_path: Path to the sqlite file, or ":memory:"
            conn: Optional existing connection (not closed by this store)
        """
        self.should_close = conn is None
        try:
            if conn is None:
                if str(db_path) != ":memory:":
                    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
                conn = get_connection(db_path)
            create_schema(conn)
        except sqlite3.Error as e:
            raise StoreFailure(f"Failed to open database {db_path}: {e}") from e
        self.conn = conn

    @beartype
    def load(self, kind: EntityKind, entity_id: str) -> Entity | None:
        """
        Load one entity by id.

        Returns:
            The entity, or None if no row exists

        Raises:
            StoreFailure: If the query fails
        """
        try:
            row = self.conn.execute(
                f"SELECT * FROM {TABLE_NAMES[kind]} WHERE id = ?",
                (entity_id,),
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreFailure(f"Failed to load {kind.value} {entity_id}: {e}") from e
        return _FROM_ROW[kind](row) if row is not None else None

    @beartype
    def save(self, kind: EntityKind, entity: Entity) -> None:
        """
        Insert or replace one entity and commit.

        Raises:
            StoreFailure: If the write fails (nothing is committed)
        """
        check_kind(kind, entity)
        row = _TO_ROW[kind](entity)
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        try:
            with self.conn:
                self.conn.execute(
                    f"INSERT OR REPLACE INTO {TABLE_NAMES[kind]} ({columns}) VALUES ({placeholders})",
                    tuple(row.values()),
                )
        except sqlite3.Error as e:
            raise StoreFailure(f"Failed to save {kind.value} {entity.id}: {e}") from e

    # --- Read helpers ---

    @beartype
    def count(self, kind: EntityKind, token: str | None = None) -> int:
        """Number of stored entities of a kind, optionally for one token."""
        query = f"SELECT COUNT(*) FROM {TABLE_NAMES[kind]}"
        params: tuple[str, ...] = ()
        if token and kind != EntityKind.TOKEN:
            query += " WHERE token = ?"
            params = (normalize_address(token),)
        result = self._query(query, params)
        return result[0][0] if result else 0

    @beartype
    def positions_for_token(self, token: str, limit: int | None = None) -> list[Position]:
        """Positions in a token, most recently updated first."""
        query = "SELECT * FROM positions WHERE token = ? ORDER BY updated_at DESC"
        if limit:
            query += f" LIMIT {int(limit)}"
        return [_row_to_position(row) for row in self._query(query, (normalize_address(token),))]

    @beartype
    def holders_for_token(self, token: str, limit: int | None = None) -> list[TokenHolder]:
        """Holders of a token, most recently updated first."""
        query = "SELECT * FROM token_holders WHERE token = ? ORDER BY updated_at DESC"
        if limit:
            query += f" LIMIT {int(limit)}"
        return [_row_to_holder(row) for row in self._query(query, (normalize_address(token),))]

    @beartype
    def trades_for_token(self, token: str, limit: int | None = None) -> list[Trade]:
        """Trades in a token, oldest first."""
        query = "SELECT * FROM trades WHERE token = ? ORDER BY timestamp, log_index"
        if limit:
            query += f" LIMIT {int(limit)}"
        return [_row_to_trade(row) for row in self._query(query, (normalize_address(token),))]

    def list_tokens(self) -> list[Token]:
        """All tracked tokens, oldest first."""
        return [_row_to_token(row) for row in self._query("SELECT * FROM tokens ORDER BY created_at")]

    # --- Indexer metadata ---

    @beartype
    def get_metadata(self, key: str) -> str | None:
        rows = self._query("SELECT value FROM indexer_metadata WHERE key = ?", (key,))
        return rows[0]["value"] if rows else None

    @beartype
    def set_metadata(self, key: str, value: str) -> None:
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT OR REPLACE INTO indexer_metadata (key, value) VALUES (?, ?)",
                    (key, value),
                )
        except sqlite3.Error as e:
            raise StoreFailure(f"Failed to set metadata {key}: {e}") from e

    def _query(self, query: str, params: tuple[object, ...] = ()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise StoreFailure(f"Query failed: {e}") from e

    def close(self) -> None:
        """Close the connection if it was opened here."""
        if self.should_close:
            logger.debug("Closing indexer database connection")
            self.conn.close()

    def __enter__(self) -> SQLiteEntityStore:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()
