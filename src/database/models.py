"""Database schema definitions for indexer entities."""

from __future__ import annotations

# Fixed-point values are stored as canonical decimal TEXT and raw balances as
# integer TEXT: uint256 amounts overflow sqlite's 64-bit INTEGER.
TOKENS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS tokens (
    id TEXT PRIMARY KEY,
    creator TEXT NOT NULL,
    bonding_curve TEXT NOT NULL,
    name TEXT,
    symbol TEXT,
    decimals INTEGER NOT NULL DEFAULT 18,
    pair TEXT,
    bonded INTEGER NOT NULL DEFAULT 0,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    bonded_at INTEGER,
    latest_price_eth TEXT
)
"""

TRADES_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS trades (
    id TEXT PRIMARY KEY,
    tx_hash TEXT NOT NULL,
    log_index INTEGER NOT NULL,
    timestamp INTEGER NOT NULL,
    user TEXT NOT NULL,
    token TEXT NOT NULL,
    side TEXT NOT NULL,
    source TEXT NOT NULL,
    quantity_eth TEXT NOT NULL,
    quantity_tokens TEXT NOT NULL
)
"""

POSITIONS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS positions (
    id TEXT PRIMARY KEY,
    user TEXT NOT NULL,
    token TEXT NOT NULL,
    balance TEXT NOT NULL,
    avg_cost_eth_per_token TEXT NOT NULL,
    total_eth_bought TEXT NOT NULL,
    total_tokens_bought TEXT NOT NULL,
    total_eth_sold TEXT NOT NULL,
    total_tokens_sold TEXT NOT NULL,
    realized_pnl_eth TEXT NOT NULL,
    updated_at INTEGER NOT NULL
)
"""

TOKEN_HOLDERS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS token_holders (
    id TEXT PRIMARY KEY,
    token TEXT NOT NULL,
    holder TEXT NOT NULL,
    balance TEXT NOT NULL,
    updated_at INTEGER NOT NULL
)
"""

INDEXER_METADATA_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS indexer_metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""

TABLE_SCHEMAS = [
    TOKENS_TABLE_SCHEMA,
    TRADES_TABLE_SCHEMA,
    POSITIONS_TABLE_SCHEMA,
    TOKEN_HOLDERS_TABLE_SCHEMA,
    INDEXER_METADATA_TABLE_SCHEMA,
]

# Indexes for the per-token read paths
TABLE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_trades_token ON trades(token)",
    "CREATE INDEX IF NOT EXISTS idx_trades_user ON trades(user)",
    "CREATE INDEX IF NOT EXISTS idx_positions_token ON positions(token)",
    "CREATE INDEX IF NOT EXISTS idx_token_holders_token ON token_holders(token)",
]
