"""Configuration constants for the curve position indexer."""

from __future__ import annotations

import os
from pathlib import Path

# Database configuration
DB_DIR = Path(__file__).parent.parent.parent / "data"
DB_PATH = Path(os.environ.get("INDEXER_DB_PATH", str(DB_DIR / "indexer.db")))

# Blockchain configuration
# RPC endpoints (public, with fallback); INDEXER_RPC_URL takes precedence
RPC_ENDPOINTS = [
    "https://rpc.ankr.com/eth",
    "https://eth.llamarpc.com",
]
if os.environ.get("INDEXER_RPC_URL"):
    RPC_ENDPOINTS.insert(0, os.environ["INDEXER_RPC_URL"])

# Wrapped native token; pairs against it link the other side to its Token
BASE_TOKEN_ADDRESS = os.environ.get(
    "INDEXER_BASE_TOKEN",
    "0x6100E367285b01F48D07953803A2d8dCA5D19873",
)

# Static contracts. The token registry emits NewTokenCreated/Bonded, the DEX
# factory emits PairCreated and DEX Buy/Sell.
DATABASE_CONTRACT_ADDRESS: str | None = os.environ.get("INDEXER_DATABASE_CONTRACT")
DEX_FACTORY_ADDRESS: str | None = os.environ.get("INDEXER_DEX_FACTORY")

# Fixed-point configuration
ETH_DECIMALS = 18
DEFAULT_TOKEN_DECIMALS = 18
# Lowercase token address -> decimals, for tokens that don't use 18
TOKEN_DECIMALS_OVERRIDES: dict[str, int] = {}

# Accounting policy
# "holder": transfers update TokenHolder only (trade and transfer balances kept apart)
# "position": transfers also move Position.balance (merged variant)
TRANSFER_BALANCE_MODE = os.environ.get("INDEXER_TRANSFER_MODE", "holder")

# Skip the position update when a trade id has already been recorded
DEDUPE_REPLAYED_TRADES = True

# Polling settings
BLOCKCHAIN_BATCH_SIZE = 500  # Number of blocks per eth_getLogs call
BLOCKCHAIN_RPC_RATE_LIMIT = 10.0  # Requests per second to RPC
BLOCKCHAIN_RETRY_ATTEMPTS = 3  # Number of retry attempts for failed requests
BLOCKCHAIN_RETRY_DELAY = 2.0  # Initial delay between retries (seconds)
POLL_INTERVAL_SECONDS = 12.0  # Sleep between polls when following the chain head
