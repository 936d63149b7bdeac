"""Main entry point: index launch-contract events into the local database."""

from __future__ import annotations

import sys
from pathlib import Path

from beartype import beartype

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.accounting import holders, positions
from src.accounting.errors import StoreFailure
from src.database.entities import EntityKind
from src.database.repository import SQLiteEntityStore
from src.events.dispatcher import EventDispatcher
from src.parser.chain_client import ChainClient
from src.parser.log_indexer import LogIndexer, SubscriptionRegistry
from src.utils.config import (
    BASE_TOKEN_ADDRESS,
    DATABASE_CONTRACT_ADDRESS,
    DB_PATH,
    DEX_FACTORY_ADDRESS,
    TRANSFER_BALANCE_MODE,
)
from src.utils.logger import get_logger

logger = get_logger(__name__)


@beartype
def main(
    from_block: int | None = None,
    to_block: int | None = None,
    follow: bool = False,
    database_contract: str | None = None,
    dex_factory: str | None = None,
    db_path: str | None = None,
) -> None:
    """
    Index events from the token registry, the DEX factory and every
    contract discovered through them.

    Args:
        from_block: Starting block (resumes from the database if None)
        to_block: Ending block (uses current block if None)
        follow: Keep polling for new blocks after reaching to_block
        database_contract: Token registry address (uses config if None)
        dex_factory: DEX factory address (uses config if None)
        db_path: sqlite database path (uses config if None)
    """
    database_contract = database_contract or DATABASE_CONTRACT_ADDRESS
    dex_factory = dex_factory or DEX_FACTORY_ADDRESS

    if not database_contract:
        print("\nERROR: Token registry contract address not configured!")
        print("Either set INDEXER_DATABASE_CONTRACT or use --database-contract")
        sys.exit(1)

    print("Curve Position Indexer")
    print("=" * 50)
    print(f"Token registry: {database_contract}")
    print(f"DEX factory:    {dex_factory or '(not indexed)'}")
    print(f"Base token:     {BASE_TOKEN_ADDRESS}")
    print(f"Transfer mode:  {TRANSFER_BALANCE_MODE}")
    print("-" * 50)

    store = SQLiteEntityStore(db_path or DB_PATH)
    registry = SubscriptionRegistry()
    registry.restore(store.list_tokens())
    dispatcher = EventDispatcher(store, registry)

    try:
        with LogIndexer(
            ChainClient(),
            dispatcher,
            registry,
            database_contract=database_contract,
            dex_factory=dex_factory,
        ) as indexer:
            start = from_block if from_block is not None else indexer.resume_block(0)
            end = to_block if to_block is not None else indexer.client.get_current_block_number()

            if start <= end:
                dispatched = indexer.run(start, end)
                print(f"\n✓ Dispatched {dispatched} events from blocks {start}-{end}.")
            if follow:
                print("\nFollowing chain head (Ctrl+C to stop)...")
                indexer.follow(end + 1)

    except KeyboardInterrupt:
        print("\nStopped.")
    except StoreFailure as e:
        logger.exception("Store failure while indexing")
        print(f"\n✗ Store failure: {e}")
        sys.exit(1)
    finally:
        print(f"\nTokens: {store.count(EntityKind.TOKEN)}")
        print(f"Trades: {store.count(EntityKind.TRADE)}")
        print(f"Positions: {store.count(EntityKind.POSITION)}")
        print(f"Token holders: {store.count(EntityKind.TOKEN_HOLDER)}")
        positions.logger.log_summary()
        holders.logger.log_summary()
        store.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(
        description="Index token launches, trades and transfers into positions",
    )
    parser.add_argument(
        "--from-block",
        type=int,
        help="Starting block number (resumes from the last processed block if not provided)",
    )
    parser.add_argument(
        "--to-block",
        type=int,
        help="Ending block number (uses current block if not provided)",
    )
    parser.add_argument(
        "--follow",
        action="store_true",
        help="Keep polling for new blocks",
    )
    parser.add_argument(
        "--database-contract",
        help="Token registry contract address (uses config if not provided)",
    )
    parser.add_argument(
        "--dex-factory",
        help="DEX factory contract address (uses config if not provided)",
    )
    parser.add_argument(
        "--db-path",
        help="sqlite database path (uses config if not provided)",
    )

    args = parser.parse_args()

    main(
        from_block=args.from_block,
        to_block=args.to_block,
        follow=args.follow,
        database_contract=args.database_contract,
        dex_factory=args.dex_factory,
        db_path=args.db_path,
    )
