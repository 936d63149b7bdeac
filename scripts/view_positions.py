"""Simple script to view positions and holders of a token from the database."""

from pathlib import Path
import sys
from datetime import datetime

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.database.entities import EntityKind
from src.database.repository import SQLiteEntityStore


def view_positions(token: str, limit: int = 20) -> None:
    """View positions and transfer-driven holder balances for a token."""
    with SQLiteEntityStore() as store:
        print("=" * 110)
        print(f"Token: {token}")
        print("=" * 110)

        entity = store.load(EntityKind.TOKEN, token.lower())
        if entity is None:
            print("Token not tracked.")
        else:
            print(f"Symbol: {entity.symbol or '-'}  Bonded: {entity.bonded}  Pair: {entity.pair or '-'}")
            print(f"Latest price (ETH): {entity.latest_price_eth or '-'}")

        print(f"Trades: {store.count(EntityKind.TRADE, token)}")
        print(f"Positions: {store.count(EntityKind.POSITION, token)}\n")

        print(f"{'Updated':<20} {'User':<44} {'Balance':>26} {'Avg cost':>14} {'Realized PnL':>14}")
        print("-" * 110)
        for position in store.positions_for_token(token, limit=limit):
            date_str = datetime.fromtimestamp(position.updated_at).strftime('%Y-%m-%d %H:%M:%S')
            print(
                f"{date_str:<20} {position.user:<44} {position.balance:>26} "
                f"{float(position.avg_cost_eth_per_token.to_decimal()):>14.8f} "
                f"{float(position.realized_pnl_eth.to_decimal()):>14.6f}"
            )

        holder_rows = store.holders_for_token(token, limit=limit)
        if holder_rows:
            print(f"\n{'Holder':<44} {'Balance':>30}")
            print("-" * 76)
            for holder in holder_rows:
                print(f"{holder.holder:<44} {str(holder.balance):>30}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/view_positions.py <token_address> [limit]")
        print("Example: python scripts/view_positions.py 0xabc... 50")
        sys.exit(1)

    token = sys.argv[1]
    limit = int(sys.argv[2]) if len(sys.argv) > 2 else 20

    view_positions(token, limit)
