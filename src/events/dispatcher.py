"""Routes decoded events to the recorder, reducers and lifecycle handlers."""

from __future__ import annotations

from beartype import beartype

from src.accounting.fixed_point import raw_to_decimal
from src.accounting.holders import apply_holder_transfer
from src.accounting.positions import apply_trade, apply_transfer
from src.accounting.trades import record_trade, token_decimals
from src.database.entities import EntityKind, trade_id
from src.database.store import EntityStore
from src.events.models import Bonded, Event, NewToken, PairCreated, TradeEvent, Transfer
from src.lifecycle.tokens import Subscriber, handle_bonded, handle_new_token, handle_pair_created
from src.utils.config import (
    BASE_TOKEN_ADDRESS,
    DEDUPE_REPLAYED_TRADES,
    ETH_DECIMALS,
    TRANSFER_BALANCE_MODE,
)
from src.utils.logger import get_logger

logger = get_logger(__name__)

TRANSFER_MODES = ("holder", "position")


class EventDispatcher:
    """Applies one event at a time against the entity store.

    Every load and save for an event completes before dispatch returns, so
    two events never interleave mutations of the same entity. Store failures
    propagate to the caller.
    """

    def __init__(
        self,
        store: EntityStore,
        subscriber: Subscriber,
        base_token_address: str = BASE_TOKEN_ADDRESS,
        transfer_mode: str = TRANSFER_BALANCE_MODE,
        dedupe_trades: bool = DEDUPE_REPLAYED_TRADES,
    ) -> None:
        """
        Initialize dispatcher.

        Args:
            store: Entity store
            subscriber: Capability to watch newly created contracts
            base_token_address: Wrapped native token used for pair linkage
            transfer_mode: "holder" (TokenHolder only) or "position" (Position.balance)
            dedupe_trades: Skip position updates for replayed trade ids
        """
        if transfer_mode not in TRANSFER_MODES:
            raise ValueError(f"transfer_mode must be one of {TRANSFER_MODES}, got {transfer_mode!r}")

        self.store = store
        self.subscriber = subscriber
        self.base_token_address = base_token_address
        self.transfer_mode = transfer_mode
        self.dedupe_trades = dedupe_trades

        self.stats = {
            "tokens_created": 0,
            "tokens_bonded": 0,
            "pairs_linked": 0,
            "trades_recorded": 0,
            "trades_replayed": 0,
            "transfers_applied": 0,
            "transfers_skipped": 0,
        }

    @beartype
    def dispatch(self, event: Event) -> None:
        """Apply a single event."""
        if isinstance(event, TradeEvent):
            self._on_trade(event)
        elif isinstance(event, Transfer):
            self._on_transfer(event)
        elif isinstance(event, NewToken):
            handle_new_token(self.store, self.subscriber, event)
            self.stats["tokens_created"] += 1
        elif isinstance(event, Bonded):
            if handle_bonded(self.store, event) is not None:
                self.stats["tokens_bonded"] += 1
        elif isinstance(event, PairCreated):
            if handle_pair_created(self.store, event, self.base_token_address) is not None:
                self.stats["pairs_linked"] += 1

    def _on_trade(self, event: TradeEvent) -> None:
        """
        Record a trade and apply it to the trader's position.

        The Trade record is written after the position, so its presence means
        the position update committed. A replay after a failed save finds no
        record and reapplies the trade.
        """
        decimals = token_decimals(self.store, event.token)
        key = trade_id(event.tx_hash, event.log_index)
        replayed = self.dedupe_trades and self.store.load(EntityKind.TRADE, key) is not None

        if replayed:
            logger.debug(f"Trade {key} already recorded, skipping position update")
            self.stats["trades_replayed"] += 1
        else:
            apply_trade(
                self.store,
                event.side,
                event.user,
                event.token,
                raw_to_decimal(event.eth_raw, ETH_DECIMALS),
                event.token_raw,
                event.timestamp,
                decimals=decimals,
            )
            self.stats["trades_recorded"] += 1

        record_trade(
            self.store,
            event.venue,
            event.side,
            event.timestamp,
            event.tx_hash,
            event.log_index,
            event.user,
            event.token,
            event.eth_raw,
            event.token_raw,
            decimals=decimals,
        )

    def _on_transfer(self, event: Transfer) -> None:
        if self.transfer_mode == "position":
            touched = apply_transfer(
                self.store,
                event.from_address,
                event.to_address,
                event.token,
                event.value_raw,
                event.timestamp,
            )
        else:
            touched = apply_holder_transfer(
                self.store,
                event.token,
                event.from_address,
                event.to_address,
                event.value_raw,
                event.timestamp,
            )

        if touched:
            self.stats["transfers_applied"] += 1
        else:
            self.stats["transfers_skipped"] += 1
