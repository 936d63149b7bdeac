"""Log poller that feeds decoded events to the dispatcher in chain order."""

from __future__ import annotations

import heapq
import itertools
import time
from collections.abc import Iterable, Mapping

from beartype import beartype

from src.events.dispatcher import EventDispatcher
from src.events.models import EventKind
from src.lifecycle.tokens import CURVE_CONTRACT_KINDS, TOKEN_CONTRACT_KINDS
from src.parser.chain_client import ChainClient
from src.parser.event_decoder import (
    DATABASE_CONTRACT_EVENTS,
    DEX_FACTORY_EVENTS,
    EventDecoder,
    topics_for_kinds,
)
from src.utils.config import BLOCKCHAIN_BATCH_SIZE, POLL_INTERVAL_SECONDS
from src.utils.logger import get_logger

logger = get_logger(__name__)

LAST_BLOCK_KEY = "last_processed_block"


class SubscriptionRegistry:
    """Addresses discovered mid-stream and the event kinds watched on each."""

    def __init__(self) -> None:
        self._kinds: dict[str, set[EventKind]] = {}
        self._new: list[tuple[str, frozenset[EventKind]]] = []

    @beartype
    def subscribe(self, address: str, kinds: frozenset[EventKind]) -> None:
        """Watch an address for the given kinds; repeats are no-ops."""
        address = address.lower()
        watched = self._kinds.setdefault(address, set())
        added = frozenset(kinds - watched)
        if not added:
            return
        watched.update(added)
        self._new.append((address, added))
        logger.debug(f"Subscribed {address} for {sorted(kind.value for kind in added)}")

    def is_subscribed(self, address: str, kind: EventKind) -> bool:
        return kind in self._kinds.get(address.lower(), set())

    def addresses_for(self, kind: EventKind) -> list[str]:
        return sorted(address for address, kinds in self._kinds.items() if kind in kinds)

    def drain_new(self) -> list[tuple[str, frozenset[EventKind]]]:
        """Subscriptions added since the last drain."""
        new, self._new = self._new, []
        return new

    def restore(self, tokens: Iterable[object]) -> None:
        """Re-subscribe the contracts of already-known tokens after a restart."""
        for token in tokens:
            self.subscribe(token.id, TOKEN_CONTRACT_KINDS)
            self.subscribe(token.bonding_curve, CURVE_CONTRACT_KINDS)
        self.drain_new()

    def __len__(self) -> int:
        return len(self._kinds)


def _log_position(log: Mapping[str, object]) -> tuple[int, int]:
    return int(log["blockNumber"]), int(log["logIndex"])


class LogIndexer:
    """Polls contract logs block range by block range and dispatches them."""

    def __init__(
        self,
        client: ChainClient,
        dispatcher: EventDispatcher,
        registry: SubscriptionRegistry,
        database_contract: str | None,
        dex_factory: str | None = None,
        batch_size: int = BLOCKCHAIN_BATCH_SIZE,
    ) -> None:
        """
        Initialize log indexer.

        Args:
            client: Chain client used for eth_getLogs and block timestamps
            dispatcher: Event dispatcher (its subscriber should be `registry`)
            registry: Subscription registry for dynamically created contracts
            database_contract: Token registry emitting NewTokenCreated/Bonded
            dex_factory: DEX factory emitting PairCreated and DEX Buy/Sell
            batch_size: Number of blocks per batch
        """
        self.client = client
        self.dispatcher = dispatcher
        self.registry = registry
        self.database_contract = database_contract
        self.dex_factory = dex_factory
        self.batch_size = batch_size
        self.decoder = EventDecoder(dex_factory_address=dex_factory)
        self._block_timestamps: dict[int, int] = {}

        self.stats = {
            "blocks_processed": 0,
            "logs_fetched": 0,
            "events_dispatched": 0,
            "logs_skipped": 0,
            "start_time": time.time(),
        }

    def _split_block_range(self, from_block: int, to_block: int) -> list[tuple[int, int]]:
        """Split an inclusive block range into batches."""
        batches: list[tuple[int, int]] = []
        current = from_block

        while current <= to_block:
            end = min(current + self.batch_size - 1, to_block)
            batches.append((current, end))
            current = end + 1

        return batches

    def _fetch_initial_logs(self, from_block: int, to_block: int) -> list[Mapping[str, object]]:
        logs: list[Mapping[str, object]] = []
        if self.database_contract:
            logs += self.client.get_logs(
                [self.database_contract],
                [abi.topic for abi in DATABASE_CONTRACT_EVENTS],
                from_block,
                to_block,
            )
        if self.dex_factory:
            logs += self.client.get_logs(
                [self.dex_factory],
                [abi.topic for abi in DEX_FACTORY_EVENTS],
                from_block,
                to_block,
            )
        for kind in EventKind:
            addresses = self.registry.addresses_for(kind)
            if addresses:
                logs += self.client.get_logs(addresses, topics_for_kinds([kind]), from_block, to_block)
        return logs

    def _block_timestamp(self, block_number: int) -> int:
        if block_number not in self._block_timestamps:
            self._block_timestamps[block_number] = self.client.get_block_timestamp(block_number)
        return self._block_timestamps[block_number]

    @beartype
    def process_range(self, from_block: int, to_block: int) -> int:
        """
        Dispatch every watched log in an inclusive block range, in chain order.

        Contracts subscribed while the range is being processed are
        back-filled from the subscribing log onward, so their events in the
        same range are not missed.

        Returns:
            Number of events dispatched
        """
        counter = itertools.count()
        queue: list[tuple[int, int, int, Mapping[str, object]]] = []

        def push(logs: Iterable[Mapping[str, object]], after: tuple[int, int] | None = None) -> None:
            for log in logs:
                position = _log_position(log)
                if after is None or position > after:
                    heapq.heappush(queue, (*position, next(counter), log))
                    self.stats["logs_fetched"] += 1

        push(self._fetch_initial_logs(from_block, to_block))

        dispatched = 0
        while queue:
            block_number, log_index, _, log = heapq.heappop(queue)
            event = self.decoder.decode(log, self._block_timestamp(block_number))
            if event is None:
                self.stats["logs_skipped"] += 1
                continue

            self.dispatcher.dispatch(event)
            dispatched += 1

            for address, kinds in self.registry.drain_new():
                push(
                    self.client.get_logs([address], topics_for_kinds(kinds), block_number, to_block),
                    after=(block_number, log_index),
                )

        self.stats["blocks_processed"] += to_block - from_block + 1
        self.stats["events_dispatched"] += dispatched
        self._block_timestamps.clear()
        return dispatched

    @beartype
    def resume_block(self, default: int) -> int:
        """First block to process: one past the last committed block, or default."""
        last = self.dispatcher.store.get_metadata(LAST_BLOCK_KEY)
        return int(last) + 1 if last is not None else default

    @beartype
    def run(self, from_block: int, to_block: int) -> int:
        """
        Process a block range batch by batch, committing progress after each.

        A store failure aborts the run; the failed batch is not marked done.

        Returns:
            Number of events dispatched
        """
        batches = self._split_block_range(from_block, to_block)
        total_batches = len(batches)
        logger.info(f"Processing blocks {from_block}-{to_block} in {total_batches} batches")

        dispatched = 0
        for completed, (batch_from, batch_to) in enumerate(batches, start=1):
            dispatched += self.process_range(batch_from, batch_to)
            self.dispatcher.store.set_metadata(LAST_BLOCK_KEY, str(batch_to))
            logger.log_progress(
                completed,
                total_batches,
                "batches",
                update_interval=max(1, total_batches // 20),
            )

        self._log_statistics(time.time() - self.stats["start_time"])
        return dispatched

    def follow(self, from_block: int, max_polls: int | None = None) -> None:
        """
        Keep processing new blocks as the chain head advances.

        Args:
            from_block: First block to process
            max_polls: Stop after this many polls (runs forever if None)
        """
        next_block = from_block
        polls = 0
        while max_polls is None or polls < max_polls:
            head = self.client.get_current_block_number()
            if next_block <= head:
                self.run(next_block, head)
                next_block = head + 1
            else:
                time.sleep(POLL_INTERVAL_SECONDS)
            polls += 1

    def _log_statistics(self, elapsed_time: float) -> None:
        """Log indexing statistics."""
        stats = self.stats
        logger.info("=== Indexing Statistics ===")
        logger.info(f"Blocks processed: {stats['blocks_processed']}")
        logger.info(f"Logs fetched: {stats['logs_fetched']}")
        logger.info(f"Events dispatched: {stats['events_dispatched']}")
        logger.info(f"Logs skipped: {stats['logs_skipped']}")
        logger.info(f"Subscribed contracts: {len(self.registry)}")
        for name, value in self.dispatcher.stats.items():
            logger.info(f"{name}: {value}")

        if elapsed_time > 0:
            blocks_per_sec = stats["blocks_processed"] / elapsed_time
            events_per_sec = stats["events_dispatched"] / elapsed_time
            logger.record_metric("blocks_per_second", blocks_per_sec)
            logger.record_metric("events_per_second", events_per_sec)

        logger.info("===========================")

    def close(self) -> None:
        """Close the chain client."""
        self.client.close()

    def __enter__(self) -> LogIndexer:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()
