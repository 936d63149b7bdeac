"""JSON-RPC client for reading contract logs."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import TypeVar

from beartype import beartype
from web3 import Web3
from web3.exceptions import BlockNotFound
from web3.types import FilterParams, LogReceipt

from src.utils.config import (
    BLOCKCHAIN_RETRY_ATTEMPTS,
    BLOCKCHAIN_RETRY_DELAY,
    BLOCKCHAIN_RPC_RATE_LIMIT,
    RPC_ENDPOINTS,
)
from src.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


# Substrings of RPC errors that mean the endpoint itself is unhealthy
_ENDPOINT_ERROR_MARKERS = (
    "connection",
    "timeout",
    "timed out",
    "network",
    "refused",
    "rate limit",
    "too many requests",
    "429",
)


def is_endpoint_error(error: Exception) -> bool:
    """Whether an RPC error warrants switching to the next endpoint."""
    message = str(error).lower()
    return any(marker in message for marker in _ENDPOINT_ERROR_MARKERS)


class ChainClient:
    """Reads blocks and logs over JSON-RPC, rotating through endpoints on failure."""

    def __init__(
        self,
        rpc_endpoints: Sequence[str] | None = None,
        rate_limit: float = BLOCKCHAIN_RPC_RATE_LIMIT,
    ) -> None:
        """
        Initialize chain client and connect to the first healthy endpoint.

        Args:
            rpc_endpoints: RPC URLs in order of preference (uses config if None)
            rate_limit: Maximum requests per second

        Raises:
            ConnectionError: If no endpoint answers
        """
        self.rpc_endpoints = list(rpc_endpoints) if rpc_endpoints else RPC_ENDPOINTS.copy()
        self.rate_limit = rate_limit
        self.endpoint_index = 0
        self.last_request_time = 0.0
        self.web3: Web3 | None = None
        self._connect()

    @property
    def endpoint(self) -> str:
        return self.rpc_endpoints[self.endpoint_index]

    def _rotate_endpoint(self) -> None:
        self.endpoint_index = (self.endpoint_index + 1) % len(self.rpc_endpoints)

    def _connect(self) -> None:
        """Connect to the current endpoint, falling through the list once."""
        errors: list[str] = []

        for _ in self.rpc_endpoints:
            web3 = Web3(Web3.HTTPProvider(self.endpoint))
            try:
                head = web3.eth.block_number
            except Exception as e:
                logger.warning(f"RPC {self.endpoint} unavailable: {e}")
                errors.append(f"{self.endpoint}: {e}")
                self._rotate_endpoint()
                continue

            self.web3 = web3
            logger.info(f"Connected to {self.endpoint} at block {head}")
            return

        raise ConnectionError(f"No RPC endpoint reachable ({'; '.join(errors)})")

    def _wait_for_rate_limit(self) -> None:
        """Sleep so that requests stay under the configured rate."""
        min_interval = 1.0 / self.rate_limit
        elapsed = time.time() - self.last_request_time
        if elapsed < min_interval:
            time.sleep(min_interval - elapsed)
        self.last_request_time = time.time()

    def _retry_request(
        self,
        func: Callable[[], T],
        max_retries: int = BLOCKCHAIN_RETRY_ATTEMPTS,
    ) -> T:
        """
        Run an RPC call, retrying with backoff.

        Endpoint errors (connection, timeout, rate limiting) switch to the
        next endpoint straight away; other errors back off exponentially on
        the same one.

        Raises:
            Exception: The last error once all attempts fail
        """
        delay = BLOCKCHAIN_RETRY_DELAY

        for attempt in range(1, max_retries + 1):
            self._wait_for_rate_limit()
            try:
                return func()
            except Exception as e:
                if attempt == max_retries:
                    logger.error(f"RPC call failed after {max_retries} attempts: {e}")
                    raise

                if is_endpoint_error(e):
                    logger.warning(f"Endpoint error on {self.endpoint} ({attempt}/{max_retries}): {e}")
                    self._rotate_endpoint()
                    self._connect()
                else:
                    logger.warning(f"RPC call failed ({attempt}/{max_retries}): {e}, retrying in {delay}s")
                    time.sleep(delay)
                    delay *= 2

        raise RuntimeError("max_retries must be at least 1")

    @beartype
    def get_current_block_number(self) -> int:
        """Latest block number of the connected chain."""
        return int(self._retry_request(lambda: self.web3.eth.block_number))

    @beartype
    def get_block_timestamp(self, block_number: int) -> int:
        """
        Unix timestamp of a block.

        Raises:
            BlockNotFound: If the node doesn't have the block
        """

        def _get_block() -> int:
            try:
                return int(self.web3.eth.get_block(block_number)["timestamp"])
            except BlockNotFound:
                logger.error(f"Block not found: {block_number}")
                raise

        return self._retry_request(_get_block)

    @beartype
    def get_logs(
        self,
        addresses: Sequence[str],
        topics: Sequence[str],
        from_block: int,
        to_block: int,
    ) -> list[LogReceipt]:
        """
        Logs emitted by any of the addresses with any of the topic0 values.

        Args:
            addresses: Contract addresses
            topics: Accepted topic0 hashes (OR-ed)
            from_block: Starting block number
            to_block: Ending block number (inclusive)

        Returns:
            Log receipts in node order
        """
        if not addresses or not topics:
            return []

        filter_params: FilterParams = {
            "fromBlock": from_block,
            "toBlock": to_block,
            "address": [Web3.to_checksum_address(address) for address in addresses],
            "topics": [list(topics)],
        }

        logs = self._retry_request(lambda: list(self.web3.eth.get_logs(filter_params)))
        logger.debug(f"{len(logs)} logs from {len(addresses)} contracts in blocks {from_block}-{to_block}")
        return logs

    def close(self) -> None:
        """Release the client (HTTP providers hold no persistent connection)."""
        logger.debug("Closing chain client")

    def __enter__(self) -> ChainClient:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()
