"""Structured logging configuration for indexer operations."""

from __future__ import annotations

import logging
import sys
from collections import Counter
from pathlib import Path

LOGS_DIR = Path(__file__).parent.parent.parent / "logs"

# Log file path
LOG_FILE = LOGS_DIR / "indexer.log"

_CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class PerformanceLogger:
    """Logger with metric and anomaly-counter tracking."""

    def __init__(self, name: str) -> None:
        """
        Initialize performance logger.

        Args:
            name: Logger name (usually module name)
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)

        # Prevent duplicate handlers
        if not self.logger.handlers:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(logging.INFO)
            console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
            self.logger.addHandler(console_handler)

            try:
                LOGS_DIR.mkdir(exist_ok=True)
                file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
            except OSError as e:
                # Read-only checkouts still get console logging
                self.logger.warning(f"File logging disabled ({LOG_FILE}): {e}")
            else:
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
                self.logger.addHandler(file_handler)

        self.metrics: dict[str, float] = {}
        self.counters: Counter[str] = Counter()

    def debug(self, message: str, *args: object, **kwargs: object) -> None:
        """Log debug message."""
        self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args: object, **kwargs: object) -> None:
        """Log info message."""
        self.logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args: object, **kwargs: object) -> None:
        """Log warning message."""
        self.logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args: object, **kwargs: object) -> None:
        """Log error message."""
        self.logger.error(message, *args, **kwargs)

    def exception(self, message: str, *args: object, **kwargs: object) -> None:
        """Log exception with traceback."""
        self.logger.exception(message, *args, **kwargs)

    def record_metric(self, name: str, value: float) -> None:
        """
        Record a performance metric.

        Args:
            name: Metric name (e.g., "blocks_per_sec", "events_per_sec")
            value: Metric value
        """
        self.metrics[name] = value
        self.debug(f"Metric {name}: {value:.2f}")

    def increment(self, name: str, amount: int = 1) -> int:
        """
        Bump a named counter, e.g. tolerated data-quality anomalies.

        Args:
            name: Counter name (e.g., "position_balance_clamped")
            amount: Increment

        Returns:
            The counter's new value
        """
        self.counters[name] += amount
        return self.counters[name]

    def log_progress(
        self,
        current: int,
        total: int,
        item_name: str = "items",
        update_interval: int = 100,
    ) -> None:
        """
        Log progress with percentage.

        Args:
            current: Current progress
            total: Total items
            item_name: Name of items being processed
            update_interval: Log every N items
        """
        if current % update_interval == 0 or current == total:
            percentage = (current / total * 100) if total > 0 else 0
            self.info(
                f"Progress: {current}/{total} {item_name} ({percentage:.1f}%)",
            )

    def log_summary(self) -> None:
        """Log summary of all recorded metrics and counters."""
        if not self.metrics and not self.counters:
            return

        self.info("=== Indexer Summary ===")
        for name, value in self.metrics.items():
            self.info(f"{name}: {value:.2f}")
        for name, count in sorted(self.counters.items()):
            self.info(f"{name}: {count}")
        self.info("=======================")


def get_logger(name: str) -> PerformanceLogger:
    """
    Get or create a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        PerformanceLogger instance
    """
    return PerformanceLogger(name)
