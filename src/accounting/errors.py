"""Error taxonomy for event processing."""

from __future__ import annotations


class IndexerError(Exception):
    """Base class for errors raised while applying events."""


class DivisionByZero(IndexerError, ZeroDivisionError):
    """Fixed-point division by a zero divisor."""


class InvalidAmount(IndexerError, ValueError):
    """A raw amount or decimals count that can't be converted."""


class EntityNotFound(IndexerError):
    """An event references an entity that was never created."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class StoreFailure(IndexerError):
    """The entity store failed to load or save a record."""
