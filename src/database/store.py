"""Key-value entity store interface and an in-memory implementation."""

from __future__ import annotations

import copy
from typing import Protocol, runtime_checkable

from beartype import beartype

from src.database.entities import Entity, EntityKind, Position, Token, TokenHolder, Trade

ENTITY_TYPES: dict[EntityKind, type] = {
    EntityKind.TOKEN: Token,
    EntityKind.TRADE: Trade,
    EntityKind.POSITION: Position,
    EntityKind.TOKEN_HOLDER: TokenHolder,
}


@runtime_checkable
class EntityStore(Protocol):
    """Load/save access to entities, keyed by (kind, id).

    No transactions: a handler reads the current value, computes the next
    one and writes it back. Implementations raise StoreFailure when a load
    or save can't complete.
    """

    def load(self, kind: EntityKind, entity_id: str) -> Entity | None: ...

    def save(self, kind: EntityKind, entity: Entity) -> None: ...


def check_kind(kind: EntityKind, entity: Entity) -> None:
    """Reject saving an entity under the wrong kind."""
    expected = ENTITY_TYPES[kind]
    if not isinstance(entity, expected):
        raise TypeError(f"Cannot save {type(entity).__name__} as {kind.value}")


class InMemoryEntityStore:
    """Dict-backed store; loads hand out copies so callers own their records."""

    def __init__(self) -> None:
        self._tables: dict[EntityKind, dict[str, Entity]] = {kind: {} for kind in EntityKind}
        self._metadata: dict[str, str] = {}
        self.save_count = 0

    @beartype
    def load(self, kind: EntityKind, entity_id: str) -> Entity | None:
        entity = self._tables[kind].get(entity_id)
        return copy.deepcopy(entity) if entity is not None else None

    @beartype
    def save(self, kind: EntityKind, entity: Entity) -> None:
        check_kind(kind, entity)
        self._tables[kind][entity.id] = copy.deepcopy(entity)
        self.save_count += 1

    def count(self, kind: EntityKind) -> int:
        return len(self._tables[kind])

    def get_metadata(self, key: str) -> str | None:
        return self._metadata.get(key)

    def set_metadata(self, key: str, value: str) -> None:
        self._metadata[key] = value

    def list_tokens(self) -> list[Token]:
        return [copy.deepcopy(token) for token in self._tables[EntityKind.TOKEN].values()]
