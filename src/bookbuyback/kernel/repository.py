"""
In-memory repository base

Persistence is pluggable: each bounded context declares a Protocol for its
repository and ships an in-memory implementation built on this class.
Entities are frozen models, so storing the instance itself is safe; a
caller can only change what is stored by saving a new instance.

Lookups return the entity or None. Repositories never raise for "not
found"; the services decide whether a missing entity is an error.
"""

import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class InMemoryRepository(Generic[T]):
    """
    Dict-backed store keyed by an id attribute

    Insertion order is preserved, so find_all returns entities in the order
    they were first saved.
    """

    id_attribute = "id"

    def __init__(self) -> None:
        self._items: dict[str, T] = {}
        self._lock = threading.RLock()

    def _key(self, entity: T) -> str:
        return getattr(entity, self.id_attribute)

    def save(self, entity: T) -> None:
        with self._lock:
            self._items[self._key(entity)] = entity

    def find_by_id(self, entity_id: str) -> T | None:
        with self._lock:
            return self._items.get(entity_id)

    def find_by_ids(self, entity_ids: list[str] | set[str]) -> list[T]:
        with self._lock:
            return [self._items[i] for i in entity_ids if i in self._items]

    def find_all(self) -> list[T]:
        with self._lock:
            return list(self._items.values())

    def delete(self, entity_id: str) -> bool:
        """Remove an entity; returns False if it was not stored"""
        with self._lock:
            return self._items.pop(entity_id, None) is not None

    def _select(self, predicate: Callable[[T], bool]) -> list[T]:
        with self._lock:
            return [item for item in self._items.values() if predicate(item)]

    def __len__(self) -> int:
        return len(self._items)
