"""Durable per-client key/value storage.

The identity store only needs three string keys per browser. Implementations:

- InMemoryKeyValueStore: process memory (local development, tests)
- DatabaseKeyValueStore: the client_storage table, scoped by client id
"""

from typing import Callable, Optional, Protocol

from sqlalchemy.orm import sessionmaker

from elakbay.models.client_storage_entry import ClientStorageEntry


class KeyValueStore(Protocol):
    """String key/value storage with browser localStorage semantics."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...


class InMemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value


def in_memory_storage_factory() -> Callable[[str], InMemoryKeyValueStore]:
    """Return a factory that hands each client id the same in-memory store.

    Stores are kept for the life of the process, independent of any tracker
    cache, so a returning browser keeps its session id and dwell latch.
    """
    stores: dict[str, InMemoryKeyValueStore] = {}

    def factory(client_id: str) -> InMemoryKeyValueStore:
        store = stores.get(client_id)
        if store is None:
            store = stores[client_id] = InMemoryKeyValueStore()
        return store

    return factory


class DatabaseKeyValueStore:
    """Key/value slots for one client id in the client_storage table.

    Each call opens and closes its own session and blocks on the database;
    IdentityStore runs it in a worker thread. Errors propagate so the caller
    decides how to degrade.
    """

    def __init__(self, session_factory: sessionmaker, client_id: str):
        if not client_id:
            raise ValueError('client_id is required')
        self.session_factory = session_factory
        self.client_id = client_id

    def get_item(self, key: str) -> Optional[str]:
        with self.session_factory() as session:
            entry = session.get(ClientStorageEntry, (self.client_id, key))
            return entry.value if entry is not None else None

    def set_item(self, key: str, value: str) -> None:
        with self.session_factory() as session:
            entry = session.get(ClientStorageEntry, (self.client_id, key))
            if entry is None:
                session.add(ClientStorageEntry(client_id=self.client_id, key=key, value=value))
            else:
                entry.value = value
            session.commit()
