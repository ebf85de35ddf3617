"""Persistence: storage protocol, SQLite backend, and factory."""

from bitcoin_navi.storage.store import SqliteStore, StorageProtocol, create_store

__all__ = [
    "SqliteStore",
    "StorageProtocol",
    "create_store",
]
