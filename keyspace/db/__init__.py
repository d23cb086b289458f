from __future__ import annotations

"""
keyspace.db
===========

Thin facade over the embedded ordered store backends the keyspace lives in.

Backends
--------
- SQLite (default, always available)
- RocksDB (optional; needs python-rocksdb)

URIs
----
- "sqlite:///path/to/keyspace.db"  → SQLite file
- "sqlite:///:memory:"             → in-memory SQLite (tests)
- "memory://"                      → alias of "sqlite:///:memory:"
- "rocksdb:///path/to/dir"         → RocksDB directory
- Bare paths: "*.db" → SQLite file, anything else → RocksDB directory

API
---
- open_kv(uri, create=True, readonly=False) -> KV
- prefer_rocks() -> bool

Example
-------
>>> from keyspace.db import open_kv
>>> kv = open_kv("memory://")
>>> kv.put(b"\\x05utxo", b"entry")
>>> kv.get(b"\\x05utxo")
b'entry'
"""

from typing import Tuple

from . import rocksdb as _rocks_backend
from . import sqlite as _sqlite_backend
from .kv import KV, Batch, Cursor, ReadOnlyKV, ReadView, compose_key, put_many


def prefer_rocks() -> bool:
    """Return True if the RocksDB backend is importable."""
    return _rocks_backend.available()


def _parse_uri(uri: str) -> Tuple[str, str]:
    """
    Parse a DB URI into (backend, path).

    Returns:
        ("sqlite", path) or ("rocksdb", path) or ("memory", "")
    """
    u = uri.strip()
    if u.startswith("sqlite:///"):
        return ("sqlite", u[len("sqlite:///") :])
    if u.startswith("rocksdb:///"):
        return ("rocksdb", u[len("rocksdb:///") :])
    if u.startswith("memory://"):
        return ("memory", "")
    if "://" in u:
        raise ValueError(f"Unsupported DB backend in URI: {uri!r}")
    if u.endswith(".db") or not u:
        return ("sqlite", u)
    return ("rocksdb", u)


def open_kv(uri: str, create: bool = True, readonly: bool = False) -> KV:
    """
    Open a store by URI. See module docstring for supported forms.

    Raises:
        ValueError for unsupported URIs.
        DependencyMissing if RocksDB is requested but unavailable.
        DatabaseError if the store cannot be opened.
    """
    backend, path = _parse_uri(uri)

    if backend == "memory":
        return _sqlite_backend.open_sqlite_kv(_sqlite_backend.MEMORY, readonly=readonly)

    if backend == "sqlite":
        return _sqlite_backend.open_sqlite_kv(
            path or _sqlite_backend.MEMORY, create=create, readonly=readonly
        )

    return _rocks_backend.open_rocksdb_kv(path or "./keyspace.rocks", create=create, readonly=readonly)


__all__ = [
    # interfaces
    "KV",
    "ReadOnlyKV",
    "ReadView",
    "Cursor",
    "Batch",
    # helpers
    "compose_key",
    "put_many",
    "open_kv",
    "prefer_rocks",
]
