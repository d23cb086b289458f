from __future__ import annotations

"""
Store interface
===============

Backend-agnostic surface of the embedded ordered key-value store the keyspace
lives in. Keys and values are raw bytes; keys are ordered by unsigned,
left-to-right byte comparison (memcmp), which is also how Python compares
`bytes` objects.

The prefix scanner only needs the read side:

- `ReadOnlyKV.view()`   → a read-only, snapshot-consistent `ReadView`
- `ReadView.cursor()`   → a forward `Cursor`
- `Cursor.seek(key)`    → position at the smallest key >= `key`
- `Cursor.valid()`, `.key()`, `.value()`, `.next()`, `.close()`

Views and cursors are context managers and must be closed; each scan owns its
own view, views are never shared across concurrent scans.

The write side (`KV.put`, `KV.delete`, `KV.batch`) exists for operators and
tests that populate a store. Nothing in the keyspace package writes.

Example
-------
>>> from keyspace.db import open_kv
>>> kv = open_kv("memory://")
>>> with kv.batch() as b:
...     b.put(b"\\x00\\x01", b"blockA")
>>> with kv.view() as view, view.cursor() as cur:
...     cur.seek(b"\\x00")
...     cur.key(), cur.value()
(b'\\x00\\x01', b'blockA')

Typing
------
Protocols (PEP 544) so backends and test doubles can be duck-typed.
"""

from typing import Iterable, Optional, Protocol, Tuple, runtime_checkable

# ---------------------------------------------------------------------------
# Key building helpers
# ---------------------------------------------------------------------------


def be_u32(n: int) -> bytes:
    if not (0 <= n < (1 << 32)):
        raise ValueError("be_u32 out of range")
    return n.to_bytes(4, "big")


def compose_key(prefix: bytes, *parts: bytes) -> bytes:
    """Concatenate a collection prefix with fixed-width suffix fields."""
    return bytes(prefix) + b"".join(bytes(p) for p in parts)


# ---------------------------------------------------------------------------
# Read-side protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class Cursor(Protocol):
    """Forward-only cursor over a read view."""

    def seek(self, key: bytes) -> None:
        """Position at the smallest key >= `key` (invalid if none)."""
        ...

    def valid(self) -> bool:
        """True while the cursor points at a record."""
        ...

    def key(self) -> bytes:
        """Current key. Only meaningful while valid()."""
        ...

    def value(self) -> bytes:
        """Current value. May raise on I/O or corruption."""
        ...

    def next(self) -> None:
        """Advance to the next key in ascending order."""
        ...

    def close(self) -> None: ...

    def __enter__(self) -> "Cursor": ...
    def __exit__(self, exc_type, exc, tb) -> Optional[bool]: ...


@runtime_checkable
class ReadView(Protocol):
    """A read-only, snapshot-consistent view of the store."""

    def cursor(self) -> Cursor: ...

    def close(self) -> None: ...

    def __enter__(self) -> "ReadView": ...
    def __exit__(self, exc_type, exc, tb) -> Optional[bool]: ...


@runtime_checkable
class ReadOnlyKV(Protocol):
    """Minimal read-only store surface."""

    def get(self, key: bytes) -> Optional[bytes]:
        """Fetch value or None if missing."""
        ...

    def has(self, key: bytes) -> bool:
        """Return True if key exists."""
        ...

    def view(self) -> ReadView:
        """Open an independent read-only view."""
        ...

    def close(self) -> None:
        """Close resources."""
        ...


# ---------------------------------------------------------------------------
# Write-side protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class Batch(Protocol):
    """
    A write-batch context manager. Atomic when the context exits without an
    exception; rolled back otherwise.
    """

    def put(self, key: bytes, value: bytes) -> None: ...
    def delete(self, key: bytes) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...

    def __enter__(self) -> "Batch": ...
    def __exit__(self, exc_type, exc, tb) -> Optional[bool]: ...


@runtime_checkable
class KV(ReadOnlyKV, Protocol):
    """Full RW store surface."""

    def put(self, key: bytes, value: bytes) -> None:
        """Persist (key, value). Overwrites if exists."""
        ...

    def delete(self, key: bytes) -> None:
        """Remove key if present (idempotent)."""
        ...

    def batch(self) -> Batch:
        """Return a new write batch."""
        ...


def put_many(kv: KV, items: Iterable[Tuple[bytes, bytes]]) -> None:
    """Write many keys using a single batch."""
    with kv.batch() as b:
        for k, v in items:
            b.put(k, v)


__all__ = [
    "Cursor",
    "ReadView",
    "ReadOnlyKV",
    "Batch",
    "KV",
    "put_many",
    "compose_key",
    "be_u32",
]
