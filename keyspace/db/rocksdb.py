from __future__ import annotations

"""
RocksDB-backed store (optional)
===============================

A high-throughput ordered KV using python-rocksdb when available. If the
module or native library is missing, opening a RocksDB store raises
`DependencyMissing` with install hints; SQLite remains the default backend.

- Binary keys & values (bytes in, bytes out), bytewise comparator
- Read views pin a RocksDB snapshot; every cursor of the view reads from it
- Cursors wrap `iteritems()` + `seek(key)` and step one record at a time
- Batched writes using WriteBatch

Implements the KV / ReadOnlyKV / ReadView / Cursor / Batch protocols from
`keyspace.db.kv`.
"""

import os
from typing import Any, Optional, Tuple, Union

try:
    import rocksdb  # type: ignore

    _ROCKS_OK = True
except ImportError:
    rocksdb = None  # type: ignore
    _ROCKS_OK = False

from ..errors import DatabaseError, DependencyMissing, ReadOnlyStore
from ..logging import get_logger
from .kv import KV, Batch, Cursor, ReadView

log = get_logger(__name__)


def _missing(path: str) -> DependencyMissing:
    return DependencyMissing(
        "python-rocksdb",
        hint=(
            "install librocksdb-dev and `pip install deso-keyspace[rocksdb]`, "
            f"or use a sqlite:/// URI (requested: {path})"
        ),
    )


class RocksCursor(Cursor):
    __slots__ = ("_db", "_snapshot", "_it", "_cur")

    def __init__(self, db: Any, snapshot: Any) -> None:
        self._db = db
        self._snapshot = snapshot
        self._it: Any = None
        self._cur: Optional[Tuple[bytes, bytes]] = None

    def seek(self, key: bytes) -> None:
        self._it = self._db.iteritems(snapshot=self._snapshot)
        self._it.seek(key)
        self._step()

    def _step(self) -> None:
        self._cur = next(self._it, None)

    def valid(self) -> bool:
        return self._cur is not None

    def key(self) -> bytes:
        if self._cur is None:
            raise DatabaseError("cursor is not positioned", retryable=False)
        return bytes(self._cur[0])

    def value(self) -> bytes:
        if self._cur is None:
            raise DatabaseError("cursor is not positioned", retryable=False)
        return bytes(self._cur[1])

    def next(self) -> None:
        if self._it is not None:
            self._step()

    def close(self) -> None:
        self._it = None
        self._cur = None

    def __enter__(self) -> "RocksCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None


class RocksReadView(ReadView):
    __slots__ = ("_db", "_snapshot")

    def __init__(self, db: Any) -> None:
        self._db = db
        self._snapshot = db.snapshot()

    def cursor(self) -> RocksCursor:
        if self._snapshot is None:
            raise DatabaseError("read view is closed", retryable=False)
        return RocksCursor(self._db, self._snapshot)

    def close(self) -> None:
        # Dropping the last reference releases the snapshot.
        self._snapshot = None

    def __enter__(self) -> "RocksReadView":
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None


class RocksBatch(Batch):
    __slots__ = ("_db", "_wb", "_open")

    def __init__(self, db: Any) -> None:
        self._db = db
        self._wb = rocksdb.WriteBatch()
        self._open = False

    def __enter__(self) -> "RocksBatch":
        if self._open:
            raise RuntimeError("batch already open")
        self._open = True
        return self

    def put(self, key: bytes, value: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._wb.put(key, value)

    def delete(self, key: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._wb.delete(key)

    def commit(self) -> None:
        if not self._open:
            return
        self._db.write(self._wb)
        self._wb = rocksdb.WriteBatch()
        self._open = False

    def rollback(self) -> None:
        if not self._open:
            return
        self._wb = rocksdb.WriteBatch()
        self._open = False

    def __exit__(self, et, ev, tb) -> Optional[bool]:
        try:
            if et is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self._open = False
        return None


class RocksKV(KV):
    """RocksDB-backed store satisfying the KV / ReadOnlyKV protocols."""

    __slots__ = ("_db", "_path", "_ro")

    def __init__(self, db: Any, path: str, read_only: bool) -> None:
        self._db = db
        self._path = path
        self._ro = read_only

    @property
    def path(self) -> str:
        return self._path

    @property
    def readonly(self) -> bool:
        return self._ro

    # --- ReadOnlyKV ---

    def get(self, key: bytes) -> Optional[bytes]:
        v = self._db.get(key)
        return None if v is None else bytes(v)

    def has(self, key: bytes) -> bool:
        return self._db.get(key) is not None

    def view(self) -> RocksReadView:
        return RocksReadView(self._db)

    def close(self) -> None:
        # python-rocksdb has no explicit close; the handle goes with the last reference.
        self._db = None

    # --- KV ---

    def put(self, key: bytes, value: bytes) -> None:
        if self._ro:
            raise ReadOnlyStore("put", self._path)
        self._db.put(key, value)

    def delete(self, key: bytes) -> None:
        if self._ro:
            raise ReadOnlyStore("delete", self._path)
        self._db.delete(key)

    def batch(self) -> RocksBatch:
        if self._ro:
            raise ReadOnlyStore("batch", self._path)
        return RocksBatch(self._db)


def _default_options() -> Any:
    """Defaults for scan-heavy diagnostics: Bloom filter + block cache, bytewise order."""
    opts = rocksdb.Options()
    opts.create_if_missing = True
    opts.max_open_files = 512
    opts.compression = rocksdb.CompressionType.lz4_compression
    opts.table_factory = rocksdb.BlockBasedTableFactory(
        block_cache=rocksdb.LRUCache(128 * 1024 * 1024),
        block_size=16 * 1024,
        filter_policy=rocksdb.BloomFilterPolicy(10),
    )
    # No fixed prefix extractor: scans use seek(prefix) + a leading-bytes guard.
    return opts


def open_rocksdb_kv(
    path: Union[str, "os.PathLike[str]"],
    *,
    create: bool = True,
    readonly: bool = False,
    options: Any = None,
) -> RocksKV:
    """
    Open a RocksDB store at `path`.

    Raises:
        DependencyMissing if python-rocksdb is not importable.
        DatabaseError if the database cannot be opened.
    """
    db_path = os.fspath(path)
    if not _ROCKS_OK:
        raise _missing(db_path)

    if not readonly and create:
        os.makedirs(os.path.abspath(db_path), exist_ok=True)

    opts = options or _default_options()
    opts.create_if_missing = create and not readonly
    try:
        db = rocksdb.DB(db_path, opts, read_only=readonly)
    except Exception as e:  # python-rocksdb raises its own Error hierarchy
        raise DatabaseError(f"cannot open RocksDB: {e}", retryable=False, path=db_path) from e

    log.debug("opened rocksdb store", extra={"path": db_path, "readonly": readonly})
    return RocksKV(db, db_path, read_only=readonly)


def available() -> bool:
    """True when python-rocksdb is importable."""
    return _ROCKS_OK


__all__ = [
    "open_rocksdb_kv",
    "available",
    "RocksKV",
    "RocksReadView",
    "RocksCursor",
    "RocksBatch",
]
