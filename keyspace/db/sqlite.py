from __future__ import annotations

"""
SQLite-backed store
===================

A small embedded ordered KV using SQLite (BLOB keys & values), implementing
the `KV` / `ReadOnlyKV` / `ReadView` / `Cursor` / `Batch` protocols from
`keyspace.db.kv`.

- Table schema: kv(k BLOB PRIMARY KEY, v BLOB NOT NULL)
- BLOB comparison in SQLite is memcmp, so `ORDER BY k` is the unsigned,
  left-to-right byte order the prefix scanner relies on.
- Cursors stream `SELECT k, v FROM kv WHERE k >= ? ORDER BY k` row by row; the
  scanner decides where a prefix ends.

Read views:
- File databases: every view opens its own read-only connection (through a
  percent-encoded `file:` URI with `mode=ro`, so it can never create a file)
  and holds a deferred read transaction, so a view sees one consistent
  snapshot (WAL) and concurrent scans on different threads never share a
  connection.
- In-memory databases cannot be reopened, so views share the single
  connection; one SELECT is still a consistent read.

Pragmas tuned for scan-heavy workloads: WAL journal, NORMAL sync, mmap.
"""

import os
import sqlite3
from pathlib import Path
from typing import Optional, Union

from ..errors import DatabaseError, ReadOnlyStore
from ..logging import get_logger
from .kv import KV, Batch, Cursor, ReadView

log = get_logger(__name__)

MEMORY = ":memory:"

DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "temp_store": "MEMORY",
    "mmap_size": 256 * 1024 * 1024,  # 256 MiB
    "cache_size": -64 * 1024,  # negative = KiB; 64 MiB
}

_SEEK_SQL = "SELECT k, v FROM kv WHERE k >= ? ORDER BY k"
_UPSERT_SQL = "INSERT INTO kv(k, v) VALUES(?, ?) ON CONFLICT(k) DO UPDATE SET v=excluded.v"

PathLike = Union[str, bytes, "os.PathLike[str]", "os.PathLike[bytes]"]


def _apply_pragmas(conn: sqlite3.Connection, pragmas: Optional[dict] = None) -> None:
    p = dict(DEFAULT_PRAGMAS)
    if pragmas:
        p.update(pragmas)
    cur = conn.cursor()
    cur.execute("PRAGMA journal_mode=%s" % p["journal_mode"])
    cur.execute("PRAGMA synchronous=%s" % p["synchronous"])
    cur.execute("PRAGMA temp_store=%s" % p["temp_store"])
    cur.execute("PRAGMA mmap_size=%d" % int(p["mmap_size"]))
    cur.execute("PRAGMA cache_size=%d" % int(p["cache_size"]))
    cur.close()


def _migrate(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            k BLOB PRIMARY KEY,
            v BLOB NOT NULL
        )
        """
    )


def _connect(target: str, *, uri: bool) -> sqlite3.Connection:
    conn = sqlite3.connect(
        target,
        detect_types=0,
        isolation_level=None,  # autocommit; we BEGIN explicitly
        check_same_thread=False,  # views may be consumed on another thread
        uri=uri,
    )
    conn.text_factory = bytes
    return conn


def _readonly_uri(path: str) -> str:
    # as_uri() percent-encodes '#', '?' and '%' so they stay part of the file name.
    return Path(path).resolve().as_uri() + "?mode=ro"


def _normalize_path(path: PathLike) -> str:
    path_str = os.fsdecode(path)
    if path_str.startswith("sqlite:///"):
        path_str = path_str[len("sqlite:///") :]
    return path_str or MEMORY


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------


class SQLiteCursor(Cursor):
    """Forward cursor streaming one ordered SELECT."""

    __slots__ = ("_conn", "_stmt", "_row")

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._stmt: Optional[sqlite3.Cursor] = None
        self._row: Optional[tuple] = None

    def seek(self, key: bytes) -> None:
        self._release_stmt()
        self._stmt = self._conn.execute(_SEEK_SQL, (memoryview(key),))
        self._row = self._stmt.fetchone()

    def valid(self) -> bool:
        return self._row is not None

    def key(self) -> bytes:
        if self._row is None:
            raise DatabaseError("cursor is not positioned", retryable=False)
        return bytes(self._row[0])

    def value(self) -> bytes:
        if self._row is None:
            raise DatabaseError("cursor is not positioned", retryable=False)
        return bytes(self._row[1])

    def next(self) -> None:
        if self._stmt is None:
            return
        self._row = self._stmt.fetchone()

    def close(self) -> None:
        self._row = None
        self._release_stmt()

    def _release_stmt(self) -> None:
        stmt, self._stmt = self._stmt, None
        if stmt is not None:
            stmt.close()

    def __enter__(self) -> "SQLiteCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None


class SQLiteReadView(ReadView):
    """
    Read-only view. When `owns_conn` is set the view holds a private
    connection inside a deferred transaction and closes it on exit.
    """

    __slots__ = ("_conn", "_owns", "_closed")

    def __init__(self, conn: sqlite3.Connection, *, owns_conn: bool) -> None:
        self._conn = conn
        self._owns = owns_conn
        self._closed = False
        if owns_conn:
            conn.execute("BEGIN")
            # First read pins the WAL snapshot for the rest of the view.
            conn.execute("SELECT 1 FROM kv LIMIT 1").close()

    def cursor(self) -> SQLiteCursor:
        if self._closed:
            raise DatabaseError("read view is closed", retryable=False)
        return SQLiteCursor(self._conn)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns:
            try:
                self._conn.execute("ROLLBACK")
            finally:
                self._conn.close()

    def __enter__(self) -> "SQLiteReadView":
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None


# ---------------------------------------------------------------------------
# Write side
# ---------------------------------------------------------------------------


class SQLiteBatch(Batch):
    __slots__ = ("_conn", "_open")

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._open = False

    def __enter__(self) -> "SQLiteBatch":
        if self._open:
            raise RuntimeError("batch already open (nested batches not supported)")
        # BEGIN IMMEDIATE takes the write lock up front; readers continue under WAL.
        self._conn.execute("BEGIN IMMEDIATE")
        self._open = True
        return self

    def put(self, key: bytes, value: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._conn.execute(_UPSERT_SQL, (memoryview(key), memoryview(value)))

    def delete(self, key: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._conn.execute("DELETE FROM kv WHERE k = ?", (memoryview(key),))

    def commit(self) -> None:
        if not self._open:
            return
        self._conn.execute("COMMIT")
        self._open = False

    def rollback(self) -> None:
        if not self._open:
            return
        self._conn.execute("ROLLBACK")
        self._open = False

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self._open = False
        return None


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SQLiteKV(KV):
    """
    SQLite-backed store. Use `open_sqlite_kv(path)` to construct.

    `readonly=True` refuses every write with `ReadOnlyStore`.
    """

    __slots__ = ("_conn", "_path", "_readonly")

    def __init__(self, conn: sqlite3.Connection, path: str, *, readonly: bool = False) -> None:
        self._conn = conn
        self._path = path
        self._readonly = readonly

    @property
    def path(self) -> str:
        return self._path

    @property
    def readonly(self) -> bool:
        return self._readonly

    # --- ReadOnlyKV ---

    def get(self, key: bytes) -> Optional[bytes]:
        cur = self._conn.execute("SELECT v FROM kv WHERE k = ?", (memoryview(key),))
        row = cur.fetchone()
        cur.close()
        return bytes(row[0]) if row is not None else None

    def has(self, key: bytes) -> bool:
        cur = self._conn.execute("SELECT 1 FROM kv WHERE k = ? LIMIT 1", (memoryview(key),))
        row = cur.fetchone()
        cur.close()
        return row is not None

    def view(self) -> SQLiteReadView:
        if self._path == MEMORY:
            return SQLiteReadView(self._conn, owns_conn=False)
        conn = _connect(_readonly_uri(self._path), uri=True)
        try:
            return SQLiteReadView(conn, owns_conn=True)
        except sqlite3.Error:
            conn.close()
            raise

    def close(self) -> None:
        self._conn.close()

    # --- KV ---

    def put(self, key: bytes, value: bytes) -> None:
        self._check_writable("put")
        self._conn.execute(_UPSERT_SQL, (memoryview(key), memoryview(value)))

    def delete(self, key: bytes) -> None:
        self._check_writable("delete")
        self._conn.execute("DELETE FROM kv WHERE k = ?", (memoryview(key),))

    def batch(self) -> SQLiteBatch:
        self._check_writable("batch")
        return SQLiteBatch(self._conn)

    def _check_writable(self, op: str) -> None:
        if self._readonly:
            raise ReadOnlyStore(op, self._path)


def open_sqlite_kv(
    path: PathLike,
    *,
    pragmas: Optional[dict] = None,
    create: bool = True,
    readonly: bool = False,
) -> SQLiteKV:
    """
    Open (or create) a SQLite store at `path` (":memory:" for tests).

    - `create=False` raises DatabaseError if the file does not exist.
    - `readonly=True` opens the file read-only and refuses writes.
    """
    path_str = _normalize_path(path)
    exists = path_str == MEMORY or os.path.exists(path_str)
    if not exists and (readonly or not create):
        raise DatabaseError("SQLite store not found", retryable=False, path=path_str)

    try:
        if readonly and path_str != MEMORY:
            conn = _connect(_readonly_uri(path_str), uri=True)
            conn.execute("PRAGMA query_only=ON")
        else:
            conn = _connect(path_str, uri=False)
            _apply_pragmas(conn, pragmas)
            _migrate(conn)
    except sqlite3.Error as e:
        raise DatabaseError(f"cannot open SQLite store: {e}", retryable=False, path=path_str) from e

    log.debug("opened sqlite store", extra={"path": path_str, "readonly": readonly})
    return SQLiteKV(conn, path_str, readonly=readonly)


__all__ = [
    "SQLiteKV",
    "SQLiteBatch",
    "SQLiteReadView",
    "SQLiteCursor",
    "open_sqlite_kv",
]
