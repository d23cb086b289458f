from __future__ import annotations

import bisect
import os
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import pytest

from keyspace.db import open_kv, put_many
from keyspace.db.sqlite import SQLiteKV, open_sqlite_kv


@pytest.fixture(autouse=True)
def _clean_keyspace_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Tests must not see the developer's KEYSPACE_* environment."""
    for k in list(os.environ):
        if k.startswith("KEYSPACE_"):
            monkeypatch.delenv(k, raising=False)


@pytest.fixture
def mem_kv() -> Iterator[SQLiteKV]:
    kv = open_kv("memory://")
    try:
        yield kv  # type: ignore[misc]
    finally:
        kv.close()


# Keys straddling the 0x05 family: one just below, three inside, one just after.
NEIGHBOURHOOD: Dict[bytes, bytes] = {
    b"\x04\xff\xff": b"before",
    b"\x05": b"bare-prefix",
    b"\x05\x00\x01": b"a",
    b"\x05\xff\xff\xff": b"b",
    b"\x06": b"after",
    b"\x06\x00": b"after-2",
}


@pytest.fixture
def populated(mem_kv: SQLiteKV) -> SQLiteKV:
    put_many(mem_kv, NEIGHBOURHOOD.items())
    return mem_kv


@pytest.fixture
def file_db(tmp_path: Path) -> Path:
    """A closed SQLite file holding NEIGHBOURHOOD."""
    path = tmp_path / "keyspace.db"
    kv = open_sqlite_kv(path)
    put_many(kv, NEIGHBOURHOOD.items())
    kv.close()
    return path


# ------------------------------- fake store -----------------------------------


class _FakeCursor:
    def __init__(self, store: "FakeStore") -> None:
        self.store = store
        self.keys = sorted(store.data)
        self.pos = len(self.keys)
        self.closed = False

    def seek(self, key: bytes) -> None:
        self.pos = bisect.bisect_left(self.keys, key)

    def valid(self) -> bool:
        return self.pos < len(self.keys)

    def key(self) -> bytes:
        return self.keys[self.pos]

    def value(self) -> bytes:
        k = self.keys[self.pos]
        if k in self.store.fail_on:
            raise OSError("simulated read failure")
        return self.store.data[k]

    def next(self) -> None:
        self.pos += 1

    def close(self) -> None:
        self.closed = True
        if self.store.fail_close:
            raise RuntimeError("cursor close failed")


class _FakeView:
    def __init__(self, store: "FakeStore") -> None:
        self.store = store
        self.closed = False
        self.cursors: List[_FakeCursor] = []

    def cursor(self) -> _FakeCursor:
        c = _FakeCursor(self.store)
        self.cursors.append(c)
        return c

    def close(self) -> None:
        self.closed = True
        if self.store.fail_close:
            raise RuntimeError("view close failed")


class FakeStore:
    """In-memory ordered store with failure injection and release tracking."""

    def __init__(
        self,
        data: Dict[bytes, bytes],
        fail_on: Optional[set] = None,
        fail_close: bool = False,
        fail_view: bool = False,
    ) -> None:
        self.data = dict(data)
        self.fail_on = fail_on or set()
        self.fail_close = fail_close
        self.fail_view = fail_view
        self.views: List[_FakeView] = []
        self.closed = False

    def view(self) -> _FakeView:
        if self.fail_view:
            raise OSError("store handle is closed")
        v = _FakeView(self)
        self.views.append(v)
        return v

    def all_released(self) -> bool:
        return all(v.closed and all(c.closed for c in v.cursors) for v in self.views)

    def close(self) -> None:
        self.closed = True
