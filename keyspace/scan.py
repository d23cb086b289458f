"""
keyspace.scan
=============

Prefix range scanner: enumerate every (key, value) pair whose key starts with
a given prefix, in ascending key order.

Algorithm (identical for every backend)::

    cursor.seek(prefix)                  # smallest key >= prefix
    while cursor.valid() and key[:len(prefix)] == prefix:
        yield copy(key), copy(value)
        cursor.next()

Keys are compared as unsigned bytes, left to right, so the first key that no
longer carries the prefix ends the scan: everything after it sorts after the
whole prefix family.

Guarantees
----------
- Read-only: each `scan_by_prefix` call opens its own read view and never
  writes. Calls are independent; no cursor state survives between them.
- Returned keys/values are `bytes` copies the caller may keep after the view
  is closed.
- Cursor and view are released on every exit path, including a consumer that
  stops iterating early (generator `close()`), and errors. A failing release
  is logged and never hides the error that caused the unwinding.
- Store failures surface as `ScanError`, never as an empty result.
"""

from __future__ import annotations

import itertools
from contextlib import closing
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from .db.kv import Cursor, ReadOnlyKV, ReadView
from .errors import ScanError
from .logging import get_logger
from .schema.registry import CollectionDescriptor

log = get_logger(__name__)

Pair = Tuple[bytes, bytes]


@dataclass(frozen=True)
class ScanResult:
    """All pairs found under one prefix (all-or-nothing)."""

    prefix: bytes
    pairs: Tuple[Pair, ...]
    truncated: bool = False

    @property
    def keys(self) -> Tuple[bytes, ...]:
        return tuple(k for k, _ in self.pairs)

    @property
    def values(self) -> Tuple[bytes, ...]:
        return tuple(v for _, v in self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)

    def __iter__(self) -> Iterator[Pair]:
        return iter(self.pairs)


@dataclass(frozen=True)
class CollectionScan:
    """Outcome of scanning one collection: a result or the error that aborted it."""

    descriptor: CollectionDescriptor
    result: Optional[ScanResult] = None
    error: Optional[ScanError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


def _require_prefix(prefix: bytes) -> bytes:
    if not isinstance(prefix, (bytes, bytearray, memoryview)):
        raise TypeError(f"prefix must be bytes, got {type(prefix).__name__}")
    prefix = bytes(prefix)
    if not prefix:
        raise ValueError("prefix must be non-empty")
    return prefix


def _require_limit(limit: Optional[int]) -> Optional[int]:
    if limit is not None and limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    return limit


def _as_scan_error(exc: Exception, prefix: bytes, scanned: int) -> ScanError:
    # The returned error already carries `exc` as __cause__.
    if isinstance(exc, ScanError):
        return exc
    err = ScanError(prefix, scanned, reason=f"{type(exc).__name__}: {exc}")
    return err.with_cause(exc)  # type: ignore[return-value]


def _release(resource: object, what: str, prefix: bytes) -> None:
    try:
        resource.close()  # type: ignore[attr-defined]
    except Exception:
        log.warning(
            "failed to release %s",
            what,
            exc_info=True,
            extra={"prefix": prefix.hex()},
        )


def _scan_cursor(view: ReadView, prefix: bytes) -> Iterator[Pair]:
    scanned = 0
    try:
        cursor: Cursor = view.cursor()
    except Exception as e:
        raise _as_scan_error(e, prefix, scanned)
    try:
        n = len(prefix)
        try:
            cursor.seek(prefix)
            valid = cursor.valid()
        except Exception as e:
            raise _as_scan_error(e, prefix, scanned)
        while valid:
            try:
                key = bytes(cursor.key())
                if key[:n] != prefix:
                    break
                value = bytes(cursor.value())
            except Exception as e:
                raise _as_scan_error(e, prefix, scanned)
            scanned += 1
            yield key, value
            try:
                cursor.next()
                valid = cursor.valid()
            except Exception as e:
                raise _as_scan_error(e, prefix, scanned)
    finally:
        _release(cursor, "cursor", prefix)


def _scan_store(store: ReadOnlyKV, prefix: bytes) -> Iterator[Pair]:
    try:
        view = store.view()
    except Exception as e:
        raise _as_scan_error(e, prefix, 0)
    try:
        yield from _scan_cursor(view, prefix)
    finally:
        _release(view, "read view", prefix)


def _collect(pairs: Iterator[Pair], prefix: bytes, limit: Optional[int]) -> ScanResult:
    with closing(pairs):  # type: ignore[type-var]
        if limit is None:
            found = tuple(pairs)
            truncated = False
        else:
            head = tuple(itertools.islice(pairs, limit + 1))
            found, truncated = head[:limit], len(head) > limit
    log.debug(
        "prefix scan finished",
        extra={"prefix": prefix.hex(), "count": len(found), "truncated": truncated},
    )
    return ScanResult(prefix=prefix, pairs=found, truncated=truncated)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def scan_by_prefix(store: ReadOnlyKV, prefix: bytes) -> Iterator[Pair]:
    """
    Lazily yield (key, value) for every key starting with `prefix`, ascending.

    Opens a private read view on first iteration; the view and cursor are
    released when the iterator is exhausted, closed, or fails.

    Raises:
        ValueError / TypeError eagerly for an empty or non-bytes prefix.
        ScanError while iterating, if the store fails.
    """
    return _scan_store(store, _require_prefix(prefix))


def scan_in_view(view: ReadView, prefix: bytes) -> Iterator[Pair]:
    """
    Same as `scan_by_prefix` but on a caller-owned view, so several prefixes
    can be read from one snapshot. Only the cursor is released here.
    """
    return _scan_cursor(view, _require_prefix(prefix))


def enumerate_prefix(store: ReadOnlyKV, prefix: bytes, limit: Optional[int] = None) -> ScanResult:
    """
    Collect every pair under `prefix` into a ScanResult.

    All-or-nothing: on a store failure the pairs gathered so far are dropped
    and ScanError propagates. With `limit`, at most `limit` pairs are kept and
    `truncated` reports whether more existed. A negative `limit` raises
    ValueError before the store is touched.
    """
    prefix, limit = _require_prefix(prefix), _require_limit(limit)
    return _collect(_scan_store(store, prefix), prefix, limit)


def enumerate_in_view(view: ReadView, prefix: bytes, limit: Optional[int] = None) -> ScanResult:
    """`enumerate_prefix` on a caller-owned view."""
    prefix, limit = _require_prefix(prefix), _require_limit(limit)
    return _collect(_scan_cursor(view, prefix), prefix, limit)


def count_by_prefix(store: ReadOnlyKV, prefix: bytes) -> int:
    """Number of keys under `prefix`."""
    with closing(scan_by_prefix(store, prefix)) as pairs:  # type: ignore[type-var]
        return sum(1 for _ in pairs)


def scan_collections(
    store: ReadOnlyKV,
    descriptors: Iterable[CollectionDescriptor],
    limit: Optional[int] = None,
) -> Iterator[CollectionScan]:
    """
    Scan several collections from one read view, in the given order.

    A failure while scanning one collection is reported in its CollectionScan
    and the next collection is still attempted. Failing to open the view at
    all raises ScanError. A negative `limit` raises ValueError immediately.
    """
    return _scan_collections(store, list(descriptors), _require_limit(limit))


def _scan_collections(
    store: ReadOnlyKV,
    descriptors: List[CollectionDescriptor],
    limit: Optional[int],
) -> Iterator[CollectionScan]:
    try:
        view = store.view()
    except Exception as e:
        first = descriptors[0].prefix if descriptors else b""
        raise _as_scan_error(e, first, 0)
    try:
        for d in descriptors:
            try:
                result = enumerate_in_view(view, d.prefix, limit=limit)
            except ScanError as e:
                log.warning(
                    "collection scan failed",
                    extra={"collection": d.name, "prefix": d.prefix.hex(), "error": e.message},
                )
                yield CollectionScan(descriptor=d, error=e.with_context(collection=d.name))  # type: ignore[arg-type]
                continue
            yield CollectionScan(descriptor=d, result=result)
    finally:
        _release(view, "read view", b"")


__all__ = [
    "Pair",
    "ScanResult",
    "CollectionScan",
    "scan_by_prefix",
    "scan_in_view",
    "enumerate_prefix",
    "enumerate_in_view",
    "count_by_prefix",
    "scan_collections",
]
