from __future__ import annotations

import logging

import pytest

from keyspace.db import open_kv, put_many
from keyspace.errors import KeyspaceErrorCode, ScanError
from keyspace.scan import (
    ScanResult,
    count_by_prefix,
    enumerate_in_view,
    enumerate_prefix,
    scan_by_prefix,
    scan_collections,
    scan_in_view,
)
from keyspace.schema import CollectionDescriptor, PrefixDeclaration, PrefixRegistry

from .conftest import FakeStore, NEIGHBOURHOOD

# ------------------------------- completeness ---------------------------------


def test_scan_returns_only_prefix_family_in_order(populated):
    pairs = list(scan_by_prefix(populated, b"\x05"))
    assert pairs == [
        (b"\x05", b"bare-prefix"),
        (b"\x05\x00\x01", b"a"),
        (b"\x05\xff\xff\xff", b"b"),
    ]


def test_completeness_against_disjoint_family(mem_kv):
    p_keys = [b"\x10" + i.to_bytes(2, "big") for i in (300, 2, 17, 0, 65535)]
    q_keys = [b"\x11" + i.to_bytes(2, "big") for i in range(5)]
    put_many(mem_kv, [(k, b"p" + k) for k in p_keys] + [(k, b"q") for k in q_keys])

    res = enumerate_prefix(mem_kv, b"\x10")
    assert res.keys == tuple(sorted(p_keys))
    assert res.values == tuple(b"p" + k for k in sorted(p_keys))
    assert not any(k.startswith(b"\x11") for k in res.keys)
    assert len(res) == 5 and not res.truncated


def test_empty_result_is_not_an_error(populated):
    assert list(scan_by_prefix(populated, b"\x42")) == []
    res = enumerate_prefix(populated, b"\x42")
    assert isinstance(res, ScanResult)
    assert len(res) == 0
    assert count_by_prefix(populated, b"\x42") == 0


def test_empty_store(mem_kv):
    assert enumerate_prefix(mem_kv, b"\x00").pairs == ()


def test_repeated_scans_are_identical(populated):
    first = enumerate_prefix(populated, b"\x05")
    second = enumerate_prefix(populated, b"\x05")
    assert first == second
    assert first.pairs == tuple(scan_by_prefix(populated, b"\x05"))


# ------------------------------- boundaries -----------------------------------


def test_boundary_precision(mem_kv):
    p = b"\x07\x01"
    put_many(mem_kv, [(p + b"\x00", b"1"), (p, b"2"), (b"\x07\x02\x00", b"3")])
    assert [k for k, _ in scan_by_prefix(mem_kv, p)] == [p, p + b"\x00"]


def test_boundary_at_ff(mem_kv):
    put_many(mem_kv, [(b"\xfe\xff", b"x"), (b"\xff", b"a"), (b"\xff\xff\xff", b"b")])
    assert [k for k, _ in scan_by_prefix(mem_kv, b"\xff")] == [b"\xff", b"\xff\xff\xff"]
    assert [k for k, _ in scan_by_prefix(mem_kv, b"\xff\xff")] == [b"\xff\xff\xff"]


def test_multi_byte_prefix_excludes_siblings(populated):
    assert [k for k, _ in scan_by_prefix(populated, b"\x05\x00")] == [b"\x05\x00\x01"]


@pytest.mark.parametrize("bad", [b"", bytearray()])
def test_empty_prefix_rejected_eagerly(populated, bad):
    with pytest.raises(ValueError):
        scan_by_prefix(populated, bad)
    with pytest.raises(ValueError):
        enumerate_prefix(populated, bad)


def test_non_bytes_prefix_rejected(populated):
    with pytest.raises(TypeError):
        scan_by_prefix(populated, "05")  # type: ignore[arg-type]


# ------------------------------- copies ---------------------------------------


def test_results_are_bytes_and_outlive_the_store():
    kv = open_kv("memory://")
    put_many(kv, [(b"\x01a", b"one"), (b"\x01b", b"two")])
    res = enumerate_prefix(kv, bytearray(b"\x01"))
    kv.close()
    assert res.prefix == b"\x01"
    for k, v in res:
        assert type(k) is bytes and type(v) is bytes
    assert res.values == (b"one", b"two")


# ------------------------------- failures -------------------------------------


def test_read_failure_surfaces_as_scan_error():
    store = FakeStore(NEIGHBOURHOOD, fail_on={b"\x05\x00\x01"})
    with pytest.raises(ScanError) as ei:
        enumerate_prefix(store, b"\x05")
    err = ei.value
    assert err.code == KeyspaceErrorCode.SCAN
    assert err.retryable is True
    assert err.data["prefix"] == "05"
    assert err.data["scanned"] == 1
    assert isinstance(err.__cause__, OSError)
    assert store.all_released()


def test_lazy_scan_yields_then_fails():
    store = FakeStore(NEIGHBOURHOOD, fail_on={b"\x05\xff\xff\xff"})
    it = scan_by_prefix(store, b"\x05")
    assert next(it) == (b"\x05", b"bare-prefix")
    assert next(it)[0] == b"\x05\x00\x01"
    with pytest.raises(ScanError):
        next(it)
    assert store.all_released()


def test_failure_outside_the_prefix_is_never_read():
    store = FakeStore(NEIGHBOURHOOD, fail_on={b"\x06", b"\x04\xff\xff"})
    assert len(enumerate_prefix(store, b"\x05")) == 3


def test_view_open_failure_is_a_scan_error():
    store = FakeStore({}, fail_view=True)
    with pytest.raises(ScanError) as ei:
        enumerate_prefix(store, b"\x05")
    assert ei.value.data["scanned"] == 0


def test_release_on_success_and_early_close():
    store = FakeStore(NEIGHBOURHOOD)
    enumerate_prefix(store, b"\x05")
    assert store.all_released()

    it = scan_by_prefix(store, b"\x05")
    next(it)
    assert not store.views[-1].closed
    it.close()
    assert store.all_released()


def test_limit_stops_early_and_releases():
    store = FakeStore(NEIGHBOURHOOD)
    res = enumerate_prefix(store, b"\x05", limit=2)
    assert len(res) == 2 and res.truncated
    assert enumerate_prefix(store, b"\x05", limit=3).truncated is False
    assert store.all_released()


def test_limit_zero_reports_truncation_only():
    res = enumerate_prefix(FakeStore(NEIGHBOURHOOD), b"\x05", limit=0)
    assert res.pairs == () and res.truncated


@pytest.mark.parametrize("limit", [-1, -2])
def test_negative_limit_rejected_before_opening_a_view(limit):
    store = FakeStore(NEIGHBOURHOOD)
    with pytest.raises(ValueError, match="limit"):
        enumerate_prefix(store, b"\x05", limit=limit)
    view = store.view()
    with pytest.raises(ValueError, match="limit"):
        enumerate_in_view(view, b"\x05", limit=limit)
    assert view.cursors == []
    view.close()
    with pytest.raises(ValueError, match="limit"):
        scan_collections(store, [CollectionDescriptor("Fives", b"\x05")], limit=limit)
    assert len(store.views) == 1


def test_close_error_does_not_mask_read_error(caplog):
    store = FakeStore(NEIGHBOURHOOD, fail_on={b"\x05"}, fail_close=True)
    with caplog.at_level(logging.WARNING, logger="keyspace.scan"):
        with pytest.raises(ScanError) as ei:
            enumerate_prefix(store, b"\x05")
    assert isinstance(ei.value.__cause__, OSError)
    assert "failed to release cursor" in caplog.text
    assert "failed to release read view" in caplog.text


def test_close_error_after_success_is_only_logged(caplog):
    store = FakeStore(NEIGHBOURHOOD, fail_close=True)
    with caplog.at_level(logging.WARNING, logger="keyspace.scan"):
        assert count_by_prefix(store, b"\x05") == 3
    assert "failed to release" in caplog.text


# ------------------------------- shared views ---------------------------------


def test_scan_in_view_leaves_view_open():
    store = FakeStore(NEIGHBOURHOOD)
    view = store.view()
    assert len(list(scan_in_view(view, b"\x05"))) == 3
    assert len(enumerate_in_view(view, b"\x06")) == 2
    assert not view.closed
    assert all(c.closed for c in view.cursors)
    view.close()


def test_scan_collections_uses_one_view_and_continues_after_failure():
    store = FakeStore(NEIGHBOURHOOD, fail_on={b"\x05\x00\x01"})
    descriptors = [
        CollectionDescriptor("Fives", b"\x05"),
        CollectionDescriptor("Sixes", b"\x06"),
        CollectionDescriptor("Nothing", b"\x30"),
    ]
    outcomes = list(scan_collections(store, descriptors))
    assert len(store.views) == 1
    assert store.all_released()

    fives, sixes, nothing = outcomes
    assert not fives.ok and fives.result is None
    assert fives.error.data["collection"] == "Fives"
    assert sixes.ok and sixes.result.keys == (b"\x06", b"\x06\x00")
    assert nothing.ok and len(nothing.result) == 0


def test_scan_collections_logs_failures_as_warnings(caplog):
    store = FakeStore(NEIGHBOURHOOD, fail_on={b"\x05"})
    with caplog.at_level(logging.DEBUG, logger="keyspace.scan"):
        outcomes = list(scan_collections(store, [CollectionDescriptor("Fives", b"\x05")]))
    assert not outcomes[0].ok
    failures = [r for r in caplog.records if r.getMessage() == "collection scan failed"]
    assert [r.levelno for r in failures] == [logging.WARNING]
    assert failures[0].collection == "Fives"
    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]


# ------------------------------- end to end -----------------------------------


def test_end_to_end_blocks_and_heights(mem_kv):
    reg = PrefixRegistry.from_declarations(
        [PrefixDeclaration("Blocks", "[0]"), PrefixDeclaration("Heights", "[1]")]
    )
    put_many(
        mem_kv,
        [(b"\x00\x01", b"blockA"), (b"\x00\x02", b"blockB"), (b"\x01\x01", b"h1")],
    )
    blocks = reg.get("Blocks")
    assert list(scan_by_prefix(mem_kv, blocks.prefix)) == [
        (b"\x00\x01", b"blockA"),
        (b"\x00\x02", b"blockB"),
    ]
    assert enumerate_prefix(mem_kv, reg.get("Heights").prefix).pairs == ((b"\x01\x01", b"h1"),)
