from __future__ import annotations

import json

from keyspace.errors import (
    ConfigError,
    DatabaseError,
    InternalError,
    KeyspaceError,
    KeyspaceErrorCode,
    PrefixCollisionError,
    ScanError,
    Severity,
    UnknownCollection,
    wrap,
)


def test_scan_error_shape():
    err = ScanError(b"\x05\x00", 3, reason="disk I/O error")
    assert isinstance(err, DatabaseError)
    assert err.code == KeyspaceErrorCode.SCAN
    assert err.retryable is True
    assert err.message == "prefix scan aborted: disk I/O error"
    assert err.data == {"prefix": "0500", "scanned": 3}
    assert "KEYSPACE/SCAN" in str(err)


def test_with_context_and_cause_return_copies():
    base = ScanError(b"\x05", 0)
    cause = OSError("gone")
    enriched = base.with_context(collection="PrefixUtxoKeyToUtxoEntry").with_cause(cause)
    assert type(enriched) is ScanError
    assert enriched is not base
    assert "collection" not in base.data
    assert enriched.data["collection"] == "PrefixUtxoKeyToUtxoEntry"
    assert enriched.__cause__ is cause
    d = enriched.to_dict(include_cause=True)
    assert d["cause"] == {"type": "OSError", "message": "gone"}
    json.dumps(d)


def test_registry_error_severity():
    collision = PrefixCollisionError("A", "B", b"\x01", b"\x01\x02")
    assert collision.severity == Severity.CRITICAL
    assert collision.data["kind"] == "nested"
    assert collision.data["second_prefix"] == "0102"
    assert UnknownCollection("X").severity == Severity.ERROR


def test_wrap():
    plain = wrap(ValueError("bad"), op="dump")
    assert isinstance(plain, InternalError)
    assert plain.data == {"op": "dump"}
    assert isinstance(plain.__cause__, ValueError)

    err = ConfigError("nope")
    again = wrap(err, path="/x")
    assert isinstance(again, ConfigError)
    assert again.data["path"] == "/x"


def test_is_exception():
    assert issubclass(KeyspaceError, Exception)
    try:
        raise DatabaseError("closed handle")
    except KeyspaceError as e:
        assert e.retryable is True
