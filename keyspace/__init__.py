"""
keyspace package.

Partitions a single flat, lexicographically ordered key-value store into the
node's logical collections (blocks, UTXOs, profiles, social-graph edges,
messaging groups, order-book entries, ...) by short byte prefixes, and
enumerates one collection at a time with prefix-bounded range scans.

- keyspace.schema : declarative prefix table + immutable registry
- keyspace.scan   : prefix range scanner over read-only store views
- keyspace.db     : embedded ordered store backends (SQLite, optional RocksDB)

Only re-exports the version here to keep import-time side effects near zero.
"""

from __future__ import annotations

from .version import __version__


def get_version() -> str:
    """Return the version string for this package."""
    return __version__


__all__ = ["__version__", "get_version"]
