"""
Version helpers for the keyspace package.

- Exposes __version__ (PEP 440 when installed from a wheel).
- Best-effort detection from:
    1) KEYSPACE_VERSION env var (authoritative override)
    2) installed distribution metadata for "deso-keyspace"
    3) fallback DEFAULT_VERSION

No external dependencies; safe to import very early.
"""

from __future__ import annotations

import os
from importlib import metadata
from typing import Optional

DEFAULT_VERSION = "0.1.0"
DIST_NAME = "deso-keyspace"


def _from_metadata() -> Optional[str]:
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        return None


def resolve_version() -> str:
    """
    Determine the version string in priority:
      1) KEYSPACE_VERSION environment variable (verbatim)
      2) package metadata
      3) DEFAULT_VERSION
    """
    env = os.getenv("KEYSPACE_VERSION")
    if env:
        return env.strip()
    return _from_metadata() or DEFAULT_VERSION


__version__ = resolve_version()

if __name__ == "__main__":
    print(__version__)
