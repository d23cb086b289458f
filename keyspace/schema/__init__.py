"""
keyspace.schema
===============

Static prefix declarations and the immutable registry built from them.

>>> from keyspace.schema import get_registry
>>> get_registry().get("PrefixUtxoKeyToUtxoEntry").prefix
b'\\x05'
"""

from __future__ import annotations

from .prefixes import DECLARATIONS, CollectionFlag, PrefixDeclaration
from .registry import (
    CollectionDescriptor,
    PrefixRegistry,
    build_registry,
    check_prefix_free,
    get_registry,
    parse_prefix_id,
)

__all__ = [
    "DECLARATIONS",
    "CollectionFlag",
    "PrefixDeclaration",
    "CollectionDescriptor",
    "PrefixRegistry",
    "build_registry",
    "check_prefix_free",
    "get_registry",
    "parse_prefix_id",
]
