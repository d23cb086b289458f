"""
Prefix registry
===============

Materializes the static declaration table (`keyspace.schema.prefixes`) into
immutable `CollectionDescriptor` records and checks the invariants the prefix
scanner depends on:

- every prefix is non-empty and parses to concrete bytes;
- names are unique;
- prefixes are pairwise prefix-free: no prefix equals, or is a leading byte
  sequence of, another. Otherwise a scan over one collection would pick up
  another collection's keys.

Any violation is a construction-time defect: `build_registry()` raises a
`RegistryError` subclass and no partial table is ever returned.

The process-wide table is built once by `get_registry()` and shared read-only.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..errors import DeclarationError, PrefixCollisionError, UnknownCollection
from ..logging import get_logger
from .prefixes import DECLARATIONS, CollectionFlag, PrefixDeclaration

log = get_logger(__name__)

FORBIDDEN_SENTINEL = "-"
RESERVED_SENTINELS = ("", "[]")


@dataclass(frozen=True)
class CollectionDescriptor:
    """One logical collection: a unique name bound to a unique byte prefix."""

    name: str
    prefix: bytes
    flags: FrozenSet[CollectionFlag] = field(default_factory=frozenset)
    key_layout: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.prefix, bytes) or not self.prefix:
            raise DeclarationError(self.name, repr(self.prefix), "prefix must be non-empty bytes")

    @property
    def prefix_id(self) -> int:
        """Leading tag byte."""
        return self.prefix[0]

    def has_flag(self, flag: CollectionFlag | str) -> bool:
        return CollectionFlag(flag) in self.flags

    def owns(self, key: bytes) -> bool:
        """True if `key` lives in this collection."""
        return key[: len(self.prefix)] == self.prefix

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "prefix": self.prefix.hex(),
            "prefix_id": list(self.prefix),
            "flags": sorted(f.value for f in self.flags),
            "key_layout": self.key_layout,
        }


def parse_prefix_id(name: str, declaration: str) -> bytes:
    """
    Resolve a `prefix_id` declaration (JSON array of byte values) to bytes.

    Returns b"" for the reserved sentinels; raises DeclarationError for the
    forbidden sentinel and anything that is not an array of 0..255 integers.
    """
    if declaration == FORBIDDEN_SENTINEL:
        raise DeclarationError(name, declaration, "prefix_id cannot be empty")
    if declaration in RESERVED_SENTINELS:
        return b""
    try:
        raw = json.loads(declaration)
    except (json.JSONDecodeError, TypeError) as e:
        raise DeclarationError(name, str(declaration), f"not JSON: {e}") from e
    if not isinstance(raw, list):
        raise DeclarationError(name, declaration, "expected a JSON array of byte values")
    for b in raw:
        # bool is an int subclass; true/false are not byte values.
        if isinstance(b, bool) or not isinstance(b, int) or not 0 <= b <= 0xFF:
            raise DeclarationError(name, declaration, f"{b!r} is not a byte value")
    return bytes(raw)


def check_prefix_free(descriptors: Sequence[CollectionDescriptor]) -> None:
    """
    Raise PrefixCollisionError if two descriptors share or nest prefixes.

    After sorting, if A is a prefix of C then every B between them also starts
    with A, so comparing neighbours finds every violation.
    """
    ordered = sorted(descriptors, key=lambda d: d.prefix)
    for a, b in zip(ordered, ordered[1:]):
        if b.prefix[: len(a.prefix)] == a.prefix:
            raise PrefixCollisionError(a.name, b.name, a.prefix, b.prefix)


def build_registry(
    declarations: Iterable[PrefixDeclaration] = DECLARATIONS,
) -> List[CollectionDescriptor]:
    """
    Resolve declarations to descriptors, in declaration order.

    Reserved declarations (``""`` / ``"[]"``) produce no descriptor.
    """
    descriptors: List[CollectionDescriptor] = []
    seen: set[str] = set()
    for decl in declarations:
        if decl.name in seen:
            raise DeclarationError(decl.name, decl.prefix_id, "duplicate collection name")
        seen.add(decl.name)
        prefix = parse_prefix_id(decl.name, decl.prefix_id)
        if not prefix:
            log.debug("reserved collection skipped", extra={"collection": decl.name})
            continue
        descriptors.append(
            CollectionDescriptor(
                name=decl.name,
                prefix=prefix,
                flags=frozenset(CollectionFlag(f) for f in decl.flags),
                key_layout=decl.key_layout,
            )
        )
    check_prefix_free(descriptors)
    return descriptors


class PrefixRegistry:
    """Immutable, queryable view over the built descriptor list."""

    __slots__ = ("_descriptors", "_by_name", "_by_prefix", "_reserved")

    def __init__(
        self,
        descriptors: Sequence[CollectionDescriptor],
        reserved: Iterable[str] = (),
    ) -> None:
        check_prefix_free(descriptors)
        self._descriptors: Tuple[CollectionDescriptor, ...] = tuple(descriptors)
        self._by_name: Dict[str, CollectionDescriptor] = {}
        for d in self._descriptors:
            if d.name in self._by_name:
                raise DeclarationError(d.name, d.prefix.hex(), "duplicate collection name")
            self._by_name[d.name] = d
        self._by_prefix = {d.prefix: d for d in self._descriptors}
        self._reserved: Tuple[str, ...] = tuple(reserved)

    @classmethod
    def from_declarations(
        cls, declarations: Iterable[PrefixDeclaration] = DECLARATIONS
    ) -> "PrefixRegistry":
        decls = tuple(declarations)
        descriptors = build_registry(decls)
        built = {d.name for d in descriptors}
        return cls(descriptors, reserved=[d.name for d in decls if d.name not in built])

    # --- sequence-ish surface ---

    def __iter__(self) -> Iterator[CollectionDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    @property
    def descriptors(self) -> Tuple[CollectionDescriptor, ...]:
        return self._descriptors

    @property
    def reserved(self) -> Tuple[str, ...]:
        """Names declared without a prefix."""
        return self._reserved

    def names(self) -> List[str]:
        return [d.name for d in self._descriptors]

    # --- lookups ---

    def get(self, name: str) -> CollectionDescriptor:
        try:
            return self._by_name[name]
        except KeyError:
            raise UnknownCollection(name) from None

    def by_prefix(self, prefix: bytes) -> Optional[CollectionDescriptor]:
        return self._by_prefix.get(bytes(prefix))

    def descriptor_for_key(self, key: bytes) -> Optional[CollectionDescriptor]:
        """The collection owning `key`; unique because prefixes are prefix-free."""
        key = bytes(key)
        for n in sorted({len(p) for p in self._by_prefix}):
            if len(key) < n:
                break
            d = self._by_prefix.get(key[:n])
            if d is not None:
                return d
        return None

    def with_flag(self, flag: CollectionFlag | str) -> List[CollectionDescriptor]:
        f = CollectionFlag(flag)
        return [d for d in self._descriptors if f in d.flags]

    def select(
        self,
        names: Sequence[str] = (),
        flag: Optional[CollectionFlag | str] = None,
    ) -> List[CollectionDescriptor]:
        """Named collections (in the given order), else by flag, else all."""
        if names:
            return [self.get(n) for n in names]
        if flag is not None:
            return self.with_flag(flag)
        return list(self._descriptors)

    # --- tag bookkeeping ---

    def next_prefix_id(self) -> int:
        """One past the largest leading tag in use."""
        return max((d.prefix_id for d in self._descriptors), default=-1) + 1

    def unused_prefix_ids(self) -> List[int]:
        """Tags below next_prefix_id() that no collection uses."""
        used = {d.prefix_id for d in self._descriptors}
        return [i for i in range(self.next_prefix_id()) if i not in used]


@lru_cache(maxsize=1)
def get_registry() -> PrefixRegistry:
    """Process-wide registry, built once from the static table."""
    registry = PrefixRegistry.from_declarations(DECLARATIONS)
    log.debug("prefix registry built", extra={"collections": len(registry)})
    return registry


__all__ = [
    "CollectionDescriptor",
    "PrefixRegistry",
    "parse_prefix_id",
    "check_prefix_free",
    "build_registry",
    "get_registry",
]
