"""
keyspace.errors
---------------

A small, consistent error system for the registry, the scanner and the store
adapters.

Design goals
------------
- One root `KeyspaceError` with machine-friendly `code` and optional `data`.
- Concrete subclasses per domain (config, registry construction, store I/O).
- Safe JSON representation (`to_dict`) suitable for logs and diagnostics.
- Clear separation of *retryable* vs *permanent* failures: registry errors are
  construction-time defects and never retryable; scan errors are.

This module uses only stdlib to avoid boot-time dependency cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

# ---------------------------------------------------------------------------
# Error codes & classes
# ---------------------------------------------------------------------------


class Severity(IntEnum):
    """Optional severity hint for operators."""

    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


class KeyspaceErrorCode(str, Enum):
    # Generic
    INTERNAL = "KEYSPACE/INTERNAL"
    DEP_MISSING = "KEYSPACE/DEPENDENCY_MISSING"

    # Config / environment / startup
    CONFIG = "KEYSPACE/CONFIG"

    # Registry construction
    DECLARATION = "KEYSPACE/DECLARATION"
    PREFIX_COLLISION = "KEYSPACE/PREFIX_COLLISION"
    UNKNOWN_COLLECTION = "KEYSPACE/UNKNOWN_COLLECTION"

    # DB / storage
    DB = "KEYSPACE/DB"
    DB_READONLY = "KEYSPACE/DB_READONLY"
    SCAN = "KEYSPACE/SCAN"


@dataclass(eq=False)
class KeyspaceError(Exception):
    """
    Root error for keyspace components.

    Attributes
    ----------
    code: str
        Machine-stable error code (see KeyspaceErrorCode).
    message: str
        Human hint suitable for logs.
    data: dict
        Optional machine data (prefixes, names, counts). JSON-serializable.
    severity: Severity
        Optional severity hint (default ERROR).
    retryable: bool
        Whether the operation may succeed on retry without changing inputs.
    cause: Optional[BaseException]
        Wrapped original exception; not included in equality comparison.
    """

    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    severity: Severity = Severity.ERROR
    retryable: bool = False
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        super().__init__(f"{self.code}: {self.message}")
        if self.cause is not None:
            self.__cause__ = self.cause

    # ---------------- Public API ----------------

    def with_context(self, **ctx: Any) -> "KeyspaceError":
        """Return a *new* error with extra context merged (does not mutate)."""
        d = dict(self.data)
        for k, v in ctx.items():
            d[k] = _coerce_json(v)
        return _clone(self, data=d)

    def with_cause(self, exc: BaseException) -> "KeyspaceError":
        """Attach/replace the causal exception (returns a new instance)."""
        return _clone(self, cause=exc)

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """JSON-safe shape suitable for logs."""
        out = {
            "code": str(getattr(self.code, "value", self.code)),
            "message": self.message,
            "data": _coerce_json(self.data),
            "severity": int(self.severity),
            "retryable": self.retryable,
        }
        if include_cause and self.cause is not None:
            out["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return out

    def __str__(self) -> str:  # pragma: no cover - human formatting
        code = getattr(self.code, "value", self.code)
        parts = [f"{code}: {self.message}"]
        if self.data:
            preview = ", ".join(f"{k}={_preview(v)}" for k, v in self.data.items())
            parts.append(f"[{preview}]")
        return " ".join(parts)


def _clone(err: KeyspaceError, **changes: Any) -> KeyspaceError:
    # Subclasses have bespoke __init__ signatures; bypass them and copy fields.
    new = Exception.__new__(type(err))
    for name in ("code", "message", "data", "severity", "retryable", "cause"):
        setattr(new, name, changes.get(name, getattr(err, name)))
    KeyspaceError.__post_init__(new)
    return new


class InternalError(KeyspaceError):
    def __init__(self, message="internal error", **data: Any) -> None:
        super().__init__(
            code=KeyspaceErrorCode.INTERNAL, message=message, data=_jsonmap(data)
        )


class DependencyMissing(KeyspaceError):
    def __init__(self, package: str, hint: str = "") -> None:
        msg = f"missing dependency: {package}"
        if hint:
            msg += f" ({hint})"
        super().__init__(
            code=KeyspaceErrorCode.DEP_MISSING,
            message=msg,
            data={"package": package, "hint": hint},
            retryable=False,
        )


class ConfigError(KeyspaceError):
    def __init__(self, message="invalid configuration", **data: Any) -> None:
        super().__init__(
            code=KeyspaceErrorCode.CONFIG,
            message=message,
            data=_jsonmap(data),
            retryable=False,
        )


class RegistryError(KeyspaceError):
    """Base for construction-time registry defects. Never retryable."""

    def __init__(
        self,
        message="invalid prefix registry",
        code: str = KeyspaceErrorCode.DECLARATION,
        **data: Any,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            data=_jsonmap(data),
            severity=Severity.CRITICAL,
            retryable=False,
        )


class DeclarationError(RegistryError):
    def __init__(self, name: str, declaration: str, reason: str) -> None:
        super().__init__(
            f"bad prefix declaration for {name}: {reason}",
            code=KeyspaceErrorCode.DECLARATION,
            name=name,
            declaration=declaration,
            reason=reason,
        )


class PrefixCollisionError(RegistryError):
    def __init__(self, first: str, second: str, first_prefix: bytes, second_prefix: bytes) -> None:
        kind = "duplicate" if first_prefix == second_prefix else "nested"
        super().__init__(
            f"{kind} prefix: {first} and {second}",
            code=KeyspaceErrorCode.PREFIX_COLLISION,
            first=first,
            second=second,
            first_prefix=first_prefix,
            second_prefix=second_prefix,
            kind=kind,
        )


class UnknownCollection(RegistryError):
    def __init__(self, name: str) -> None:
        super().__init__(
            f"unknown collection: {name}",
            code=KeyspaceErrorCode.UNKNOWN_COLLECTION,
            name=name,
        )
        self.severity = Severity.ERROR


class DatabaseError(KeyspaceError):
    def __init__(
        self, message="database error", retryable: bool = True, **data: Any
    ) -> None:
        super().__init__(
            code=KeyspaceErrorCode.DB,
            message=message,
            data=_jsonmap(data),
            retryable=retryable,
        )


class ReadOnlyStore(DatabaseError):
    def __init__(self, op: str, path: str = "") -> None:
        super().__init__(message="store is read-only", retryable=False, op=op, path=path)
        self.code = KeyspaceErrorCode.DB_READONLY


class ScanError(DatabaseError):
    """A store failure surfaced while enumerating one prefix."""

    def __init__(self, prefix: bytes, scanned: int, reason: str = "") -> None:
        super().__init__(
            message=f"prefix scan aborted: {reason}" if reason else "prefix scan aborted",
            retryable=True,
            prefix=prefix,
            scanned=scanned,
        )
        self.code = KeyspaceErrorCode.SCAN


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

T = TypeVar("T", bound=KeyspaceError)


def wrap(exc: BaseException, *, as_: Type[T] = InternalError, **ctx: Any) -> T:
    """
    Wrap any exception into a KeyspaceError subclass, attaching context.
    If `exc` is already a KeyspaceError, returns a context-enriched copy.
    """
    if isinstance(exc, KeyspaceError):
        return exc.with_context(**ctx)  # type: ignore[return-value]
    err = as_("wrapped exception", **ctx)  # type: ignore[call-arg]
    return err.with_cause(exc)  # type: ignore[return-value]


def _jsonmap(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: _coerce_json(v) for k, v in data.items()}


def _coerce_json(v: Any) -> Any:
    # Keep JSON primitives; stringify the rest; hex-encode bytes.
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (bytes, bytearray, memoryview)):
        return bytes(v).hex()
    if isinstance(v, (list, tuple)):
        return [_coerce_json(i) for i in v]
    if isinstance(v, dict):
        return {str(k): _coerce_json(i) for k, i in v.items()}
    return str(v)


def _preview(v: Any, limit: int = 96) -> str:
    s = str(_coerce_json(v))
    return s if len(s) <= limit else s[:limit] + "…"


__all__ = [
    "Severity",
    "KeyspaceErrorCode",
    "KeyspaceError",
    "InternalError",
    "DependencyMissing",
    "ConfigError",
    "RegistryError",
    "DeclarationError",
    "PrefixCollisionError",
    "UnknownCollection",
    "DatabaseError",
    "ReadOnlyStore",
    "ScanError",
    "wrap",
]
