"""
keyspace configuration loader.

Goals
-----
- Standard library only (tomllib / json / dataclasses).
- Layered config with clear precedence:
    1) Explicit overrides passed to `load()` (highest)
    2) Environment variables (KEYSPACE_*)
    3) Config file (TOML or JSON)
    4) Built-in defaults (lowest)
- Typed dataclasses with validation; failures raise `ConfigError`.

Sections
--------
  db:   { uri, readonly }
  log:  { level, format, file }
  dump: { show_values, value_preview, limit }
"""

from __future__ import annotations

import json
import os
import sys
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigError

# ------------------------------
# Defaults & helpers
# ------------------------------

DEFAULT_DB_URI = "sqlite:///keyspace.db"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_VALUE_PREVIEW = 64

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "WARN", "ERROR", "CRITICAL"}
_LOG_FORMATS = {"text", "json"}
_DB_SCHEMES = ("sqlite:///", "rocksdb:///", "memory://")


def _expand(p: str | Path) -> Path:
    return Path(p).expanduser().resolve()


def _parse_bool(v: str) -> bool:
    return v.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


_FALSE_WORDS = {"0", "false", "f", "no", "n", "off", ""}


def _as_bool(v: Any, name: str) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, int):
        return v != 0
    if isinstance(v, str):
        if _parse_bool(v):
            return True
        if v.strip().lower() in _FALSE_WORDS:
            return False
    raise ValueError(f"{name} must be a boolean, got {v!r}")


def _env_int(name: str) -> int:
    v = os.environ[name]
    try:
        return int(v, 0)
    except ValueError as e:
        raise ConfigError(f"{name} must be int", value=v) from e


# ------------------------------
# Typed configuration model
# ------------------------------


@dataclass
class DBConfig:
    uri: str = DEFAULT_DB_URI
    readonly: bool = True


@dataclass
class LogConfig:
    level: str = DEFAULT_LOG_LEVEL
    format: str = "text"
    file: Optional[str] = None


@dataclass
class DumpConfig:
    show_values: bool = False
    value_preview: int = DEFAULT_VALUE_PREVIEW
    limit: Optional[int] = None


@dataclass
class Config:
    db: DBConfig = field(default_factory=DBConfig)
    log: LogConfig = field(default_factory=LogConfig)
    dump: DumpConfig = field(default_factory=DumpConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ------------------------------
# File loader (TOML / JSON)
# ------------------------------


def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError("config file not found", path=str(path))
    suffix = path.suffix.lower()
    try:
        with path.open("rb") as f:
            if suffix in {".toml", ".tml"}:
                return tomllib.load(f)
            if suffix == ".json":
                return json.load(f)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise ConfigError(f"cannot parse config file: {e}", path=str(path)) from e
    raise ConfigError(f"unsupported config format: {suffix}; use .toml or .json", path=str(path))


def _merge_dict(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """Nested dict merge: values in b override a."""
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge_dict(out[k], v)
        else:
            out[k] = v
    return out


def _env_layer() -> Dict[str, Any]:
    env: Dict[str, Dict[str, Any]] = {"db": {}, "log": {}, "dump": {}}
    if "KEYSPACE_DB_URI" in os.environ:
        env["db"]["uri"] = os.environ["KEYSPACE_DB_URI"].strip()
    if "KEYSPACE_DB_READONLY" in os.environ:
        env["db"]["readonly"] = _parse_bool(os.environ["KEYSPACE_DB_READONLY"])
    if "KEYSPACE_LOG_LEVEL" in os.environ:
        env["log"]["level"] = os.environ["KEYSPACE_LOG_LEVEL"].strip()
    if "KEYSPACE_LOG_FORMAT" in os.environ:
        env["log"]["format"] = os.environ["KEYSPACE_LOG_FORMAT"].strip()
    if "KEYSPACE_LOG_FILE" in os.environ:
        env["log"]["file"] = os.environ["KEYSPACE_LOG_FILE"].strip() or None
    if "KEYSPACE_DUMP_VALUES" in os.environ:
        env["dump"]["show_values"] = _parse_bool(os.environ["KEYSPACE_DUMP_VALUES"])
    if "KEYSPACE_DUMP_PREVIEW" in os.environ:
        env["dump"]["value_preview"] = _env_int("KEYSPACE_DUMP_PREVIEW")
    if "KEYSPACE_DUMP_LIMIT" in os.environ:
        env["dump"]["limit"] = _env_int("KEYSPACE_DUMP_LIMIT")
    return {k: v for k, v in env.items() if v}


# ------------------------------
# Main loader
# ------------------------------


def load(config_file: Optional[str | Path] = None, **overrides: Any) -> Config:
    """
    Load the configuration.

    Precedence: overrides > env > file > defaults.

    overrides : Any
        Section dicts, e.g. load(db={"uri": "memory://"}, dump={"limit": 10})
    """
    base = Config().to_dict()

    if config_file:
        base = _merge_dict(base, _load_file(_expand(config_file)))

    base = _merge_dict(base, _env_layer())

    if overrides:
        base = _merge_dict(base, {k: v for k, v in overrides.items() if v is not None})

    unknown = set(base) - {"db", "log", "dump"}
    if unknown:
        raise ConfigError("unknown config sections", sections=sorted(unknown))

    try:
        cfg = Config(
            db=DBConfig(
                uri=str(base["db"]["uri"]),
                readonly=_as_bool(base["db"]["readonly"], "db.readonly"),
            ),
            log=LogConfig(
                level=str(base["log"]["level"]).upper(),
                format=str(base["log"]["format"]).lower(),
                file=base["log"].get("file") or None,
            ),
            dump=DumpConfig(
                show_values=_as_bool(base["dump"]["show_values"], "dump.show_values"),
                value_preview=int(base["dump"]["value_preview"]),
                limit=None if base["dump"].get("limit") is None else int(base["dump"]["limit"]),
            ),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"malformed configuration: {e}") from e

    _validate_config(cfg)
    return cfg


def _validate_config(cfg: Config) -> None:
    if not cfg.db.uri.startswith(_DB_SCHEMES):
        raise ConfigError(
            "unsupported DB URI scheme; use sqlite:///path, rocksdb:///dir or memory://",
            uri=cfg.db.uri,
        )
    if cfg.log.level not in _LOG_LEVELS:
        raise ConfigError("unknown log level", level=cfg.log.level)
    if cfg.log.format not in _LOG_FORMATS:
        raise ConfigError("unknown log format", format=cfg.log.format)
    if cfg.dump.value_preview < 0:
        raise ConfigError("value_preview must be >= 0", value_preview=cfg.dump.value_preview)
    if cfg.dump.limit is not None and cfg.dump.limit < 0:
        raise ConfigError("limit must be >= 0", limit=cfg.dump.limit)


# ------------------------------
# CLI helper
# ------------------------------


def main(argv: List[str] | None = None) -> int:
    """
    python -m keyspace.config                      # defaults/env; print JSON
    python -m keyspace.config path/to/config.toml  # load file; print JSON
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        cfg = load(argv[0] if argv else None)
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return 2
    print(json.dumps(cfg.to_dict(), indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
