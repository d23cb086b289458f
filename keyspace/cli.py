from __future__ import annotations

"""
keyspace.cli
------------

Diagnostic driver over the prefix registry and the range scanner.

Examples
--------
# Registry table (pretty) or JSON
python -m keyspace collections
python -m keyspace collections --flag core-state --json

# Dump two collections from one snapshot, value lengths only
python -m keyspace dump PrefixBlockHashToBlock PrefixUtxoKeyToUtxoEntry --db sqlite:///node.db

# Dump every transaction-index collection with value previews, 20 keys each
python -m keyspace dump --flag is-txindex --values --limit 20

# Which collection owns a raw key?
python -m keyspace classify 05deadbeef

Exit codes: 0 ok, 1 store/scan failure, 2 usage or configuration error.
"""

import json
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import Config, load
from .db import open_kv
from .errors import ConfigError, DatabaseError, DependencyMissing, ScanError, UnknownCollection
from .logging import bind, configure_from_config, get_logger, trace_scope
from .scan import ScanResult, scan_collections
from .schema import CollectionDescriptor, CollectionFlag, get_registry
from .version import __version__

log = get_logger("keyspace.cli")

app = typer.Typer(
    name="keyspace",
    add_completion=False,
    no_args_is_help=True,
    help="Inspect the node keyspace: collections, prefixes and prefix-bounded scans.",
)

# -------------------- utils --------------------


def _load_config(config: Optional[str], db: Optional[str] = None) -> Config:
    try:
        cfg = load(config, db={"uri": db} if db else None)
    except ConfigError as e:
        typer.secho(f"config error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(2)
    configure_from_config(cfg)
    return cfg


def _parse_flag(flag: Optional[str]) -> Optional[CollectionFlag]:
    if flag is None:
        return None
    try:
        return CollectionFlag(flag)
    except ValueError:
        choices = ", ".join(f.value for f in CollectionFlag)
        typer.secho(f"unknown flag {flag!r}; choose one of: {choices}", fg=typer.colors.RED, err=True)
        raise typer.Exit(2)


def _fmt_flags(d: CollectionDescriptor) -> str:
    return ",".join(sorted(f.value for f in d.flags)) or "-"


def _fmt_value(value: bytes, show_values: bool, preview: int) -> str:
    if not show_values:
        return f"len={len(value)}"
    head = value[:preview].hex()
    return head + "…" if len(value) > preview else head


def _print_result(res: ScanResult, show_values: bool, preview: int) -> None:
    for key, value in res:
        typer.echo(f"  {key.hex()}  {_fmt_value(value, show_values, preview)}")


# -------------------- commands --------------------


@app.command("collections")
def cmd_collections(
    flag: Optional[str] = typer.Option(None, "--flag", help="Only collections carrying this flag."),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """List the registered collections."""
    registry = get_registry()
    f = _parse_flag(flag)
    items = registry.with_flag(f) if f is not None else list(registry)

    if json_out:
        typer.echo(json.dumps([d.to_dict() for d in items], indent=2))
        return

    table = Table(title=f"keyspace {__version__}: {len(items)} collections")
    table.add_column("id", justify="right")
    table.add_column("prefix")
    table.add_column("name")
    table.add_column("flags")
    for d in sorted(items, key=lambda d: d.prefix):
        table.add_row(str(d.prefix_id), d.prefix.hex(), d.name, _fmt_flags(d))
    Console().print(table)


@app.command("dump")
def cmd_dump(
    names: List[str] = typer.Argument(None, help="Collection names to dump."),
    all_: bool = typer.Option(False, "--all", help="Dump every collection."),
    flag: Optional[str] = typer.Option(None, "--flag", help="Dump collections carrying this flag."),
    db: Optional[str] = typer.Option(None, "--db", help="Store URI (e.g. sqlite:///keyspace.db)."),
    values: Optional[bool] = typer.Option(None, "--values/--lengths", help="Print value previews or lengths."),
    limit: Optional[int] = typer.Option(None, "--limit", min=0, help="Max keys printed per collection."),
    config: Optional[str] = typer.Option(None, "--config", help="Config file (.toml or .json)."),
) -> None:
    """Enumerate the keys of the selected collections from one snapshot."""
    cfg = _load_config(config, db)
    registry = get_registry()
    f = _parse_flag(flag)
    if not names and not all_ and f is None:
        typer.secho("nothing selected: pass collection names, --flag or --all", fg=typer.colors.RED, err=True)
        raise typer.Exit(2)
    try:
        selected = registry.select(names or (), flag=f)
    except UnknownCollection as e:
        typer.secho(str(e.message), fg=typer.colors.RED, err=True)
        raise typer.Exit(2)

    show_values = cfg.dump.show_values if values is None else values
    preview = cfg.dump.value_preview
    per_collection = cfg.dump.limit if limit is None else limit

    try:
        store = open_kv(cfg.db.uri, create=False, readonly=cfg.db.readonly)
    except (DatabaseError, DependencyMissing, ValueError) as e:
        typer.secho(f"cannot open store: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    failed = 0
    total = 0
    with trace_scope():
        bind(component="dump")
        outcomes = scan_collections(store, selected, limit=per_collection)
        try:
            for outcome in outcomes:
                d = outcome.descriptor
                typer.echo(f"{d.name} [{d.prefix.hex()}]")
                if outcome.error is not None:
                    failed += 1
                    typer.secho(f"  scan failed: {outcome.error.message}", fg=typer.colors.RED, err=True)
                    continue
                res = outcome.result
                _print_result(res, show_values, preview)
                total += len(res)
                more = " (truncated)" if res.truncated else ""
                typer.echo(f"  {len(res)} keys{more}")
        except ScanError as e:
            typer.secho(f"scan failed: {e.message}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        finally:
            # View first, then the store it was opened on.
            outcomes.close()
            store.close()

    typer.echo(f"total: {total} keys in {len(selected) - failed} collections")
    log.info("dump finished", extra={"keys": total, "failed": failed})
    if failed:
        raise typer.Exit(1)


@app.command("classify")
def cmd_classify(
    key_hex: str = typer.Argument(..., help="Raw key as hex (0x optional)."),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Print the collection owning a raw key."""
    s = key_hex[2:] if key_hex.lower().startswith("0x") else key_hex
    try:
        key = bytes.fromhex(s)
    except ValueError:
        typer.secho(f"not a hex key: {key_hex!r}", fg=typer.colors.RED, err=True)
        raise typer.Exit(2)

    d = get_registry().descriptor_for_key(key)
    if d is None:
        typer.secho("no collection owns this key", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(1)
    if json_out:
        typer.echo(json.dumps(d.to_dict(), indent=2))
    else:
        typer.echo(f"{d.name} [{d.prefix.hex()}] {_fmt_flags(d)}")


@app.command("config")
def cmd_config(
    config: Optional[str] = typer.Option(None, "--config", help="Config file (.toml or .json)."),
) -> None:
    """Print the effective configuration as JSON."""
    cfg = _load_config(config)
    typer.echo(json.dumps(cfg.to_dict(), indent=2, sort_keys=True))


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
