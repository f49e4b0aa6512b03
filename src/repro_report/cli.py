"""CLI entrypoint.

Commands:
- `repro-report policy [--mode export_backup] [--params homework.qmd] [--set save_compare=false]`
- `repro-report presets`
- `repro-report cache list [--dir output]`
- `repro-report cache clear [KEY] [--dir output]`
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional
import argparse
import sys

import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .cache.memoize import CacheStore
from .errors import ConfigError, ReproReportError
from .export.layout import CACHE_DIR
from .logging_ import setup_logging
from .policies.export import POLICY_FIELDS, PRESETS, export_controls
from .policies.loader import load_params


def _parse_sets(pairs: List[str]) -> Dict[str, Any]:
    """`key=value` pairs; values parsed as YAML scalars (true/false/null/numbers)."""
    out: Dict[str, Any] = {}
    for pair in pairs:
        if "=" not in pair:
            raise ConfigError(f"Expected key=value, got {pair!r}")
        key, value = pair.split("=", 1)
        out[key.strip()] = yaml.safe_load(value)
    return out


def _fmt(value: Any) -> str:
    if value is None:
        return "[dim]session[/dim]"
    return "[green]yes[/green]" if value else "[red]no[/red]"


def _cmd_policy(args: argparse.Namespace, console: Console) -> None:
    params: Dict[str, Any] = {}
    if args.params:
        params.update(load_params(args.params))
    params.update(_parse_sets(args.set or []))
    policy = export_controls(mode=args.mode, params=params, prefer=args.prefer)

    table = Table(title=f"Export policy: {policy.mode}")
    table.add_column("field")
    table.add_column("value")
    for name in POLICY_FIELDS:
        table.add_row(name, _fmt(getattr(policy, name)))
    console.print(table)


def _cmd_presets(args: argparse.Namespace, console: Console) -> None:
    table = Table(title="Export presets")
    table.add_column("mode")
    for name in POLICY_FIELDS:
        table.add_column(name)
    for mode, preset in PRESETS.items():
        table.add_row(mode, *(_fmt(preset.get(name)) for name in POLICY_FIELDS))
    console.print(table)


def _cmd_cache(args: argparse.Namespace, console: Console) -> None:
    store = CacheStore(args.dir)
    if args.cache_cmd == "clear":
        removed = store.clear(args.key)
        for path in removed:
            console.print(f"removed {path}")
        if not removed:
            console.print("nothing to remove")
        return

    entries = store.list_entries()
    if not entries:
        console.print(f"No cache entries in {args.dir}")
        return
    table = Table(title=f"Cache entries in {args.dir}")
    table.add_column("key")
    table.add_column("hash")
    table.add_column("created")
    table.add_column("size", justify="right")
    for e in entries:
        created = datetime.fromtimestamp(e["created_at"]).strftime("%Y-%m-%d %H:%M:%S")
        table.add_row(e["key"], e["hash"][:12], created, f"{e['size_bytes']:,}")
    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="repro-report")
    p.add_argument("--log-level", default="WARNING")
    sub = p.add_subparsers(dest="cmd", required=True)

    pp = sub.add_parser("policy", help="Show the resolved export policy")
    pp.add_argument("--mode", default=None)
    pp.add_argument("--params", default=None, help="YAML file or .qmd document with params")
    pp.add_argument("--prefer", choices=("params", "mode"), default="params")
    pp.add_argument("--set", action="append", metavar="KEY=VALUE", help="Override a param (repeatable)")

    sub.add_parser("presets", help="List export presets")

    pc = sub.add_parser("cache", help="Inspect or clear cached computations")
    csub = pc.add_subparsers(dest="cache_cmd", required=True)
    cl = csub.add_parser("list")
    cl.add_argument("--dir", default=CACHE_DIR)
    cc = csub.add_parser("clear")
    cc.add_argument("key", nargs="?", default=None)
    cc.add_argument("--dir", default=CACHE_DIR)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level)
    console = Console()
    try:
        if args.cmd == "policy":
            _cmd_policy(args, console)
        elif args.cmd == "presets":
            _cmd_presets(args, console)
        else:
            _cmd_cache(args, console)
    except ReproReportError as exc:
        console.print(f"[red]error:[/red] {escape(str(exc))}")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
