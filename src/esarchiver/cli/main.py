# main.py
# SPDX-License-Identifier: MIT

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

from ..core.config import ArchiverConfig, load_config_from_path
from ..core.stats_aggregate import merge_load_results, split_reports
from .runner import make_archiver


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level esarchiver CLI argument parser.

    Global flags select the config file and override the most common
    settings; subcommands load, unload and save archives or merge reports.

    Returns:
        argparse.ArgumentParser: Configured argument parser for the CLI.
    """
    parser = argparse.ArgumentParser(prog="esarchiver", description="Elasticsearch archive loader")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g., DEBUG, INFO, WARNING). Overrides logging.level.",
    )
    parser.add_argument("-c", "--config", help="Path to config file (TOML or JSON).")
    parser.add_argument("--es-url", action="append", help="Elasticsearch URL; repeat for several hosts.")
    parser.add_argument("--data-dir", type=Path, help="Directory holding the archives.")
    parser.add_argument("--migration-url", help="Base URL of the server that migrates internal indices.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    load_p = subparsers.add_parser("load", help="Load one or more archives.")
    load_p.add_argument("names", nargs="+", help="Archive names under the data directory.")
    load_p.add_argument(
        "--skip-existing",
        action="store_true",
        help="Leave indices that already exist (and their documents) untouched.",
    )

    unload_p = subparsers.add_parser("unload", help="Delete the indices of one or more archives.")
    unload_p.add_argument("names", nargs="+", help="Archive names under the data directory.")

    save_p = subparsers.add_parser("save", help="Save indices into a new archive.")
    save_p.add_argument("name", help="Archive name to write.")
    save_p.add_argument("indices", nargs="+", help="Index names or patterns to export.")
    save_p.add_argument("--raw", action="store_true", help="Write data.json without gzip.")

    merge_p = subparsers.add_parser("merge-stats", help="Merge load report JSON files.")
    merge_p.add_argument("stats_files", nargs="+", type=Path, help="Paths to report JSON files.")
    merge_p.add_argument("--output", "-o", type=Path, help="Output file (defaults to stdout).")

    return parser


def _load_config(args: argparse.Namespace) -> ArchiverConfig:
    """Read the optional config file and apply command-line overrides."""
    cfg = load_config_from_path(args.config) if args.config else ArchiverConfig()
    if args.es_url:
        cfg.elasticsearch.hosts = tuple(args.es_url)
    if args.data_dir is not None:
        cfg.load.data_dir = args.data_dir
    if args.migration_url:
        cfg.migration.base_url = args.migration_url
        cfg.migration.enabled = True
    if args.log_level:
        cfg.logging.level = args.log_level
    if getattr(args, "skip_existing", False):
        cfg.load.skip_existing = True
    return cfg


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2))


def _cmd_merge_stats(args: argparse.Namespace) -> int:
    """Merge report JSON files and write to stdout or a file."""
    reports = []
    for path in args.stats_files:
        data = json.loads(path.read_text("utf-8"))
        reports.extend(split_reports(data))

    merged = merge_load_results(reports)
    text = json.dumps(merged, indent=2, sort_keys=True)
    if args.output:
        args.output.write_text(text + "\n", encoding="utf-8")
    else:
        print(text)
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    """Dispatch a parsed CLI command to the appropriate handler.

    Returns:
        int: Process exit code, where 0 indicates success and non-zero
        values indicate failure.
    """
    cmd = args.command
    if cmd == "merge-stats":
        return _cmd_merge_stats(args)

    cfg = _load_config(args)
    cfg.logging.apply()
    archiver = make_archiver(cfg)

    if cmd == "load":
        reports = {}
        for name in args.names:
            result = archiver.load(name, skip_existing=cfg.load.skip_existing)
            reports[name] = result.as_dict()
        _print_json(reports)
        return 0

    if cmd == "unload":
        reports = {name: archiver.unload(name).as_dict() for name in args.names}
        _print_json(reports)
        return 0

    if cmd == "save":
        result = archiver.save(args.name, args.indices, raw=args.raw)
        _print_json({args.name: result.as_dict()})
        return 0

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the esarchiver command-line interface.

    Args:
        argv (Sequence[str] | None): Optional list of argument strings to
            parse instead of ``sys.argv[1:]``. Primarily useful for tests.

    Returns:
        int: Process exit code, where 0 indicates success and non-zero
        values indicate failure.
    """
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        return _dispatch(args)
    except Exception as exc:  # noqa: BLE001
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
