"""
Command-line tools for the action tracker.

    python -m action_tracker init tracker.json
    python -m action_tracker check tracker.json
    python -m action_tracker report log/actions.json
    python -m action_tracker report log/actions.csv --format json --action "users#show"
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .accumulator import entry_names, parse_csv_state, parse_json_state
from .config import ConfigError, read_options, validate_config
from .constants import (
    CELL_READ,
    CELL_READ_WRITE,
    CELL_SERVICE,
    CELL_WRITE,
    DEFAULT_SERVICE_PATTERNS,
    FORMAT_TABLE,
    OUTPUT_FORMATS,
)
from .renderers import render

Summaries = Dict[str, Dict[str, List[str]]]

# Written by ``init``; log_file_path resolves through load_config.
STARTER_CONFIG: Dict[str, Any] = {
    "print_enabled": True,
    "write_to_file": False,
    "log_file_path": "${ACTION_TRACKER_LOG_DIR:-log}/action_tracker.log",
    "print_format": FORMAT_TABLE,
    "log_format": FORMAT_TABLE,
    "services": [dict(p) for p in DEFAULT_SERVICE_PATTERNS],
    "ignored_controllers": [],
    "ignored_actions": {},
}


def load_summaries(path: Path) -> Summaries:
    """Read an accumulated JSON or CSV file into ``{label: {read, write, services}}``."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json" or (path.suffix.lower() != ".csv" and text.lstrip().startswith("{")):
        return {
            label: {
                "read": entry_names(entry.get("read")),
                "write": entry_names(entry.get("write")),
                "services": entry_names(entry.get("services")),
            }
            for label, entry in parse_json_state(text).items()
            if isinstance(entry, dict)
        }

    _, rows = parse_csv_state(text)
    summaries: Summaries = {}
    for label, cells in rows.items():
        summary: Dict[str, List[str]] = {"read": [], "write": [], "services": []}
        for name, cell in cells.items():
            if cell in (CELL_READ, CELL_READ_WRITE):
                summary["read"].append(name)
            if cell in (CELL_WRITE, CELL_READ_WRITE):
                summary["write"].append(name)
            if cell == CELL_SERVICE:
                summary["services"].append(name)
        summaries[label] = summary
    return summaries


# ── Subcommands ──────────────────────────────────────────────────


def _report(args: argparse.Namespace) -> int:
    path = Path(args.file)
    if not path.exists():
        print(f"File not found: {path}", file=sys.stderr)
        return 1

    summaries = load_summaries(path)
    if args.action:
        if args.action not in summaries:
            print(f"No entry for action: {args.action}", file=sys.stderr)
            return 1
        summaries = {args.action: summaries[args.action]}

    for label, summary in summaries.items():
        colored, plain = render(
            args.format,
            summary["read"],
            summary["write"],
            summary["services"],
            label,
            colorize=args.color,
        )
        print(colored if args.color else plain)
    return 0


def _init(args: argparse.Namespace) -> int:
    path = Path(args.path)
    if path.exists() and not args.force:
        print(f"{path} already exists (use --force to overwrite)", file=sys.stderr)
        return 1
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(STARTER_CONFIG, indent=2) + "\n", encoding="utf-8")
    print(f"Created {path}")
    return 0


def _check(args: argparse.Namespace) -> int:
    try:
        options = read_options(args.path)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        return 1

    errors = validate_config(options)
    for error in errors:
        print(f"  ✗ {error}", file=sys.stderr)
    if errors:
        return 1
    print(f"  ✓ {args.path} is valid")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="action-tracker", description="Action tracker configuration and report tools"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    report = sub.add_parser("report", help="Render every action recorded in a JSON/CSV file")
    report.add_argument("file", help="Accumulated .json or .csv file")
    report.add_argument(
        "--format",
        choices=sorted(OUTPUT_FORMATS),
        default=FORMAT_TABLE,
        help="Output format (default: table)",
    )
    report.add_argument("--action", help="Only show this Controller#action")
    report.add_argument("--color", action="store_true", help="Colourise table headers")
    report.set_defaults(func=_report)

    init = sub.add_parser("init", help="Write a starter JSON configuration")
    init.add_argument("path", nargs="?", default="action_tracker.json")
    init.add_argument("--force", action="store_true", help="Overwrite an existing file")
    init.set_defaults(func=_init)

    check = sub.add_parser("check", help="Validate a JSON configuration")
    check.add_argument("path")
    check.set_defaults(func=_check)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)
