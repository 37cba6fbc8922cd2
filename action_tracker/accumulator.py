"""
File accumulator — merges each action's summary into a persistent JSON or
CSV file.

Every flush performs a full read-merge-write cycle while holding an
exclusive ``flock`` on the target, so concurrent requests (threads or
processes) serialise instead of interleaving writes.  The whole file is
rewritten on each accumulation, which is quadratic in the number of
actions over the file's lifetime; fine for development traffic, not meant
for high-volume production use.
"""

import contextlib
import csv
import fcntl
import io
import json
import logging
import os
from pathlib import Path
from typing import Dict, IO, Iterable, Iterator, List, Optional, Tuple

from .constants import (
    ACTION_HEADER,
    CELL_NONE,
    CELL_READ,
    CELL_READ_WRITE,
    CELL_SERVICE,
    CELL_WRITE,
    FORMAT_JSON,
    UNKNOWN_ACTION,
)
from .renderers import access_mode, summary_dict, write_csv_rows

JsonState = Dict[str, Dict[str, List[str]]]
CsvRows = Dict[str, Dict[str, str]]


@contextlib.contextmanager
def locked_file(path: Path) -> Iterator[IO[str]]:
    """Open *path* read/write (creating it, never truncating) under ``LOCK_EX``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
    with os.fdopen(fd, "r+", encoding="utf-8", newline="") as handle:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        try:
            yield handle
        finally:
            handle.flush()
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


# ── JSON ─────────────────────────────────────────────────────────


def parse_json_state(text: str) -> JsonState:
    """Parse accumulated JSON; anything unreadable counts as empty."""
    text = text.strip()
    if not text:
        return {}
    try:
        data = json.loads(text)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def merge_json_entry(
    state: JsonState,
    label: str,
    read: Iterable[str],
    write: Iterable[str],
    services: Iterable[str],
) -> JsonState:
    """Union this action's observations into *state* (mutated and returned)."""
    new = summary_dict(read, write, services)
    existing = state.get(label)
    if isinstance(existing, dict):
        state[label] = {
            key: sorted(set(entry_names(existing.get(key))) | set(values)) for key, values in new.items()
        }
    else:
        state[label] = new
    return state


def entry_names(value) -> List[str]:
    """Existing list entries; anything else in a hand-edited file counts as empty."""
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


# ── CSV ──────────────────────────────────────────────────────────


def parse_csv_state(text: str) -> Tuple[List[str], CsvRows]:
    """Parse accumulated CSV into ``(header, {label: {column: cell}})``.

    Empty or unreadable content yields ``(["Action"], {})``.
    """
    empty: Tuple[List[str], CsvRows] = ([ACTION_HEADER], {})
    text = text.strip()
    if not text:
        return empty
    try:
        rows = list(csv.reader(io.StringIO(text)))
    except csv.Error:
        return empty
    if not rows or not rows[0] or rows[0][0] != ACTION_HEADER:
        return empty

    header = rows[0]
    state: CsvRows = {}
    for row in rows[1:]:
        if not row or not row[0]:
            continue
        state[row[0]] = dict(zip(header[1:], row[1:]))
    return header, state


def merge_access(current: str, new: str) -> str:
    """Union two access cells: ``-`` + X → X, ``R`` + ``W`` → ``RW``."""
    letters = {c for c in (current or "") + (new or "") if c in (CELL_READ, CELL_WRITE)}
    if letters == {CELL_READ, CELL_WRITE}:
        return CELL_READ_WRITE
    if letters:
        return letters.pop()
    return CELL_NONE


def merge_csv_rows(
    header: List[str],
    rows: CsvRows,
    label: str,
    read: Iterable[str],
    write: Iterable[str],
    services: Iterable[str],
) -> Tuple[List[str], CsvRows]:
    """Merge one action into the CSV state and return the new header and rows.

    The header is the sorted union of every column ever seen.  Table cells
    merge by access-mode union; service cells become ``Y`` and are never
    downgraded.
    """
    read, write = set(read), set(write)
    tables = read | write
    service_names = set(services)

    columns = tables | service_names | {name for name in header if name != ACTION_HEADER}
    new_header = [ACTION_HEADER] + sorted(columns)

    cells = rows.setdefault(label, {})
    for name in new_header[1:]:
        current = cells.get(name, CELL_NONE)
        if name in tables:
            cells[name] = merge_access(current, access_mode(name, read, write))
        elif name in service_names:
            cells[name] = CELL_SERVICE
        else:
            cells[name] = current or CELL_NONE
    return new_header, rows


def dump_csv_state(header: List[str], rows: CsvRows) -> str:
    lines = [header]
    for label, cells in rows.items():
        lines.append([label] + [cells.get(name) or CELL_NONE for name in header[1:]])
    return write_csv_rows(lines)


# ── Accumulator ──────────────────────────────────────────────────


class FileAccumulator:
    """Merges per-action summaries into ``path`` in JSON or CSV form.

    Usage::

        acc = FileAccumulator("log/actions.json", "json")
        acc.accumulate("UsersController#show", ["users"], [], ["Redis"])
    """

    def __init__(self, path, fmt: str, *, logger: Optional[logging.Logger] = None):
        self.path = Path(path)
        self.fmt = fmt
        self.logger = logger or logging.getLogger("action_tracker.accumulator")

    def accumulate(
        self,
        label: Optional[str],
        read: Iterable[str],
        write: Iterable[str],
        services: Iterable[str],
    ) -> bool:
        """Merge one action into the file.

        Returns:
            ``True`` on success.  Failures are logged and swallowed so they
            never reach the request being tracked.
        """
        label = label or UNKNOWN_ACTION
        try:
            with locked_file(self.path) as handle:
                content = handle.read()
                if self.fmt == FORMAT_JSON:
                    state = merge_json_entry(parse_json_state(content), label, read, write, services)
                    output = json.dumps(state, indent=2)
                else:
                    header, rows = parse_csv_state(content)
                    header, rows = merge_csv_rows(header, rows, label, read, write, services)
                    output = dump_csv_state(header, rows)
                handle.seek(0)
                handle.write(output)
                handle.truncate()
        except Exception as exc:
            self.logger.error(
                "Failed to accumulate %s data in %s: %s",
                self.fmt,
                self.path,
                exc,
                extra={"action": label, "log_format": self.fmt, "error_type": type(exc).__name__},
            )
            return False
        return True
