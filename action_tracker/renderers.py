"""
Summary renderers — table, CSV and JSON text for one action.

All functions are pure: they take the observed tables/services and an
optional ``"Controller#action"`` label and return text.  ``render`` returns
a ``(colored, plain)`` pair so a coloured console line and an uncoloured
file line can be produced from the same data.
"""

import csv
import io
import json
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .constants import (
    ACTION_HEADER,
    CELL_NONE,
    CELL_READ,
    CELL_READ_WRITE,
    CELL_SERVICE,
    CELL_WRITE,
    COLORS,
    EMPTY_SUMMARY,
    FORMAT_CSV,
    FORMAT_JSON,
    HEADER_READ,
    HEADER_SERVICES,
    HEADER_WRITE,
    NO_COLORS,
    TABLE_TITLE,
    UNKNOWN_ACTION,
)


def access_mode(table: str, read: Iterable[str], write: Iterable[str]) -> str:
    """Return the ``R`` / ``W`` / ``RW`` / ``-`` cell value for *table*."""
    in_read = table in read
    in_write = table in write
    if in_read and in_write:
        return CELL_READ_WRITE
    if in_read:
        return CELL_READ
    if in_write:
        return CELL_WRITE
    return CELL_NONE


# ── Table ────────────────────────────────────────────────────────


def render_table(
    read: Sequence[str],
    write: Sequence[str],
    services: Sequence[str],
    label: Optional[str] = None,
    colorize: bool = True,
) -> str:
    """Three-column table of models read, models written and services."""
    colors = COLORS if colorize else NO_COLORS
    columns = [sorted(set(read)), sorted(set(write)), sorted(set(services))]
    max_rows = max(len(c) for c in columns)

    if max_rows == 0:
        prefix = f"{colors['yellow']}{label}{colors['reset']}: " if label else ""
        return f"{prefix}{EMPTY_SUMMARY}\n"

    headers = (HEADER_READ, HEADER_WRITE, HEADER_SERVICES)
    padded = [c + [""] * (max_rows - len(c)) for c in columns]
    widths = [max([len(h)] + [len(cell) for cell in col]) for h, col in zip(headers, padded)]
    separator = "+" + "+".join("-" * (w + 2) for w in widths) + "+"

    header_colors = (colors["green"], colors["red"], colors["blue"])
    header_cells = [
        f"{color}{h.ljust(w)}{colors['reset']}" for color, h, w in zip(header_colors, headers, widths)
    ]

    title = f"{colors['yellow']}{label}{colors['reset']} - " if label else ""
    lines = [f"{title}{TABLE_TITLE}", separator, _table_row(header_cells), separator]
    for i in range(max_rows):
        lines.append(_table_row([col[i].ljust(w) for col, w in zip(padded, widths)]))
    lines.append(separator)
    return "\n".join(lines) + "\n"


def _table_row(cells: List[str]) -> str:
    return "| " + " | ".join(cells) + " |"


# ── CSV ──────────────────────────────────────────────────────────


def render_csv(
    read: Sequence[str],
    write: Sequence[str],
    services: Sequence[str],
    label: Optional[str] = None,
) -> str:
    """Header row of tables then services, plus one row for this action."""
    if not read and not write and not services:
        return f"{ACTION_HEADER}\n{EMPTY_SUMMARY}\n"

    tables = sorted(set(read) | set(write))
    service_names = sorted(set(services))

    row = [label or UNKNOWN_ACTION]
    row.extend(access_mode(t, read, write) for t in tables)
    row.extend(CELL_SERVICE for _ in service_names)
    return write_csv_rows([[ACTION_HEADER] + tables + service_names, row])


def write_csv_rows(rows: Iterable[Sequence[str]]) -> str:
    """Serialise *rows* with ``\\n`` line endings."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerows(rows)
    return buf.getvalue()


# ── JSON ─────────────────────────────────────────────────────────


def summary_dict(
    read: Iterable[str], write: Iterable[str], services: Iterable[str]
) -> Dict[str, List[str]]:
    return {
        "read": sorted(set(read)),
        "write": sorted(set(write)),
        "services": sorted(set(services)),
    }


def render_json(
    read: Sequence[str],
    write: Sequence[str],
    services: Sequence[str],
    label: Optional[str] = None,
    with_label: bool = True,
) -> str:
    """Pretty-printed ``{"read", "write", "services"}`` object.

    With *with_label* the text is prefixed by ``"<label>: "`` (``Unknown``
    when no action was identified).
    """
    body = json.dumps(summary_dict(read, write, services), indent=2)
    if not with_label:
        return body
    return f"{label or UNKNOWN_ACTION}: {body}"


# ── Dispatch ─────────────────────────────────────────────────────


def render(
    fmt: str,
    read: Sequence[str],
    write: Sequence[str],
    services: Sequence[str],
    label: Optional[str] = None,
    colorize: bool = True,
) -> Tuple[str, str]:
    """Render in *fmt* and return ``(colored, plain)``.

    CSV and JSON carry no colour, so both elements are the same text.
    """
    if fmt == FORMAT_CSV:
        text = render_csv(read, write, services, label)
        return text, text
    if fmt == FORMAT_JSON:
        text = render_json(read, write, services, label)
        return text, text
    colored = render_table(read, write, services, label, colorize=colorize)
    plain = render_table(read, write, services, label, colorize=False)
    return colored, plain
