"""
Event classification — SQL statement → (table, mode), log line → services.

Both classifiers are best-effort pattern matchers.  Anything they cannot
recognise is dropped silently; they never raise on input they see during a
request.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Pattern, Sequence, Tuple, Union

from .constants import DEFAULT_SERVICE_PATTERNS, MODE_READ, MODE_WRITE

# First table referenced after FROM / INTO / UPDATE, optionally quoted.
_TABLE_RE = re.compile(r"\b(?:FROM|INTO|UPDATE|INSERT\s+INTO)\s+[\"'`]?(\w+)[\"'`]?", re.IGNORECASE)
_SELECT_RE = re.compile(r"\A\s*SELECT\b", re.IGNORECASE)


# ── Service rules ────────────────────────────────────────────────


@dataclass(frozen=True)
class NamedPattern:
    """Report ``name`` whenever ``pattern`` matches a captured line."""

    name: str
    pattern: Pattern

    def match(self, line: str) -> Optional[str]:
        return self.name if self.pattern.search(line) else None


@dataclass(frozen=True)
class SubstringMatch:
    """Report ``text`` itself when it occurs in a line, ignoring case."""

    text: str

    def match(self, line: str) -> Optional[str]:
        return self.text if self.text.lower() in line.lower() else None


ServiceRule = Union[NamedPattern, SubstringMatch]


def parse_service_rule(entry: Any) -> ServiceRule:
    """Turn one configured service entry into a ``ServiceRule``.

    Accepted shapes:
    * ``{"name": "Redis", "pattern": r"redis"}`` — strings are compiled
      case-insensitively, compiled patterns are used as given.
    * ``"Stripe"`` — plain case-insensitive substring match.
    * an existing ``NamedPattern`` / ``SubstringMatch``.

    Raises:
        ValueError: for any other shape or an invalid regex.
    """
    if isinstance(entry, (NamedPattern, SubstringMatch)):
        return entry
    if isinstance(entry, str):
        return SubstringMatch(entry)
    if isinstance(entry, dict):
        name = entry.get("name")
        pattern = entry.get("pattern")
        if not name or pattern is None:
            raise ValueError(f"Service rule needs 'name' and 'pattern': {entry!r}")
        if isinstance(pattern, str):
            try:
                pattern = re.compile(pattern, re.IGNORECASE)
            except re.error as exc:
                raise ValueError(f"Invalid pattern for service {name!r}: {exc}") from exc
        return NamedPattern(name=str(name), pattern=pattern)
    raise ValueError(f"Unsupported service rule: {entry!r}")


def parse_service_rules(entries: Optional[Iterable[Any]]) -> Tuple[ServiceRule, ...]:
    """Parse configured rules, falling back to the built-in list when empty."""
    entries = list(entries or [])
    if not entries:
        entries = list(DEFAULT_SERVICE_PATTERNS)
    return tuple(parse_service_rule(e) for e in entries)


DEFAULT_SERVICE_RULES: Tuple[ServiceRule, ...] = parse_service_rules(DEFAULT_SERVICE_PATTERNS)


# ── Classifiers ──────────────────────────────────────────────────


def classify_statement(
    sql: str, ignored_tables: Iterable[str] = ()
) -> Optional[Tuple[str, str]]:
    """Extract the first referenced table and its access mode from *sql*.

    Args:
        sql: Raw statement text as emitted by the driver.
        ignored_tables: Table names to drop, compared case-insensitively.

    Returns:
        ``(table, "read" | "write")`` or ``None`` when the statement names
        no table or the table is ignored.
    """
    if not sql:
        return None
    match = _TABLE_RE.search(sql)
    if not match:
        return None

    table = match.group(1)
    if table.lower() in {t.lower() for t in ignored_tables}:
        return None

    mode = MODE_READ if _SELECT_RE.match(sql) else MODE_WRITE
    return table, mode


def detect_services(
    lines: Sequence[str], rules: Optional[Sequence[ServiceRule]] = None
) -> List[str]:
    """Return the names of services mentioned in *lines*.

    Every line is tested against every rule.  The result is de-duplicated in
    first-seen order; renderers sort it themselves.
    """
    if rules is None:
        rules = DEFAULT_SERVICE_RULES

    found: List[str] = []
    for line in lines:
        for rule in rules:
            name = rule.match(line)
            if name is not None and name not in found:
                found.append(name)
    return found
