"""
Configuration loading and validation for the action tracker.

Configuration is resolved once, before any request is tracked, into an
immutable ``TrackerConfig``.  It can come from a plain mapping (Flask
``app.config["ACTION_TRACKER"]``), a JSON file with ``${ENV_VAR:-default}``
placeholders, or ``ACTION_TRACKER_*`` environment variables.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from .classifier import ServiceRule, parse_service_rules
from .constants import (
    DEFAULT_CAPTURE_LEVEL,
    DEFAULT_CAPTURE_LOGGERS,
    DEFAULT_IGNORED_TABLES,
    DEFAULT_SKIP_EXTENSIONS,
    DEFAULT_SKIP_PATH_PREFIXES,
    ENV_PREFIX,
    FORMAT_TABLE,
    OUTPUT_FORMATS,
)


class ConfigError(Exception):
    """Raised when the tracker configuration is missing or invalid."""


# Option defaults, merged under caller-supplied options.
_DEFAULTS: Dict[str, Any] = {
    "print_enabled": True,
    "write_to_file": False,
    "log_file_path": None,
    "print_format": FORMAT_TABLE,
    "log_format": None,
    "output_format": None,  # deprecated alias for print_format + log_format
    "services": [],
    "ignored_tables": list(DEFAULT_IGNORED_TABLES),
    "ignored_controllers": [],
    "ignored_actions": {},
    "colorize": True,
    "capture_logs": True,
    "capture_level": DEFAULT_CAPTURE_LEVEL,
    "capture_loggers": list(DEFAULT_CAPTURE_LOGGERS),
    "skip_path_prefixes": list(DEFAULT_SKIP_PATH_PREFIXES),
    "skip_extensions": list(DEFAULT_SKIP_EXTENSIONS),
    "track_in_testing": False,
}


@dataclass(frozen=True)
class TrackerConfig:
    """Process-wide tracker settings, read-only once tracking starts."""

    print_enabled: bool = True
    write_to_file: bool = False
    log_file_path: Optional[Path] = None
    print_format: str = FORMAT_TABLE
    log_format: str = FORMAT_TABLE
    service_rules: Tuple[ServiceRule, ...] = field(default_factory=lambda: parse_service_rules(None))
    ignored_tables: FrozenSet[str] = frozenset(DEFAULT_IGNORED_TABLES)
    ignored_controllers: FrozenSet[str] = frozenset()
    ignored_actions: Mapping[str, Optional[Tuple[str, ...]]] = field(default_factory=dict)
    colorize: bool = True
    capture_logs: bool = True
    capture_level: int = logging.INFO
    capture_loggers: Tuple[str, ...] = DEFAULT_CAPTURE_LOGGERS
    skip_path_prefixes: Tuple[str, ...] = DEFAULT_SKIP_PATH_PREFIXES
    skip_extensions: Tuple[str, ...] = DEFAULT_SKIP_EXTENSIONS
    track_in_testing: bool = False

    @property
    def file_output_enabled(self) -> bool:
        return bool(self.write_to_file and self.log_file_path)

    @classmethod
    def from_dict(cls, options: Optional[Mapping[str, Any]] = None) -> "TrackerConfig":
        """Merge *options* over the defaults and build a config.

        ``None`` for any list or mapping option means "no restriction".

        Raises:
            ConfigError: unknown option, unknown format, or bad service rule.
        """
        options = dict(options or {})
        unknown = set(options) - set(_DEFAULTS)
        if unknown:
            raise ConfigError(f"Unknown action tracker option(s): {', '.join(sorted(unknown))}")

        merged = {**_DEFAULTS, **options}

        # Backward compatibility: output_format sets both formats
        if merged["output_format"] and "print_format" not in options and "log_format" not in options:
            merged["print_format"] = merged["output_format"]
            merged["log_format"] = merged["output_format"]

        print_format = _normalise_format(merged["print_format"] or FORMAT_TABLE, "print_format")
        log_format = _normalise_format(merged["log_format"] or print_format, "log_format")

        try:
            rules = parse_service_rules(merged["services"])
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

        log_file_path = merged["log_file_path"]
        return cls(
            print_enabled=bool(merged["print_enabled"]),
            write_to_file=bool(merged["write_to_file"]),
            log_file_path=Path(log_file_path) if log_file_path else None,
            print_format=print_format,
            log_format=log_format,
            service_rules=rules,
            ignored_tables=frozenset(t.lower() for t in merged["ignored_tables"] or ()),
            ignored_controllers=frozenset(merged["ignored_controllers"] or ()),
            ignored_actions=_normalise_ignored_actions(merged["ignored_actions"]),
            colorize=bool(merged["colorize"]),
            capture_logs=bool(merged["capture_logs"]),
            capture_level=_normalise_level(merged["capture_level"]),
            capture_loggers=tuple(merged["capture_loggers"] or ()),
            skip_path_prefixes=tuple(merged["skip_path_prefixes"] or ()),
            skip_extensions=tuple(merged["skip_extensions"] or ()),
            track_in_testing=bool(merged["track_in_testing"]),
        )


def read_options(config_path) -> Dict[str, Any]:
    """
    Read a JSON object of tracker options and resolve ``${ENV_VAR:-default}``
    placeholders in all string values.

    Raises:
        ConfigError: If the file is missing, not valid JSON, or not an object.
    """
    full_path = Path(config_path)
    if not full_path.exists():
        raise ConfigError(f"Configuration file not found: {full_path}")

    try:
        with open(full_path, "r") as f:
            options = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {full_path}: {exc}") from exc

    if not isinstance(options, dict):
        raise ConfigError(f"Expected a JSON object in {full_path}")
    return _resolve(options)


def load_config(config_path: str) -> TrackerConfig:
    """
    Load tracker options from a JSON file into a ``TrackerConfig``.

    Args:
        config_path: Path to a JSON object of tracker options.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated.
    """
    return TrackerConfig.from_dict(read_options(config_path))


def config_from_env(prefix: str = ENV_PREFIX, dotenv_path: Optional[str] = None) -> TrackerConfig:
    """Build a config from ``ACTION_TRACKER_*`` environment variables.

    A ``.env`` file is loaded first (existing variables win).  Only scalar
    options and comma-separated lists are read from the environment; rules
    such as ``ignored_actions`` need a JSON config file.
    """
    load_dotenv(dotenv_path)

    options: Dict[str, Any] = {}
    for key in ("print_enabled", "write_to_file", "colorize", "capture_logs", "track_in_testing"):
        raw = os.environ.get(prefix + key.upper())
        if raw is not None:
            options[key] = raw.strip().lower() in ("1", "true", "yes", "on")
    for key in ("log_file_path", "print_format", "log_format", "capture_level"):
        raw = os.environ.get(prefix + key.upper())
        if raw:
            options[key] = raw.strip()
    for key in ("ignored_tables", "ignored_controllers", "capture_loggers"):
        raw = os.environ.get(prefix + key.upper())
        if raw is not None:
            options[key] = [item.strip() for item in raw.split(",") if item.strip()]
    return TrackerConfig.from_dict(options)


def validate_config(options: Mapping[str, Any]) -> List[str]:
    """
    Validate a raw options mapping without raising.

    Returns:
        A list of human-readable error strings.  Empty means valid.
    """
    errors: List[str] = []

    for key in options:
        if key not in _DEFAULTS:
            errors.append(f"Unknown option: '{key}'")

    for key in ("print_format", "log_format", "output_format"):
        value = options.get(key)
        if value and str(value).lower() not in OUTPUT_FORMATS:
            errors.append(f"{key} must be one of {sorted(OUTPUT_FORMATS)}, got '{value}'")

    if options.get("write_to_file") and not options.get("log_file_path"):
        errors.append("write_to_file is enabled but log_file_path is not set")

    log_path = str(options.get("log_file_path") or "")
    if log_path.startswith("${"):
        errors.append(f"log_file_path is an unresolved placeholder: '{log_path}'")

    for entry in options.get("services") or []:
        try:
            parse_service_rules([entry])
        except ValueError as exc:
            errors.append(str(exc))

    if "capture_level" in options:
        try:
            _normalise_level(options["capture_level"])
        except ConfigError as exc:
            errors.append(str(exc))

    ignored_actions = options.get("ignored_actions")
    if ignored_actions is not None and not isinstance(ignored_actions, dict):
        errors.append("ignored_actions must be a mapping of controller -> list of actions")

    return errors


# ── Private helpers ──────────────────────────────────────────────


def _normalise_format(value: Any, option: str) -> str:
    fmt = str(value).lower()
    if fmt not in OUTPUT_FORMATS:
        raise ConfigError(f"{option} must be one of {sorted(OUTPUT_FORMATS)}, got '{value}'")
    return fmt


def _normalise_ignored_actions(raw: Any) -> Dict[str, Optional[Tuple[str, ...]]]:
    if not raw:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigError("ignored_actions must be a mapping of controller -> list of actions")
    return {str(controller): _action_list(actions) for controller, actions in raw.items()}


def _action_list(actions: Any) -> Optional[Tuple[str, ...]]:
    if actions is None:
        return None
    if isinstance(actions, str):
        return (actions,) if actions else ()
    return tuple(actions)


def _normalise_level(value: Any) -> int:
    """Accept a logging level number or name (``"INFO"``, ``"debug"``)."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    level = logging.getLevelName(str(value).strip().upper())
    if not isinstance(level, int):
        raise ConfigError(f"capture_level must be a logging level name or number, got '{value}'")
    return level


_PLACEHOLDER_RE = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def _resolve(obj: Any) -> Any:
    """Recursively resolve ``${ENV_VAR:-default}`` in string values."""
    if isinstance(obj, str):
        return _PLACEHOLDER_RE.sub(_replace_match, obj)
    elif isinstance(obj, dict):
        return {k: _resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_resolve(v) for v in obj]
    return obj


def _replace_match(m: re.Match) -> str:
    var = m.group(1)
    default = m.group(2) if m.group(2) is not None else ""
    return os.environ.get(var, default)
