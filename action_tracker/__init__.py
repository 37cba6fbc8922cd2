"""
Action Tracker - per-request model and service access tracking for Flask
"""

__version__ = "0.4.0"

from .accumulator import FileAccumulator
from .classifier import NamedPattern, SubstringMatch, classify_statement, detect_services
from .config import (
    ConfigError,
    TrackerConfig,
    config_from_env,
    load_config,
    read_options,
    validate_config,
)
from .context import ContextStore, TrackingContext
from .instrumentation import CapturedLogHandler, instrument_sqlite
from .middleware import ActionTrackerMiddleware
from .policy import IgnorePolicy
from .renderers import render
from .signals import action_started, log_emitted, statement_executed
from .tracker import ActionReport, ActionTracker

__all__ = [
    "ActionTracker",
    "ActionReport",
    "ActionTrackerMiddleware",
    "TrackerConfig",
    "ConfigError",
    "load_config",
    "read_options",
    "config_from_env",
    "validate_config",
    "ContextStore",
    "TrackingContext",
    "IgnorePolicy",
    "FileAccumulator",
    "NamedPattern",
    "SubstringMatch",
    "classify_statement",
    "detect_services",
    "render",
    "CapturedLogHandler",
    "instrument_sqlite",
    "action_started",
    "log_emitted",
    "statement_executed",
]
