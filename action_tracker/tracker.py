"""
ActionTracker — the request-scoped tracking engine.

Lifecycle of one unit of work::

    tracker.begin()     # fresh context, receivers attached
    ...                 # statements and lifecycle events flow in
    tracker.flush()     # ignore policy, render, print / accumulate
    tracker.end()       # receivers released, context discarded

``end`` must run on every exit path; ``track()`` wraps the three calls for
code that is not driven by the Flask middleware.
"""

import contextlib
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional

from blinker import Signal

from .accumulator import FileAccumulator
from .classifier import classify_statement, detect_services
from .config import TrackerConfig
from .constants import ACCUMULATING_FORMATS, EVENT_ACTION_STARTED, SERVICE_NAME
from .context import ContextStore, TrackingContext, current_owner
from .logging import setup_file_logger, setup_logger
from .policy import IgnorePolicy
from .renderers import render
from .signals import default_lifecycle_bus
from .subscriptions import SubscriptionManager, describe_event

# Sentinel: use the default Flask/blinker lifecycle bus
DEFAULT_BUS: Any = object()


@dataclass
class ActionReport:
    """What ``flush`` observed and emitted for one action."""

    action_label: Optional[str]
    read: List[str] = field(default_factory=list)
    write: List[str] = field(default_factory=list)
    services: List[str] = field(default_factory=list)
    ignored: bool = False
    print_output: Optional[str] = None
    log_output: Optional[str] = None


class ActionTracker:
    """Tracks table access and service usage for each unit of work.

    Usage::

        tracker = ActionTracker(TrackerConfig.from_dict({"print_format": "json"}))
        with tracker.track():
            run_job()
    """

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        *,
        logger: Optional[logging.Logger] = None,
        lifecycle_bus: Optional[Mapping[str, Signal]] = DEFAULT_BUS,
        store: Optional[ContextStore] = None,
    ):
        """
        Args:
            config: Resolved configuration; defaults apply when omitted.
            logger: Print channel and diagnostic sink; defaults to the
                package console logger from ``setup_logger``.
            lifecycle_bus: Event name → signal.  ``None`` tracks data access
                only.
            store: Context store, mainly for tests.
        """
        self.config = config or TrackerConfig()
        self.logger = logger or setup_logger(SERVICE_NAME)
        self.store = store or ContextStore()
        self.policy = IgnorePolicy.from_config(self.config)

        if lifecycle_bus is DEFAULT_BUS:
            lifecycle_bus = default_lifecycle_bus()
        self.subscriptions = SubscriptionManager(
            self.on_data_access,
            self.on_lifecycle_event,
            lifecycle_bus=lifecycle_bus,
        )

        self._active = 0
        self._active_lock = threading.Lock()

        self._accumulator: Optional[FileAccumulator] = None
        self._file_logger: Optional[logging.Logger] = None
        if self.config.file_output_enabled:
            if self.config.log_format in ACCUMULATING_FORMATS:
                self._accumulator = FileAccumulator(
                    self.config.log_file_path, self.config.log_format, logger=self.logger
                )
            else:
                self._file_logger = setup_file_logger(self.config.log_file_path)

    # ── Begin / End ──────────────────────────────────────────────

    def begin(self) -> TrackingContext:
        """Start tracking the current unit of work."""
        owner = current_owner()
        previous = self.store.fetch()
        ctx = self.store.create(owner)
        # Only a stale context of this same thread/task is already counted
        if previous is None or previous.owner != owner:
            with self._active_lock:
                self._active += 1
                self.subscriptions.attach()
        return ctx

    def end(self) -> TrackingContext:
        """Stop tracking and return what was captured (empty if nothing was)."""
        ctx = self.store.clear()
        if ctx is None:
            return TrackingContext()
        with self._active_lock:
            self._active = max(self._active - 1, 0)
            if self._active == 0:
                self.subscriptions.detach()
        return ctx

    @property
    def active_units(self) -> int:
        return self._active

    @contextlib.contextmanager
    def track(self) -> Iterator[TrackingContext]:
        """Track the enclosed block; flushes on success, always ends."""
        ctx = self.begin()
        try:
            yield ctx
            self.flush()
        finally:
            self.end()

    # ── Event intake ─────────────────────────────────────────────

    def on_data_access(self, statement: str) -> None:
        ctx = self.store.fetch()
        if ctx is None:
            return
        classified = classify_statement(statement, self.config.ignored_tables)
        if classified is not None:
            ctx.record_table(*classified)

    def on_lifecycle_event(self, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        ctx = self.store.fetch()
        if ctx is None:
            return
        payload = payload or {}
        if name == EVENT_ACTION_STARTED:
            ctx.set_action(payload.get("controller"), payload.get("action"))
        ctx.capture(describe_event(name, payload))

    # ── Flush ────────────────────────────────────────────────────

    def flush(self) -> Optional[ActionReport]:
        """Render the current context to the print and file channels.

        Returns:
            The ``ActionReport``, or ``None`` when no unit of work is active.
        """
        ctx = self.store.fetch()
        if ctx is None:
            return None

        report = ActionReport(action_label=ctx.action_label)
        if self.policy.should_ignore(ctx.controller, ctx.action):
            report.ignored = True
            return report

        report.read = sorted(ctx.read_tables)
        report.write = sorted(ctx.write_tables)
        report.services = sorted(detect_services(ctx.captured_lines, self.config.service_rules))
        data = (report.read, report.write, report.services, report.action_label)

        if self.config.print_enabled:
            colored, plain = render(self.config.print_format, *data, colorize=self.config.colorize)
            report.print_output = colored
            self.logger.info("\n%s", colored)

        if self._accumulator is not None:
            _, report.log_output = render(self.config.log_format, *data, colorize=False)
            self._accumulator.accumulate(
                report.action_label, report.read, report.write, report.services
            )
        elif self._file_logger is not None:
            _, report.log_output = render(self.config.log_format, *data, colorize=False)
            self._file_logger.info("\n%s", report.log_output)

        return report
