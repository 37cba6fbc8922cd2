"""
Flask integration — wraps every eligible request in a tracked unit of work.

Hooks:
1. ``before_request`` starts tracking and announces the action
   (``blueprint#view``) on the ``action_started`` signal.
2. ``after_request`` flushes the summary to the configured channels.
3. ``teardown_request`` ends tracking, also when the view raised.
"""

import logging
from typing import Iterable, Optional, Tuple

from flask import Flask, g, request

from .config import TrackerConfig
from .instrumentation import CapturedLogHandler
from .signals import action_started
from .tracker import ActionTracker

CONFIG_KEY = "ACTION_TRACKER"
EXTENSION_KEY = "action_tracker"


class ActionTrackerMiddleware:
    """Flask middleware: tracks model and service access per request.

    Usage::

        app.config["ACTION_TRACKER"] = {"print_format": "table"}
        ActionTrackerMiddleware(app)
    """

    def __init__(
        self,
        app: Flask,
        *,
        tracker: Optional[ActionTracker] = None,
        config: Optional[TrackerConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            app: The Flask application.
            tracker: Pre-built tracker; takes precedence over *config*.
            config: Tracker configuration.  Read from
                ``app.config["ACTION_TRACKER"]`` when omitted.
            logger: Print channel; defaults to ``app.logger``.
        """
        self.app = app
        if tracker is None:
            if config is None:
                config = TrackerConfig.from_dict(app.config.get(CONFIG_KEY))
            if logger is None:
                logger = app.logger
                # Flask leaves app.logger at NOTSET (effective WARNING) outside debug
                if logger.level == logging.NOTSET:
                    logger.setLevel(logging.INFO)
            tracker = ActionTracker(config, logger=logger)
        self.tracker = tracker
        self._install(app)

    # ── installation ─────────────────────────────────────────────

    def _install(self, app: Flask) -> None:
        app.extensions[EXTENSION_KEY] = self
        config = self.tracker.config
        if config.capture_logs:
            install_log_capture(level=config.capture_level, client_loggers=config.capture_loggers)
        app.before_request(self._before)
        app.after_request(self._after)
        app.teardown_request(self._teardown)

    # ── hooks ────────────────────────────────────────────────────

    def _before(self) -> None:
        if not self.should_track():
            g.action_tracking = False
            return

        self.tracker.begin()
        g.action_tracking = True

        identity = self._action_identity()
        if identity is not None:
            controller, action = identity
            action_started.send(self.app, controller=controller, action=action)

    def _after(self, response):
        if g.get("action_tracking"):
            self.tracker.flush()
        return response

    def _teardown(self, exc=None) -> None:
        self.tracker.end()

    # ── request filtering ────────────────────────────────────────

    def should_track(self) -> bool:
        """Skip static assets, health checks and (by default) test clients."""
        config = self.tracker.config
        path = request.path
        if config.skip_path_prefixes and path.startswith(config.skip_path_prefixes):
            return False
        if config.skip_extensions and path.endswith(config.skip_extensions):
            return False
        if self.app.testing and not config.track_in_testing:
            return False
        return True

    def _action_identity(self) -> Optional[Tuple[str, str]]:
        """``(blueprint or app name, view name)`` for the matched endpoint."""
        endpoint = request.endpoint
        if not endpoint:
            return None
        controller = request.blueprint or self.app.name
        action = endpoint.rsplit(".", 1)[-1]
        return controller, action


def install_log_capture(
    logger: Optional[logging.Logger] = None,
    *,
    level: int = logging.INFO,
    client_loggers: Iterable[str] = (),
) -> CapturedLogHandler:
    """Attach a single ``CapturedLogHandler`` to *logger* (root by default).

    Each of *client_loggers* whose effective level is above *level* is
    lowered to it, so the library's INFO lines reach the handler.  Loggers
    already at least that verbose are left alone.
    """
    for name in client_loggers:
        client = logging.getLogger(name)
        if client.getEffectiveLevel() > level:
            client.setLevel(level)

    target = logger or logging.getLogger()
    for handler in target.handlers:
        if isinstance(handler, CapturedLogHandler):
            return handler
    handler = CapturedLogHandler()
    target.addHandler(handler)
    return handler
