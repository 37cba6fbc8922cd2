"""
Event buses the tracker listens to.

Data access arrives on ``statement_executed`` (``statement=<raw SQL>``).
Lifecycle events arrive on a set of named blinker signals: the tracker's own
``action_started`` / ``log_emitted`` plus Flask's template, flash and
exception signals.  Any driver or framework can feed the tracker by sending
on these signals.
"""

from typing import Dict

from blinker import Namespace, Signal
from flask import signals as flask_signals

from .constants import (
    EVENT_ACTION_STARTED,
    EVENT_LOG_EMITTED,
    EVENT_MESSAGE_FLASHED,
    EVENT_REQUEST_EXCEPTION,
    EVENT_TEMPLATE_RENDERED,
)

_signals = Namespace()

#: Sent for every SQL statement a connection executes.
statement_executed = _signals.signal("statement-executed")

#: Sent once per request with ``controller=`` and ``action=``.
action_started = _signals.signal("action-started")

#: Sent for every captured log record with ``logger=`` and ``message=``.
log_emitted = _signals.signal("log-emitted")


def default_lifecycle_bus() -> Dict[str, Signal]:
    """Name → signal mapping the subscription manager attaches to by default."""
    return {
        EVENT_ACTION_STARTED: action_started,
        EVENT_LOG_EMITTED: log_emitted,
        EVENT_TEMPLATE_RENDERED: flask_signals.template_rendered,
        EVENT_MESSAGE_FLASHED: flask_signals.message_flashed,
        EVENT_REQUEST_EXCEPTION: flask_signals.got_request_exception,
    }
