"""
Subscription manager — connects the tracker to the data-access and
lifecycle signals.

There is a single process-wide subscription.  Receivers run synchronously on
whichever thread or task sent the signal and only hand the event to the
tracker, which routes it to that execution context's ``TrackingContext``.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from blinker import Signal

from .constants import EVENT_ACTION_STARTED, EVENT_TEMPLATE_RENDERED, SCHEMA_MARKER
from .signals import statement_executed

DataAccessHandler = Callable[[str], None]
LifecycleHandler = Callable[[str, Dict[str, Any]], None]


@dataclass
class SubscriptionHandle:
    """The receivers currently connected, so they can be disconnected later."""

    connections: List[Tuple[Signal, Callable]] = field(default_factory=list)


class SubscriptionManager:
    """Attach/detach the tracker's receivers; both calls are idempotent."""

    def __init__(
        self,
        on_data_access: DataAccessHandler,
        on_lifecycle_event: LifecycleHandler,
        *,
        data_signal: Signal = statement_executed,
        lifecycle_bus: Optional[Mapping[str, Signal]] = None,
    ):
        """
        Args:
            on_data_access: Called with each raw statement.
            on_lifecycle_event: Called with ``(event_name, payload)``.
            data_signal: Signal carrying ``statement=`` payloads.
            lifecycle_bus: Event name → signal.  ``None`` disables the
                lifecycle subscription entirely.
        """
        self._on_data_access = on_data_access
        self._on_lifecycle_event = on_lifecycle_event
        self._data_signal = data_signal
        self._lifecycle_bus = dict(lifecycle_bus) if lifecycle_bus else {}
        self._handle: Optional[SubscriptionHandle] = None

    @property
    def attached(self) -> bool:
        return self._handle is not None

    def attach(self) -> None:
        if self._handle is not None:
            return

        handle = SubscriptionHandle()

        def _data_receiver(sender, statement: Optional[str] = None, **_extra) -> None:
            if statement and SCHEMA_MARKER not in statement:
                self._on_data_access(statement)

        self._data_signal.connect(_data_receiver, weak=False)
        handle.connections.append((self._data_signal, _data_receiver))

        for name, signal in self._lifecycle_bus.items():
            receiver = self._lifecycle_receiver(name)
            signal.connect(receiver, weak=False)
            handle.connections.append((signal, receiver))

        self._handle = handle

    def detach(self) -> None:
        if self._handle is None:
            return
        for signal, receiver in self._handle.connections:
            signal.disconnect(receiver)
        self._handle = None

    def _lifecycle_receiver(self, name: str) -> Callable:
        def _receiver(sender, **payload) -> None:
            self._on_lifecycle_event(name, payload)

        return _receiver


def describe_event(name: str, payload: Mapping[str, Any]) -> str:
    """Render a lifecycle event as the line kept for service detection."""
    if name == EVENT_ACTION_STARTED:
        return f"Controller: {payload.get('controller')}#{payload.get('action')}"
    if name == EVENT_TEMPLATE_RENDERED:
        template = payload.get("template")
        identifier = getattr(template, "name", None) or template
        return f"Template: {identifier}"
    if not payload:
        return ""
    return str(dict(payload))
