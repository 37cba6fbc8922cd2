"""
Per-request tracking context and the store that scopes it.

One ``TrackingContext`` exists per unit of work.  It lives in a
``ContextVar`` so that each thread *and* each asyncio task sees only its
own context; nothing here is shared between concurrent requests, so the
context itself needs no locking.
"""

import asyncio
import contextvars
import threading
from dataclasses import dataclass, field
from typing import Hashable, List, Optional, Set, Tuple

from .constants import MODE_READ


@dataclass
class TrackingContext:
    """Everything observed during one unit of work."""

    read_tables: Set[str] = field(default_factory=set)
    write_tables: Set[str] = field(default_factory=set)
    captured_lines: List[str] = field(default_factory=list)
    controller: Optional[str] = None
    action: Optional[str] = None
    owner: Optional[Hashable] = None

    @property
    def action_label(self) -> Optional[str]:
        """``"Controller#action"``, or ``None`` until both parts are known."""
        if self.controller and self.action:
            return f"{self.controller}#{self.action}"
        return None

    def record_table(self, table: str, mode: str) -> None:
        if mode == MODE_READ:
            self.read_tables.add(table)
        else:
            self.write_tables.add(table)

    def capture(self, line: str) -> None:
        if line:
            self.captured_lines.append(line)

    def set_action(self, controller: Optional[str], action: Optional[str]) -> None:
        """Record the action identity; the first complete identity wins."""
        if self.action_label is None:
            self.controller = controller
            self.action = action


def current_owner() -> Tuple[int, Optional[int]]:
    """Identify the running thread and asyncio task (if any).

    Threads and tasks start with a copy of their parent's context, so a
    context found in the store may belong to someone else; comparing owners
    tells a stale context of our own apart from an inherited one.
    """
    try:
        task = asyncio.current_task()
    except RuntimeError:
        task = None
    return threading.get_ident(), (id(task) if task is not None else None)


class ContextStore:
    """Holds the active ``TrackingContext`` for the current execution context."""

    def __init__(self, name: str = "action_tracker_context"):
        self._var: contextvars.ContextVar[Optional[TrackingContext]] = contextvars.ContextVar(
            name, default=None
        )

    def create(self, owner: Optional[Hashable] = None) -> TrackingContext:
        """Start a fresh context, silently replacing any stale one."""
        ctx = TrackingContext(owner=owner)
        self._var.set(ctx)
        return ctx

    def fetch(self) -> Optional[TrackingContext]:
        """Return the active context, or ``None`` outside a unit of work."""
        return self._var.get()

    def clear(self) -> Optional[TrackingContext]:
        """Remove and return the active context."""
        ctx = self._var.get()
        self._var.set(None)
        return ctx
