"""
Ignore policy — decides whether a controller/action summary is suppressed.

Rules never un-ignore: a controller listed in ``ignored_controllers`` or any
matching ``ignored_actions`` entry is enough.  An ``ignored_actions`` key of
``""`` applies to every controller; a value of ``None`` or ``[]`` ignores the
whole controller.
"""

from typing import Iterable, Mapping, Optional, Sequence


class IgnorePolicy:
    """Evaluates the configured controller/action ignore rules."""

    def __init__(
        self,
        ignored_controllers: Optional[Iterable[str]] = None,
        ignored_actions: Optional[Mapping[str, Optional[Sequence[str]]]] = None,
    ):
        self.ignored_controllers = frozenset(ignored_controllers or ())
        self.ignored_actions = dict(ignored_actions or {})

    @classmethod
    def from_config(cls, config) -> "IgnorePolicy":
        if config is None:
            return cls()
        return cls(config.ignored_controllers, config.ignored_actions)

    def should_ignore(self, controller: Optional[str], action: Optional[str]) -> bool:
        if not controller or not action:
            return False

        if controller in self.ignored_controllers:
            return True

        for pattern_controller, actions in self.ignored_actions.items():
            if pattern_controller and pattern_controller != controller:
                continue
            if not actions:
                return True
            if action in actions:
                return True

        return False


def should_ignore(config, controller: Optional[str], action: Optional[str]) -> bool:
    """Functional form of ``IgnorePolicy.should_ignore``; ``None`` config ignores nothing."""
    if config is None:
        return False
    return IgnorePolicy.from_config(config).should_ignore(controller, action)
