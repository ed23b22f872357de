"""Named callback hooks.

Components expose observation points (packet sent, packet dropped, ...)
through a ``HookRegistry`` so that tracing and statistics can be attached
without the component knowing about them.
"""

from typing import Any, Callable, Dict, Iterable, List


class HookRegistry:
    """A fixed set of event types, each with a list of callbacks."""

    def __init__(self, event_types: Iterable[str]) -> None:
        self.hooks: Dict[str, List[Callable[..., Any]]] = {
            event_type: [] for event_type in event_types
        }

    def register(self, event_type: str, callback: Callable[..., Any]) -> None:
        """Register a callback function for a specific event type.

        Args:
            event_type: The type of event to register for.
            callback: The function to call when the event occurs.
        """
        if event_type not in self.hooks:
            raise ValueError(f"Unknown hook type: {event_type}")
        self.hooks[event_type].append(callback)

    def call(self, event_type: str, *args: Any, **kwargs: Any) -> None:
        """Call all registered callbacks for the given event type.

        Args:
            event_type: The type of event that occurred.
            *args, **kwargs: Arguments to pass to the callback functions.
        """
        for callback in self.hooks.get(event_type, []):
            callback(*args, **kwargs)

    def __contains__(self, event_type: str) -> bool:
        return event_type in self.hooks
