"""Zero-argument change signals for the presentation layer.

Every state owner exposes a handful of signals. Handlers take no
arguments: on notification they re-read whatever derived state they
care about (pull model).

Example:
    sub = registry.profile_selected.connect(lambda: print(registry.active_name))
    ...
    sub.unsubscribe()
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeAlias

from loguru import logger

Handler: TypeAlias = Callable[[], object]


@dataclass(frozen=True, slots=True, eq=False)
class Subscription:
    """Handle returned by Signal.connect. Unsubscribing twice is harmless."""

    signal: Signal
    handler: Handler

    def unsubscribe(self) -> None:
        self.signal.disconnect(self.handler)


@dataclass
class Signal:
    """Registry of zero-argument handlers invoked synchronously on emit."""

    name: str
    _handlers: list[Handler] = field(default_factory=list, repr=False)

    def connect(self, handler: Handler) -> Subscription:
        """Register handler. Returns a subscription used to disconnect it."""
        self._handlers.append(handler)
        return Subscription(self, handler)

    def disconnect(self, handler: Handler) -> None:
        """Remove handler if registered."""
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    def emit(self) -> None:
        """Invoke every handler in registration order.

        Handlers are snapshotted first so a handler may unsubscribe itself
        (or others) while the signal is being dispatched.
        """
        handlers = tuple(self._handlers)
        logger.trace(f"Signal {self.name}: dispatching to {len(handlers)} handler(s)")
        for handler in handlers:
            handler()

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()

    def __len__(self) -> int:
        return len(self._handlers)


__all__ = [
    "Handler",
    "Signal",
    "Subscription",
]
