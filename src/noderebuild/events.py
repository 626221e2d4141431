"""Lifecycle events emitted during a rebuild run.

The Rebuilder reports progress as structured events instead of printing
counters itself. Consumers (the CLI progress display, tests, library
callers) implement LifecycleListener and subscribe to a Lifecycle before
the run starts.

Delivery is unordered across concurrent module builds but FIFO for a single
producer thread; for one module MODULE_FOUND always precedes MODULE_DONE.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class LifecycleEvent(Enum):
    """Event tags emitted by the Rebuilder."""

    START = "start"
    MODULE_FOUND = "module-found"
    MODULE_DONE = "module-done"
    MODULE_SKIP = "module-skip"


@runtime_checkable
class LifecycleListener(Protocol):
    """Protocol for receiving rebuild lifecycle events.

    Listeners may be called concurrently from several build threads in
    parallel mode and must tolerate interleaved, reentrant delivery.
    """

    def on_event(self, event: LifecycleEvent, module_name: Optional[str]) -> None:
        """Called for every lifecycle event.

        Args:
            event: The event tag.
            module_name: Display name of the module, or None for START.
        """
        ...


class NullListener:
    """Listener that discards all events."""

    def on_event(self, event: LifecycleEvent, module_name: Optional[str]) -> None:
        """Discard event."""
        pass


class _FunctionListener:
    """Adapts a plain callable bound to one event tag."""

    def __init__(self, event: LifecycleEvent, fn: Callable[[Optional[str]], None]) -> None:
        self._event = event
        self._fn = fn

    def on_event(self, event: LifecycleEvent, module_name: Optional[str]) -> None:
        if event == self._event:
            self._fn(module_name)


class Lifecycle:
    """Thread-safe broadcaster for lifecycle events.

    Usage:
        lifecycle = Lifecycle()
        lifecycle.subscribe(display)
        lifecycle.on(LifecycleEvent.MODULE_DONE, lambda name: print(name))
        Rebuilder(config, lifecycle).rebuild()
    """

    def __init__(self) -> None:
        self._listeners: list[LifecycleListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: LifecycleListener) -> None:
        """Register a listener for all events."""
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: LifecycleListener) -> None:
        """Remove a previously registered listener (no-op if unknown)."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def on(self, event: LifecycleEvent, fn: Callable[[Optional[str]], None]) -> LifecycleListener:
        """Register a callable for a single event tag.

        Returns:
            The listener wrapper, usable with unsubscribe().
        """
        listener = _FunctionListener(event, fn)
        self.subscribe(listener)
        return listener

    def emit(self, event: LifecycleEvent, module_name: Optional[str] = None) -> None:
        """Deliver an event to every subscribed listener.

        Listeners are snapshotted under the lock and invoked outside it, so a
        listener may subscribe, unsubscribe or emit from within its callback.
        """
        with self._lock:
            listeners = list(self._listeners)
        logger.debug("lifecycle %s %s", event.value, module_name or "")
        for listener in listeners:
            listener.on_event(event, module_name)

    @property
    def listener_count(self) -> int:
        """Number of subscribed listeners."""
        with self._lock:
            return len(self._listeners)
