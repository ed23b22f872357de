"""Discrete-event scheduler facade.

This module wraps a SimPy environment behind the small interface the traffic
applications consume: schedule a callback after a delay, cancel it, and read
the current simulated time. Each scheduled callback is backed by its own SimPy
process so that cancelling it removes it from the event queue.
"""

import itertools
import logging
from enum import Enum
from typing import Any, Callable, Optional

import simpy

from pacing_sim.core.enums import TimeResolution

logger = logging.getLogger(__name__)


class EventStatus(Enum):
    """Status of a scheduled callback."""

    PENDING = 1
    FIRED = 2
    CANCELLED = 3


class EventHandle:
    """Handle to a callback scheduled with a Scheduler.

    Attributes:
        id: Unique identifier of the event within its scheduler.
        time: Absolute simulated time the callback is due.
        status: Whether the callback is pending, has fired or was cancelled.
        process: SimPy process waiting to fire the callback.
    """

    def __init__(self, event_id: int, time: float) -> None:
        self.id = event_id
        self.time = time
        self.status = EventStatus.PENDING
        self.process: Optional[simpy.events.Process] = None

    @property
    def is_pending(self) -> bool:
        return self.status is EventStatus.PENDING

    def __repr__(self) -> str:
        return f"EventHandle(id={self.id}, time={self.time:.9f}, {self.status.name})"


class Scheduler:
    """Callback scheduler over a SimPy environment.

    Attributes:
        env: SimPy environment that owns the event queue and clock.
        resolution: Size of one time unit for rate computations.
    """

    def __init__(
        self,
        env: simpy.Environment,
        resolution: TimeResolution = TimeResolution.NS,
    ) -> None:
        """Initialize the scheduler.

        Args:
            env: SimPy environment.
            resolution: Size of one time unit (default: nanoseconds).
        """
        self.env = env
        self.resolution = resolution
        self._ids = itertools.count(1)

    def now(self) -> float:
        """Current simulated time in seconds."""
        return self.env.now

    def schedule(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> EventHandle:
        """Invoke ``callback(*args)`` after ``delay`` seconds.

        Args:
            delay: Non-negative delay in seconds.
            callback: The function to call.
            *args: Arguments for the callback.

        Returns:
            A handle that can be passed to ``cancel``.
        """
        if delay < 0:
            raise ValueError(f"Cannot schedule an event in the past (delay={delay})")

        handle = EventHandle(next(self._ids), self.env.now + delay)

        def fire():
            try:
                yield self.env.timeout(delay)
            except simpy.Interrupt:
                return
            if handle.status is not EventStatus.PENDING:
                return
            handle.status = EventStatus.FIRED
            callback(*args)

        handle.process = self.env.process(fire())
        return handle

    def schedule_at(
        self, time: float, callback: Callable[..., Any], *args: Any
    ) -> EventHandle:
        """Invoke ``callback(*args)`` at absolute simulated time ``time``."""
        return self.schedule(time - self.env.now, callback, *args)

    def cancel(self, handle: Optional[EventHandle]) -> None:
        """Cancel a pending callback. Cancelling a fired or cancelled event is a no-op.

        Args:
            handle: Handle returned by ``schedule``.
        """
        if handle is None or not handle.is_pending:
            return
        handle.status = EventStatus.CANCELLED
        process = handle.process
        # an interrupt thrown into a process that has not started escapes it
        if (
            process is not None
            and process.is_alive
            and self.env.active_process is not process
            and not isinstance(process.target, simpy.events.Initialize)
        ):
            process.interrupt("cancelled")
        logger.debug("Cancelled %r", handle)

    def run(self, until: Optional[float] = None) -> None:
        """Run the event loop until ``until`` or until no events remain."""
        self.env.run(until=until)
