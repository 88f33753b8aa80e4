# scheduler.py
"""
Cancellable delayed and periodic actions on a virtual clock.

The scheduler never reads wall-clock time. The owner of the frame loop advances
it explicitly, which keeps every timed transition reproducible in tests.
"""
import heapq
import itertools
import logging
from typing import Callable, List, Optional, Tuple

# --- Data Contracts ---
#
# class Scheduler:
#   - schedule(delay: float, action: Callable[[], None]) -> ScheduledAction
#     - Registers a one-shot action due `delay` seconds after the current time.
#   - schedule_interval(interval: float, action) -> ScheduledAction
#     - Registers a repeating action, first due one interval from now.
#   - advance(dt: float) -> int
#     - Moves virtual time forward and runs every due action in due order.
#       Returns the number of actions run.
#   - cancel_all() -> None
#     - Cancels every outstanding action.
#   - Invariants: a cancelled action never runs. Actions due at the same time
#     run in registration order.


class ScheduledAction:
    """Handle returned for every scheduled action. Call cancel() to revoke it."""

    def __init__(self, due: float, action: Callable[[], None], interval: Optional[float] = None, label: str = ""):
        self.due = due
        self.action = action
        self.interval = interval
        self.label = label or getattr(action, "__name__", "action")
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        if self.cancelled:
            return False
        # One-shot actions are spent once they fire.
        return self.interval is not None or not self.fired

    def cancel(self):
        self.cancelled = True

    def __repr__(self):
        kind = f"every {self.interval:.2f}s" if self.interval is not None else "once"
        return f"ScheduledAction({self.label!r}, due={self.due:.3f}, {kind}, active={self.active})"


class Scheduler:
    """
    Owns all pending timed actions and the virtual time they are measured in.
    """
    def __init__(self, start_time: float = 0.0):
        self.now = float(start_time)
        self._queue: List[Tuple[float, int, ScheduledAction]] = []
        self._sequence = itertools.count()

    def schedule(self, delay: float, action: Callable[[], None], label: str = "") -> ScheduledAction:
        handle = ScheduledAction(self.now + max(0.0, delay), action, label=label)
        self._push(handle)
        logging.debug(f"Scheduled {handle.label} in {delay:.2f}s (due at {handle.due:.3f}).")
        return handle

    def schedule_interval(self, interval: float, action: Callable[[], None], label: str = "") -> ScheduledAction:
        if interval <= 0:
            msg = f"Configuration error: interval for {label or action} must be positive, got {interval}."
            logging.critical(msg)
            raise ValueError(msg)
        handle = ScheduledAction(self.now + interval, action, interval=interval, label=label)
        self._push(handle)
        logging.debug(f"Scheduled {handle.label} every {interval:.2f}s.")
        return handle

    def _push(self, handle: ScheduledAction):
        heapq.heappush(self._queue, (handle.due, next(self._sequence), handle))

    def advance(self, dt: float) -> int:
        """
        Moves time forward by dt seconds and runs everything that came due.

        Periodic actions that fell behind by several intervals run once per
        missed interval, so batch sampling and spawning keep their cadence
        when a frame stalls.
        """
        self.now += max(0.0, dt)
        ran = 0
        while self._queue and self._queue[0][0] <= self.now:
            _, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            handle.fired = True
            handle.action()
            ran += 1
            # The action itself may have cancelled its own handle.
            if handle.interval is not None and not handle.cancelled:
                handle.due += handle.interval
                self._push(handle)
        return ran

    def cancel_all(self):
        pending = 0
        for _, _, handle in self._queue:
            if not handle.cancelled:
                pending += 1
            handle.cancel()
        self._queue.clear()
        logging.debug(f"Scheduler cancelled {pending} pending action(s).")

    @property
    def pending(self) -> int:
        """Number of actions that can still run."""
        return sum(1 for _, _, handle in self._queue if not handle.cancelled)
