"""
Staleness timers for cached directories.

A single daemon thread owns a heap of deadlines. When a deadline passes
its callback runs on that thread; the callbacks used by the tree only
flip a node's cache state to stale and never touch children. The next
accessor of the node does the actual refresh.

Tests drive a scheduler by hand: build it with ``autostart=False`` and a
fake clock, then call :meth:`StalenessScheduler.run_due`.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger("iotfs.staleness")


class ScheduledFlip:
    """Handle for one pending timer."""

    __slots__ = ("deadline", "callback", "cancelled")

    def __init__(self, deadline: float, callback: Callable[[], None]) -> None:
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class StalenessScheduler:
    """Timer wheel shared by every node of a tree.

    Args:
        clock: Monotonic time source in seconds.
        autostart: Start the background thread on the first schedule call.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        autostart: bool = True,
    ) -> None:
        self._clock = clock
        self._autostart = autostart
        self._heap: List[Tuple[float, int, ScheduledFlip]] = []
        self._counter = itertools.count()
        self._cond = threading.Condition()
        self._thread: Optional[threading.Thread] = None
        self._stopped = False

    @property
    def pending(self) -> int:
        """Number of armed, uncancelled timers."""
        with self._cond:
            return sum(1 for _, _, flip in self._heap if not flip.cancelled)

    def schedule(self, delay: float, callback: Callable[[], None]) -> ScheduledFlip:
        """Run ``callback`` once, ``delay`` seconds from now.

        Args:
            delay: Seconds until the callback fires.
            callback: Zero-argument callable run on the timer thread.

        Returns:
            ScheduledFlip: Handle whose ``cancel()`` disarms the timer.
        """
        flip = ScheduledFlip(self._clock() + delay, callback)
        with self._cond:
            heapq.heappush(self._heap, (flip.deadline, next(self._counter), flip))
            self._cond.notify()
        if self._autostart:
            self.start()
        return flip

    def run_due(self, now: Optional[float] = None) -> int:
        """Fire every timer whose deadline has passed.

        Args:
            now: Override for the current time.

        Returns:
            int: Number of callbacks run.
        """
        due: List[ScheduledFlip] = []
        with self._cond:
            current = self._clock() if now is None else now
            while self._heap and self._heap[0][0] <= current:
                _, _, flip = heapq.heappop(self._heap)
                if not flip.cancelled:
                    due.append(flip)
        for flip in due:
            try:
                flip.callback()
            except Exception:
                logger.exception("Staleness callback failed")
        return len(due)

    def start(self) -> None:
        with self._cond:
            if self._thread is not None or self._stopped:
                return
            self._thread = threading.Thread(
                target=self._run, name="iotfs-staleness", daemon=True
            )
            self._thread.start()

    def stop(self) -> None:
        """Stop the timer thread and drop all pending timers."""
        with self._cond:
            self._stopped = True
            self._heap.clear()
            self._cond.notify_all()
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)

    def _run(self) -> None:
        while True:
            with self._cond:
                if self._stopped:
                    return
                if not self._heap:
                    self._cond.wait()
                    continue
                wait = self._heap[0][0] - self._clock()
                if wait > 0:
                    self._cond.wait(timeout=wait)
                    continue
            self.run_due()


_default: Optional[StalenessScheduler] = None
_default_lock = threading.Lock()


def default_scheduler() -> StalenessScheduler:
    """Process-wide scheduler used when a tree is built without one."""
    global _default
    with _default_lock:
        if _default is None:
            _default = StalenessScheduler()
        return _default
