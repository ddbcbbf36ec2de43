"""One-shot delayed-callback primitive and monotonic clock for the engine.

WHY: The engine's only external dependency is "run this once, N seconds
from now" plus a clock. Making that a port lets the same engine run on
a background timer thread (terminal player), on an asyncio event loop
(async hosts) or on a virtual clock (tests) without any change to the
playback logic.

HOW: Scheduler is an ABC with call_later() and monotonic(). call_later()
returns a TimerHandle whose cancel() is idempotent. Two implementations:
  ThreadingScheduler — one daemon threading.Timer per call
  AsyncioScheduler   — loop.call_later on a given event loop

RULES:
- call_later never blocks; it only arms a timer
- delay is in seconds; negative delays are treated as 0
- TimerHandle.cancel() may be called any number of times
- A cancelled callback never runs, unless it had already started;
  callers that need atomicity check a token under their own lock
- No periodic timers: every delay is computed anew
"""

from __future__ import annotations

import asyncio
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional


class TimerHandle(ABC):
    """Handle for a pending one-shot callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running. Idempotent."""

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        """True once cancel() has been called."""


class Scheduler(ABC):
    """Single-shot delayed-callback primitive plus a monotonic clock.

    To plug the engine into a new runtime:
    1. Subclass Scheduler and TimerHandle
    2. Implement call_later() and monotonic()
    3. Pass an instance to RSVPEngine(scheduler=...)
    """

    @abstractmethod
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay_s`` seconds.

        Args:
            delay_s: Delay in seconds. Values below zero mean "as soon as
                     possible".
            callback: Zero-argument callable.

        Returns:
            A TimerHandle that cancels the pending call.
        """

    @abstractmethod
    def monotonic(self) -> float:
        """Current time in seconds from a clock that never goes backwards."""


# ---------------------------------------------------------------------------
# threading
# ---------------------------------------------------------------------------


class _ThreadTimerHandle(TimerHandle):
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ThreadingScheduler(Scheduler):
    """Scheduler backed by daemon ``threading.Timer`` threads.

    WHY: The terminal player has no event loop; a timer thread per word
    keeps the main thread free to wait for Ctrl+C.

    RULES:
    - Callbacks run on a timer thread, not the caller's thread; the
      engine serializes them with its own lock
    - Timer threads are daemons so an interrupted process can exit
    """

    def __init__(self, name_prefix: str = "rsvp-tick") -> None:
        self._name_prefix = name_prefix
        self._count = 0

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        self._count += 1
        timer = threading.Timer(max(0.0, delay_s), callback)
        timer.name = "{}-{}".format(self._name_prefix, self._count)
        timer.daemon = True
        timer.start()
        return _ThreadTimerHandle(timer)

    def monotonic(self) -> float:
        return time.monotonic()


# ---------------------------------------------------------------------------
# asyncio
# ---------------------------------------------------------------------------


class _AsyncioTimerHandle(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle) -> None:
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop's ``call_later``.

    RULES:
    - call_later must be invoked from the loop's thread (asyncio rule)
    - When no loop is given, the running loop is looked up lazily on the
      first call
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        return _AsyncioTimerHandle(self.loop.call_later(max(0.0, delay_s), callback))

    def monotonic(self) -> float:
        return self.loop.time()
