"""Shared test fixtures for the rsvp_reader test suite.

WHY: The engine's behavior is all about time: which word is on screen
after how many milliseconds. Real timers make such tests slow and flaky.
A virtual-clock Scheduler lets tests step through ticks one at a time and
assert on exact due times.

HOW: FakeScheduler implements the Scheduler port with a list of pending
FakeTimerHandles and a manually advanced clock. Fixtures provide a fresh
scheduler, an engine wired to it with a recording listener, and a
file-backed store in tmp_path.

RULES:
- Time only moves when a test calls advance(), run_next() or run_until_idle()
- Timers fire in due-time order; ties fire in scheduling order
- Cancelled timers never fire
"""

from __future__ import annotations

from typing import Callable, List, Optional

import pytest

from rsvp_reader.core.engine import RSVPEngine
from rsvp_reader.core.scheduler import Scheduler, TimerHandle
from rsvp_reader.core.state import EngineSettings, StateSnapshot
from rsvp_reader.storage.store import ReaderStore


# ---------------------------------------------------------------------------
# Virtual clock scheduler
# ---------------------------------------------------------------------------


class FakeTimerHandle(TimerHandle):
    def __init__(self, scheduler: "FakeScheduler", due: float, seq: int, callback: Callable[[], None]) -> None:
        self.scheduler = scheduler
        self.due = due
        self.seq = seq
        self.callback = callback
        self.delay_s = 0.0
        self.fired = False
        self._cancelled = False

    def cancel(self) -> None:
        if not self._cancelled:
            self.scheduler.cancel_count += 1
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def fire(self) -> None:
        """Run the callback directly, as a timer thread that already woke up would."""
        self.callback()


class FakeScheduler(Scheduler):
    def __init__(self) -> None:
        self.now = 0.0
        self.handles: List[FakeTimerHandle] = []
        self.cancel_count = 0
        self._seq = 0

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        self._seq += 1
        handle = FakeTimerHandle(self, self.now + max(0.0, delay_s), self._seq, callback)
        handle.delay_s = delay_s
        self.handles.append(handle)
        return handle

    def monotonic(self) -> float:
        return self.now

    @property
    def pending(self) -> List[FakeTimerHandle]:
        return sorted(
            (h for h in self.handles if not h.cancelled and not h.fired),
            key=lambda h: (h.due, h.seq),
        )

    def next_handle(self) -> Optional[FakeTimerHandle]:
        pending = self.pending
        return pending[0] if pending else None

    def run_next(self) -> Optional[FakeTimerHandle]:
        """Jump the clock to the earliest pending timer and fire it."""
        handle = self.next_handle()
        if handle is None:
            return None
        self.now = max(self.now, handle.due)
        handle.fired = True
        handle.callback()
        return handle

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing every timer due on the way."""
        target = self.now + seconds
        while True:
            handle = self.next_handle()
            if handle is None or handle.due > target + 1e-9:
                break
            self.run_next()
        self.now = target

    def run_until_idle(self, max_steps: int = 10_000) -> int:
        steps = 0
        while self.next_handle() is not None:
            if steps >= max_steps:
                raise AssertionError("Scheduler never went idle")
            self.run_next()
            steps += 1
        return steps


class Recorder:
    """State listener that keeps every snapshot it receives."""

    def __init__(self) -> None:
        self.snapshots: List[StateSnapshot] = []

    def __call__(self, snapshot: StateSnapshot) -> None:
        self.snapshots.append(snapshot)

    @property
    def last(self) -> StateSnapshot:
        return self.snapshots[-1]

    @property
    def words(self) -> List[str]:
        return [s.current_word for s in self.snapshots]

    def clear(self) -> None:
        self.snapshots.clear()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def make_engine(scheduler, recorder):
    """Factory for engines on the fake scheduler, reporting to ``recorder``."""

    def _make(text: Optional[str] = None, **settings) -> RSVPEngine:
        engine = RSVPEngine(
            recorder,
            scheduler=scheduler,
            settings=EngineSettings(**settings) if settings else EngineSettings(wpm=300),
        )
        if text is not None:
            engine.load_content(text)
        return engine

    return _make


@pytest.fixture
def store(tmp_path) -> ReaderStore:
    return ReaderStore(tmp_path / "data")


@pytest.fixture
def sample_text() -> str:
    """Two sentences with long words and every punctuation class."""
    return (
        "The quick brown fox jumps over the lazy dog. "
        "Meanwhile, extraordinarily patient readers wait; nothing happens!"
    )
