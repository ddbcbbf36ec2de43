"""Core playback modules: tokenizer, timing, scheduler and the RSVP engine.

WHY: The core package contains the only part of the reader with real
temporal logic. It has no I/O and no rendering, so it can be driven by a
terminal, a GUI or a test with a virtual clock.

HOW: state.py defines the value types, tokenizer.py turns text into a
word sequence, timing.py computes per-word delays and remaining time,
scheduler.py provides the one-shot delayed-callback port, and engine.py
is the state machine that ties them together.

RULES:
- Nothing in core reads files, touches storage or prints
- Snapshots are immutable values; the engine's state never escapes
"""

from rsvp_reader.core.engine import PlaybackStatus, RSVPEngine
from rsvp_reader.core.scheduler import (
    AsyncioScheduler,
    Scheduler,
    ThreadingScheduler,
    TimerHandle,
)
from rsvp_reader.core.state import EngineSettings, StateSnapshot

__all__ = [
    "AsyncioScheduler",
    "EngineSettings",
    "PlaybackStatus",
    "RSVPEngine",
    "Scheduler",
    "StateSnapshot",
    "ThreadingScheduler",
    "TimerHandle",
]
