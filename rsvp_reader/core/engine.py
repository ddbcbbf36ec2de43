"""RSVP playback engine: word sequence, position, rate and the tick loop.

WHY: Speed reading by Rapid Serial Visual Presentation needs one component
that knows which word is on screen, how long it stays there, and when to
move on. Everything around it (file import, storage, rendering) is a
collaborator that talks to the engine through a small, synchronous API
and a single state listener.

HOW: Two states, PAUSED (initial) and PLAYING. play() arms one one-shot
timer for the current word. When it fires, the tick advances the index,
arms the next timer with that word's own delay and emits a snapshot.
Reaching the end pauses the engine and emits a final snapshot. The
timer chain is self-renewing; there is never a fixed-interval ticker,
because every word has its own delay.

RULES:
- At most one pending timer, and only while PLAYING
- Every transition out of PLAYING cancels the pending timer first
- Each armed timer carries a token; a tick whose token is stale is
  dropped, so a timer thread that already fired cannot resurrect
  playback after pause/stop/load/destroy
- All state changes and ticks run under one re-entrant lock; listeners
  are called synchronously under that lock and may call back in
- skip/rewind/jump_to never change PLAYING/PAUSED; while playing they
  re-arm the timer with the new word's delay, unless clamping left the
  position where it was
- set_wpm/apply_settings never touch the timer already in flight
- No operation raises for out-of-range input; values are clamped
- After destroy() nothing is emitted and play() does nothing
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Any, Callable, Mapping, Optional

from rsvp_reader.config import clamp_wpm
from rsvp_reader.core.scheduler import Scheduler, ThreadingScheduler, TimerHandle
from rsvp_reader.core.state import EngineSettings, StateSnapshot
from rsvp_reader.core.timing import (
    compute_word_delay,
    format_time_remaining,
    progress_percentage,
)
from rsvp_reader.core.tokenizer import WordSequence, tokenize

logger = logging.getLogger(__name__)

StateListener = Callable[[StateSnapshot], None]


class PlaybackStatus(str, enum.Enum):
    """Engine state machine states.

    RULES:
    - paused: initial state; no timer pending
    - playing: exactly one timer pending
    """

    PAUSED = "paused"
    PLAYING = "playing"


class RSVPEngine:
    """Word-at-a-time playback with per-word delays.

    WHY: Owns the only temporal logic in the reader: the word sequence,
    the current position, the rate and the suspend/resume timer loop.

    HOW: Hosts construct it with an optional listener, an optional
    Scheduler (threading timers by default) and optional EngineSettings,
    then drive it with load_content/play/pause/... Every state-affecting
    call emits a fresh StateSnapshot to the listener.

    RULES:
    - current_index is in [0, total_words - 1] while words are loaded,
      0 when empty, and total_words only right after completion
    - wpm is always within [100, 1000]
    - get_state() is a pure read
    """

    def __init__(
        self,
        on_state_change: Optional[StateListener] = None,
        scheduler: Optional[Scheduler] = None,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self._listener: Optional[StateListener] = on_state_change
        self._scheduler: Scheduler = scheduler if scheduler is not None else ThreadingScheduler()
        self._settings: EngineSettings = settings if settings is not None else EngineSettings()
        self._lock = threading.RLock()

        self._words: WordSequence = ()
        self._index = 0
        self._status = PlaybackStatus.PAUSED
        self._timer: Optional[TimerHandle] = None
        self._tick_token = 0
        self._tick_due_at: Optional[float] = None
        self._destroyed = False

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def words(self) -> WordSequence:
        return self._words

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def total_words(self) -> int:
        return len(self._words)

    @property
    def wpm(self) -> int:
        return self._settings.wpm

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def status(self) -> PlaybackStatus:
        return self._status

    @property
    def is_playing(self) -> bool:
        return self._status is PlaybackStatus.PLAYING

    @property
    def has_pending_tick(self) -> bool:
        return self._timer is not None

    def set_listener(self, listener: Optional[StateListener]) -> None:
        """Register (or clear, with None) the single state listener."""
        with self._lock:
            if self._destroyed:
                return
            self._listener = listener

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def load_content(self, text: str) -> None:
        """Replace the word sequence and rewind to the first word.

        Cancels any running playback. Never starts playback on its own.
        """
        with self._lock:
            self._cancel_timer()
            self._status = PlaybackStatus.PAUSED
            self._words = tokenize(text)
            self._index = 0
            logger.debug("Loaded %d words", len(self._words))
            self._emit()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def play(self) -> None:
        """Start playback from the current word.

        Does nothing when already playing, when no words are loaded or
        after destroy(). Playback that previously ran to the end restarts
        from the first word.
        """
        with self._lock:
            if self._destroyed or self.is_playing or not self._words:
                return
            if self._index >= len(self._words):
                self._index = 0

            self._status = PlaybackStatus.PLAYING
            self._schedule_tick()
            logger.debug("Playback started at word %d at %d wpm", self._index, self.wpm)
            self._emit()

    def pause(self) -> None:
        """Stop the tick loop and keep the current position."""
        with self._lock:
            self._cancel_timer()
            self._status = PlaybackStatus.PAUSED
            self._emit()

    def stop(self) -> None:
        """Pause and rewind to the first word."""
        with self._lock:
            self._cancel_timer()
            self._status = PlaybackStatus.PAUSED
            self._index = 0
            self._emit()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def skip(self, count: int = 1) -> None:
        """Move forward ``count`` words, clamped to the last word."""
        with self._lock:
            self._move_to(self._index + int(count))

    def rewind(self, count: int = 1) -> None:
        """Move back ``count`` words, clamped to the first word."""
        with self._lock:
            self._move_to(self._index - int(count))

    def jump_to(self, index: int) -> None:
        """Move to ``index``, clamped to the valid range."""
        with self._lock:
            self._move_to(int(index))

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_wpm(self, wpm: float) -> None:
        """Set the playback rate, clamped to [100, 1000].

        The timer already in flight keeps its delay; the new rate applies
        from the next word on.
        """
        with self._lock:
            self._settings = self._settings.with_updates(wpm=clamp_wpm(wpm))
            self._emit()

    def apply_settings(self, partial: Optional[Mapping[str, Any]] = None, **changes: Any) -> None:
        """Merge recognized settings into the engine.

        Recognized keys: wpm, natural_reading_enabled, period_delay,
        comma_delay. Unknown keys are ignored. Like set_wpm, changes apply
        from the next scheduled word.
        """
        merged = dict(partial or {})
        merged.update(changes)
        unknown = set(merged) - EngineSettings.field_names()
        if unknown:
            logger.debug("Ignoring unknown engine settings: %s", ", ".join(sorted(unknown)))

        with self._lock:
            self._settings = self._settings.with_updates(**merged)
            self._emit()

    # ------------------------------------------------------------------
    # Snapshot / teardown
    # ------------------------------------------------------------------

    def get_state(self) -> StateSnapshot:
        """Current snapshot. No side effects."""
        with self._lock:
            return self._snapshot()

    def destroy(self) -> None:
        """Cancel any pending tick and drop the listener. Idempotent."""
        with self._lock:
            self._cancel_timer()
            self._status = PlaybackStatus.PAUSED
            self._listener = None
            self._destroyed = True

    # ------------------------------------------------------------------
    # Internals (caller holds self._lock)
    # ------------------------------------------------------------------

    def _clamp_index(self, index: int) -> int:
        if not self._words:
            return 0
        return max(0, min(index, len(self._words) - 1))

    def _move_to(self, index: int) -> None:
        target = self._clamp_index(index)
        moved = target != self._index
        self._index = target
        if moved and self.is_playing:
            # The in-flight delay belongs to the word we just left.
            self._cancel_timer()
            self._schedule_tick()
        self._emit()

    def _schedule_tick(self) -> None:
        word = self._words[self._index]
        delay_ms = compute_word_delay(word, self._settings)

        self._tick_token += 1
        token = self._tick_token
        self._tick_due_at = self._scheduler.monotonic() + delay_ms / 1000.0
        self._timer = self._scheduler.call_later(
            delay_ms / 1000.0, lambda: self._on_tick(token)
        )

    def _cancel_timer(self) -> None:
        # Bumping the token invalidates a tick that already left the timer.
        self._tick_token += 1
        self._tick_due_at = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_tick(self, token: int) -> None:
        with self._lock:
            if token != self._tick_token or not self.is_playing:
                logger.debug("Dropping stale tick %d", token)
                return

            if self._tick_due_at is not None:
                lateness_ms = (self._scheduler.monotonic() - self._tick_due_at) * 1000.0
                if lateness_ms > 50:
                    logger.debug("Tick fired %.1f ms late", lateness_ms)

            self._timer = None
            self._tick_due_at = None
            self._index += 1

            if self._index >= len(self._words):
                self._index = len(self._words)
                self._status = PlaybackStatus.PAUSED
                logger.info("Playback complete (%d words)", len(self._words))
                self._emit()
                return

            self._schedule_tick()
            self._emit()

    def _snapshot(self) -> StateSnapshot:
        total = len(self._words)
        words_remaining = max(0, total - self._index)
        current_word = self._words[self._index] if self._index < total else ""
        return StateSnapshot(
            current_word=current_word,
            current_index=self._index,
            total_words=total,
            percentage=progress_percentage(self._index, total),
            time_remaining=format_time_remaining(words_remaining, self.wpm),
            words_remaining=words_remaining,
            is_playing=self.is_playing,
        )

    def _emit(self) -> None:
        listener = self._listener
        if listener is None:
            return
        snapshot = self._snapshot()
        try:
            listener(snapshot)
        except Exception:
            logger.exception("State listener failed at word %d", snapshot.current_index)
