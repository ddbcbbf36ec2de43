"""Reader session: the host that connects one engine to storage.

WHY: The engine knows nothing about settings files or saved
positions. A reading session still needs both: it should open a document
where the reader left off, follow settings changes, save the position
every few seconds while reading, and notice when the document is
finished. ReaderSession is that glue, kept outside the engine so the
engine stays pure.

HOW: open() reads settings from the store, builds an RSVPEngine with them,
loads the content, restores saved progress through jump_to(), and arms
an autosave timer on the same Scheduler the engine uses. The engine's
listener is the session's own handler, which records the latest
snapshot, detects completion and forwards the snapshot to on_state.

RULES:
- A saved position at or past the end (finished or shrunk text)
  restores to the first word
- Autosave runs every autosave_interval_s and only saves when the
  position is past the first word
- Autosave is a self-renewing one-shot timer, like the engine's tick
- Storage failures during autosave/close are logged, never raised
- on_complete fires once each time playback reaches the end
- close() saves progress, stops autosave and destroys the engine;
  calling it again does nothing
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import asdict
from typing import Callable, Optional

from rsvp_reader.config import DEFAULT_AUTOSAVE_INTERVAL_S, DEFAULT_SKIP_COUNT
from rsvp_reader.core.engine import RSVPEngine, StateListener
from rsvp_reader.core.scheduler import Scheduler, ThreadingScheduler, TimerHandle
from rsvp_reader.core.state import StateSnapshot
from rsvp_reader.errors import StorageError
from rsvp_reader.storage.models import ReaderSettings, ReadingProgress
from rsvp_reader.storage.store import ReaderStore

logger = logging.getLogger(__name__)


class ReaderSession:
    """One open document being read.

    Args:
        document_id: Key used for saved progress.
        content: Plain text of the document.
        store: Storage service for settings and progress.
        scheduler: Shared by the engine and the autosave timer; a
                   ThreadingScheduler when None.
        on_state: Called with every StateSnapshot the engine emits.
        on_complete: Called when playback reaches the last word.
        autosave_interval_s: Seconds between progress snapshots.
        restore_progress: Jump to the saved position on open().
    """

    def __init__(
        self,
        document_id: str,
        content: str,
        store: ReaderStore,
        scheduler: Optional[Scheduler] = None,
        on_state: Optional[StateListener] = None,
        on_complete: Optional[Callable[[], None]] = None,
        autosave_interval_s: float = DEFAULT_AUTOSAVE_INTERVAL_S,
        restore_progress: bool = True,
    ) -> None:
        self.document_id = document_id
        self._content = content
        self._store = store
        self._scheduler = scheduler if scheduler is not None else ThreadingScheduler("rsvp-session")
        self._on_state = on_state
        self._on_complete = on_complete
        self._autosave_interval_s = autosave_interval_s
        self._restore_progress = restore_progress

        self._lock = threading.Lock()
        self._engine: Optional[RSVPEngine] = None
        self._settings: Optional[ReaderSettings] = None
        self._state = StateSnapshot.empty()
        self._autosave_handle: Optional[TimerHandle] = None
        self._completed = False
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> StateSnapshot:
        """Create the engine, load content, restore position, start autosave."""
        if self._engine is not None:
            return self.state

        settings = self._store.get_settings()
        self._settings = settings

        engine = RSVPEngine(
            self._handle_state,
            scheduler=self._scheduler,
            settings=settings.to_engine_settings(),
        )
        engine.load_content(self._content)

        if self._restore_progress:
            saved = self._store.get_progress(self.document_id)
            if saved is not None and saved.current_word_index > 0:
                if saved.current_word_index >= engine.total_words:
                    # Finished last time; the next run reads it again from the top.
                    logger.info("%s was read to the end, starting over", self.document_id)
                else:
                    logger.info(
                        "Restoring %s at word %d",
                        self.document_id,
                        saved.current_word_index,
                    )
                    engine.jump_to(saved.current_word_index)

        self._engine = engine
        self._state = engine.get_state()
        self._schedule_autosave()
        return self._state

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        with self._lock:
            if self._autosave_handle is not None:
                self._autosave_handle.cancel()
                self._autosave_handle = None

        if self._engine is not None:
            self._engine.pause()
            self._save_quietly()
            self._engine.destroy()
        logger.debug("Closed session for %s", self.document_id)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def engine(self) -> RSVPEngine:
        if self._engine is None:
            raise RuntimeError("Session is not open")
        return self._engine

    @property
    def state(self) -> StateSnapshot:
        return self._state

    @property
    def settings(self) -> Optional[ReaderSettings]:
        return self._settings

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def play(self) -> None:
        self.engine.play()

    def pause(self) -> None:
        self.engine.pause()

    def toggle_play(self) -> None:
        if self.engine.is_playing:
            self.engine.pause()
        else:
            self.engine.play()

    def skip(self, count: int = DEFAULT_SKIP_COUNT) -> None:
        self.engine.skip(count)

    def rewind(self, count: int = DEFAULT_SKIP_COUNT) -> None:
        self.engine.rewind(count)

    def jump_to_percent(self, percent: float) -> None:
        """Jump to ``percent`` (0–100) of the document."""
        total = self.engine.total_words
        self.engine.jump_to(int(math.floor((percent / 100.0) * total)))

    def set_speed(self, wpm: float) -> None:
        """Change the rate now and remember it in the stored settings."""
        engine = self.engine
        engine.set_wpm(wpm)
        settings = self._store.get_settings().model_copy(update={"wpm": engine.wpm})
        self._store.save_settings(settings)
        self._settings = settings

    def reload_settings(self) -> ReaderSettings:
        """Re-read stored settings and apply them to the running engine."""
        settings = self._store.get_settings()
        self._settings = settings
        self.engine.apply_settings(asdict(settings.to_engine_settings()))
        logger.info("Settings reloaded, WPM: %d", settings.wpm)
        return settings

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def save_progress(self) -> Optional[ReadingProgress]:
        """Write the current position to storage.

        Returns the saved record, or None when still on the first word.

        Raises:
            StorageError: If the progress file can't be written.
        """
        state = self.engine.get_state()
        if state.current_index <= 0:
            return None
        progress = ReadingProgress(
            document_id=self.document_id,
            current_word_index=state.current_index,
            total_words=state.total_words,
            wpm=self.engine.wpm,
        )
        self._store.save_progress(progress)
        return progress

    def _save_quietly(self) -> None:
        try:
            self.save_progress()
        except StorageError:
            logger.exception("Failed to save progress for %s", self.document_id)

    def _schedule_autosave(self) -> None:
        if self._autosave_interval_s <= 0:
            return
        with self._lock:
            if self._closed:
                return
            self._autosave_handle = self._scheduler.call_later(
                self._autosave_interval_s, self._autosave_tick
            )

    def _autosave_tick(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._autosave_handle = None
        self._save_quietly()
        self._schedule_autosave()

    # ------------------------------------------------------------------
    # Engine listener
    # ------------------------------------------------------------------

    def _handle_state(self, snapshot: StateSnapshot) -> None:
        self._state = snapshot

        finished = (
            snapshot.total_words > 0
            and snapshot.current_index >= snapshot.total_words
            and not snapshot.is_playing
        )

        if self._on_state is not None:
            self._on_state(snapshot)

        if finished and not self._completed:
            self._completed = True
            logger.info("Finished reading %s", self.document_id)
            if self._on_complete is not None:
                self._on_complete()
        elif not finished:
            self._completed = False
