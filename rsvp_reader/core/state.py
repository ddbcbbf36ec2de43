"""Value types exchanged between the RSVP engine and its host.

WHY: The engine owns its playback state exclusively. Hosts (a terminal
player, a GUI, the session adapter) only ever see copies. Frozen
dataclasses make that contract structural: a snapshot handed to an
observer cannot be mutated, so an observer can keep it, compare it, or
pass it across threads without affecting the engine.

HOW: Two dataclasses:
  StateSnapshot  — what the observer receives on every state change
  EngineSettings — the tunables the engine reads when computing delays

RULES:
- Both types are frozen; "changing" one means building a new instance
- percentage is an integer 0–100, 0 when there are no words
- current_word is "" when the sequence is empty or playback has finished
- EngineSettings clamps wpm and the punctuation delays on construction
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict

from rsvp_reader.config import (
    DEFAULT_COMMA_DELAY,
    DEFAULT_NATURAL_READING,
    DEFAULT_PERIOD_DELAY,
    DEFAULT_WPM,
    clamp_wpm,
)


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable view of the engine's playback state at one instant.

    RULES:
    - current_index: position of the word on screen; equals total_words
      only in the final snapshot after playback runs to completion
    - words_remaining: max(0, total_words - current_index)
    - time_remaining: formatted "Ns" or "Mm Ns" at the current rate
    """

    current_word: str
    current_index: int
    total_words: int
    percentage: int
    time_remaining: str
    words_remaining: int
    is_playing: bool

    @classmethod
    def empty(cls) -> "StateSnapshot":
        """The snapshot of an engine with nothing loaded."""
        return cls(
            current_word="",
            current_index=0,
            total_words=0,
            percentage=0,
            time_remaining="0s",
            words_remaining=0,
            is_playing=False,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class EngineSettings:
    """Settings-derived configuration the engine consults on every tick.

    WHY: In the reading app these values come from persisted user
    settings. The engine must not reach into storage, so the host passes
    them in (at construction or through RSVPEngine.apply_settings).

    RULES:
    - wpm: clamped to [100, 1000]
    - natural_reading_enabled: when False, period_delay and comma_delay
      are ignored and the fixed defaults (0.5 / 0.25) apply instead
    - period_delay / comma_delay: extra multipliers added at sentence and
      clause punctuation; negative values are clamped to 0
    """

    wpm: int = DEFAULT_WPM
    natural_reading_enabled: bool = DEFAULT_NATURAL_READING
    period_delay: float = DEFAULT_PERIOD_DELAY
    comma_delay: float = DEFAULT_COMMA_DELAY

    def __post_init__(self) -> None:
        object.__setattr__(self, "wpm", clamp_wpm(self.wpm))
        object.__setattr__(self, "period_delay", max(0.0, float(self.period_delay)))
        object.__setattr__(self, "comma_delay", max(0.0, float(self.comma_delay)))

    @classmethod
    def field_names(cls) -> frozenset:
        return frozenset(f.name for f in fields(cls))

    def with_updates(self, **changes: Any) -> "EngineSettings":
        """Return a copy with the recognized keys in ``changes`` applied.

        Unknown keys are dropped silently; callers that want to know about
        them compare against field_names().
        """
        known = {k: v for k, v in changes.items() if k in self.field_names()}
        return replace(self, **known)
