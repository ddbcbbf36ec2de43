"""Per-word display delay, remaining-time formatting and progress math.

WHY: A flat words-per-minute rate reads like a metronome. Readers need a
little longer on long words and a beat at the end of a clause or
sentence. The delay computation is the key algorithm of the reader, so it
lives in one pure function that the engine, the tests and any timeline
preview can all call.

HOW:
  base       = 60 / wpm * 1000           (milliseconds per word)
  multiplier = 1.0
             + 0.2                        if len(word) > 8
             + period_delay (or 0.5)      if word ends with . ! ?
             + comma_delay  (or 0.25)     if word ends with , ; :
  delay      = base * multiplier

Multipliers are additive, never compounding.

RULES:
- With natural reading disabled the fixed 0.5 / 0.25 apply, not zero
- wpm is clamped to [100, 1000] before use
- Remaining time: "{s}s" under a minute, else "{m}m {s}s"
  (seconds rounded half-up, minutes floored, remainder rounded)
- percentage: round(index / total * 100), 0 when total is 0
"""

from __future__ import annotations

import math
from typing import Optional

from rsvp_reader.config import (
    FIXED_COMMA_DELAY,
    FIXED_PERIOD_DELAY,
    LONG_WORD_DELAY,
    LONG_WORD_THRESHOLD,
    clamp_wpm,
)
from rsvp_reader.core.state import EngineSettings
from rsvp_reader.core.tokenizer import is_clause_end, is_sentence_end


def base_delay_ms(wpm: float) -> float:
    """Milliseconds per word at the given rate, ignoring punctuation."""
    return (60.0 / clamp_wpm(wpm)) * 1000.0


def delay_multiplier(word: str, settings: Optional[EngineSettings] = None) -> float:
    """Additive pause multiplier for a word.

    Args:
        word: The token about to be displayed.
        settings: Engine settings; defaults are used when None.

    Returns:
        1.0 plus the long-word and punctuation extras that apply.
    """
    if settings is None:
        settings = EngineSettings()

    multiplier = 1.0
    if len(word) > LONG_WORD_THRESHOLD:
        multiplier += LONG_WORD_DELAY
    if is_sentence_end(word):
        multiplier += settings.period_delay if settings.natural_reading_enabled else FIXED_PERIOD_DELAY
    if is_clause_end(word):
        multiplier += settings.comma_delay if settings.natural_reading_enabled else FIXED_COMMA_DELAY
    return multiplier


def compute_word_delay(word: str, settings: Optional[EngineSettings] = None) -> float:
    """How long ``word`` stays on screen, in milliseconds."""
    if settings is None:
        settings = EngineSettings()
    return base_delay_ms(settings.wpm) * delay_multiplier(word, settings)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_duration(seconds: float) -> str:
    """Format seconds as "Ns" below one minute, "Mm Ns" otherwise."""
    if seconds < 60:
        return "{}s".format(_round_half_up(seconds))
    minutes = int(math.floor(seconds / 60))
    secs = _round_half_up(seconds % 60)
    return "{}m {}s".format(minutes, secs)


def format_time_remaining(words_remaining: int, wpm: float) -> str:
    """Estimated reading time for ``words_remaining`` words at ``wpm``.

    Uses the flat rate; punctuation pauses are not included.
    """
    seconds = (max(0, words_remaining) / clamp_wpm(wpm)) * 60.0
    return format_duration(seconds)


def progress_percentage(current_index: int, total_words: int) -> int:
    if total_words <= 0:
        return 0
    return _round_half_up((current_index / total_words) * 100)
