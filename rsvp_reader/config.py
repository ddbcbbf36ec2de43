"""Configuration constants, reading-rate limits, and .env loading.

WHY: Rate limits, punctuation pause defaults and storage locations are
referenced by the engine, the storage defaults, the session host and the
CLI. Keeping them as plain module-level data makes them easy to find and
easy to override without touching logic.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level values. Environment variables override the user-facing
defaults (starting rate, data directory, autosave interval).

RULES:
- WPM is always clamped to [MIN_WPM, MAX_WPM]
- FIXED_PERIOD_DELAY / FIXED_COMMA_DELAY apply when natural reading is off
- DEFAULT_PERIOD_DELAY / DEFAULT_COMMA_DELAY are the tunable defaults
- All user-facing defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Reading rate
# ---------------------------------------------------------------------------

MIN_WPM = 100
MAX_WPM = 1000


def clamp_wpm(value: float) -> int:
    """Clamp a words-per-minute value to [MIN_WPM, MAX_WPM].

    Fractional rates are rounded to the nearest integer after clamping.
    """
    return int(round(max(MIN_WPM, min(MAX_WPM, value))))


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").strip().lower() in ("1", "true", "yes", "on")


DEFAULT_WPM = clamp_wpm(int(os.getenv("RSVP_DEFAULT_WPM", "300")))

# ---------------------------------------------------------------------------
# Per-word pause multipliers
# ---------------------------------------------------------------------------

LONG_WORD_THRESHOLD = 8
"""Words strictly longer than this many characters get LONG_WORD_DELAY."""

LONG_WORD_DELAY = 0.2

SENTENCE_END_CHARS = frozenset(".!?")
CLAUSE_END_CHARS = frozenset(",;:")

# Used when natural reading is disabled. Not zero: the reader still needs
# a beat at punctuation, it just can't be tuned.
FIXED_PERIOD_DELAY = 0.5
FIXED_COMMA_DELAY = 0.25

DEFAULT_PERIOD_DELAY = 0.5
DEFAULT_COMMA_DELAY = 0.25
DEFAULT_NATURAL_READING = _env_bool("RSVP_NATURAL_READING", True)

# ---------------------------------------------------------------------------
# Host / storage defaults
# ---------------------------------------------------------------------------

DEFAULT_AUTOSAVE_INTERVAL_S = float(os.getenv("RSVP_AUTOSAVE_INTERVAL", "10"))
DEFAULT_SKIP_COUNT = 10

DEFAULT_DATA_DIR = Path(
    os.getenv("RSVP_DATA_DIR", str(Path.home() / ".rsvp_reader"))
).expanduser()
