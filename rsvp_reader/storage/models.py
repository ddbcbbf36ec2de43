"""Pydantic records persisted by the storage service.

WHY: Settings, documents and reading progress are written to JSON and
read back across versions of the app. Pydantic models validate what
comes off disk (a hand-edited settings file with "wpm": "fast" must not
reach the engine) and give every field a description for anyone reading
the files.

HOW: Three models mirror what the reading app keeps: ReaderSettings,
ReadingProgress and Document. Timestamps are epoch milliseconds.

RULES:
- All models use Field(description=...) for self-documenting records
- ReaderSettings defaults are the app defaults; stored values are merged
  over them, so new fields never break old files
- ReaderSettings.wpm is clamped to [100, 1000] on validation
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

import time
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from rsvp_reader.config import (
    DEFAULT_COMMA_DELAY,
    DEFAULT_NATURAL_READING,
    DEFAULT_PERIOD_DELAY,
    DEFAULT_WPM,
    clamp_wpm,
)
from rsvp_reader.core.state import EngineSettings


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class ReaderSettings(BaseModel):
    """User-facing reader settings.

    RULES:
    - wpm is clamped, never rejected
    - font_size / highlight_enabled / focus_point_enabled are kept for the
      presentation layer; the engine ignores them
    """

    wpm: int = Field(default=DEFAULT_WPM, description="Playback rate in words per minute.")
    font_size: int = Field(default=48, ge=1, description="Display font size for the current word.")
    highlight_enabled: bool = Field(
        default=True,
        description="Give feedback on playback events (e.g. haptics) in the host UI.",
    )
    focus_point_enabled: bool = Field(
        default=True,
        description="Highlight the optimal recognition point of each word.",
    )
    natural_reading_enabled: bool = Field(
        default=DEFAULT_NATURAL_READING,
        description="Use the tunable punctuation pauses below instead of the fixed ones.",
    )
    period_delay: float = Field(
        default=DEFAULT_PERIOD_DELAY,
        ge=0.0,
        description="Extra delay multiplier after '.', '!' or '?'.",
    )
    comma_delay: float = Field(
        default=DEFAULT_COMMA_DELAY,
        ge=0.0,
        description="Extra delay multiplier after ',', ';' or ':'.",
    )

    @field_validator("wpm", mode="before")
    @classmethod
    def _clamp_wpm(cls, value):
        if isinstance(value, bool):
            raise ValueError("wpm must be a number")
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                return value
        if isinstance(value, (int, float)):
            return clamp_wpm(value)
        return value

    def to_engine_settings(self) -> EngineSettings:
        return EngineSettings(
            wpm=self.wpm,
            natural_reading_enabled=self.natural_reading_enabled,
            period_delay=self.period_delay,
            comma_delay=self.comma_delay,
        )


class ReadingProgress(BaseModel):
    """Last known reading position for one document."""

    document_id: str = Field(description="Identifier of the document this progress belongs to.")
    current_word_index: int = Field(ge=0, description="Index of the word on screen when saved.")
    total_words: int = Field(ge=0, description="Word count of the document when saved.")
    wpm: int = Field(description="Playback rate when saved.")
    last_updated: int = Field(
        default_factory=now_ms,
        description="Save timestamp (Unix epoch milliseconds).",
    )


class Document(BaseModel):
    """An imported document and its plain-text content."""

    id: str = Field(description="Unique document identifier.")
    name: str = Field(description="Display name (original filename).")
    type: str = Field(description="Source format, e.g. 'txt'.")
    uri: str = Field(description="Where the document was imported from.")
    size: Optional[int] = Field(default=None, description="Source file size in bytes.")
    word_count: Optional[int] = Field(default=None, description="Number of words in content.")
    content: Optional[str] = Field(default=None, description="Cleaned plain-text content.")
    created_at: int = Field(
        default_factory=now_ms,
        description="Import timestamp (Unix epoch milliseconds).",
    )
