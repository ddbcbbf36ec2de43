"""Text normalization, word tokenization and punctuation classification.

WHY: RSVP shows exactly one token per tick, so the word sequence is the
unit everything else counts in: progress, remaining time, saved
position. Imported text arrives with mixed line endings, indentation and
blank lines; none of that may turn into an empty or whitespace-only
"word" that would flash a blank screen for a full tick.

HOW: Line endings are normalized to "\\n", then the text is split on runs
of whitespace. Punctuation is classified by the word's last character,
which is what the delay computation keys on.

RULES:
- CRLF and lone CR become LF before splitting
- Any run of whitespace (spaces, tabs, newlines) separates words
- No token is ever empty or whitespace-only
- Punctuation stays attached to its word ("world!" is one token)
- Sentence end: word ends with ".", "!" or "?"
- Clause end: word ends with ",", ";" or ":"
"""

from __future__ import annotations

import re
from typing import Tuple

from rsvp_reader.config import CLAUSE_END_CHARS, SENTENCE_END_CHARS

# Any line break style, collapsed to a single "\n".
_LINE_BREAK_RE = re.compile(r"\r\n?")

# One or more whitespace characters of any kind.
_WHITESPACE_RE = re.compile(r"\s+")

WordSequence = Tuple[str, ...]


def normalize_text(text: str) -> str:
    """Normalize line endings and collapse whitespace runs to one space.

    The result has no leading or trailing whitespace.
    """
    text = _LINE_BREAK_RE.sub("\n", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def tokenize(text: str) -> WordSequence:
    """Split text into an immutable sequence of non-empty words.

    Args:
        text: Arbitrary input text; may be empty.

    Returns:
        Tuple of words in reading order. Empty tuple for blank input.
    """
    normalized = normalize_text(text)
    if not normalized:
        return ()
    return tuple(word for word in normalized.split(" ") if word)


def count_words(text: str) -> int:
    return len(tokenize(text))


def is_sentence_end(word: str) -> bool:
    """True if the word ends with sentence-ending punctuation (. ! ?)."""
    return bool(word) and word[-1] in SENTENCE_END_CHARS


def is_clause_end(word: str) -> bool:
    """True if the word ends with clause punctuation (, ; :)."""
    return bool(word) and word[-1] in CLAUSE_END_CHARS
