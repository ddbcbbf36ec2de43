"""Plain-text document import: format check, cleanup and Document creation.

WHY: The engine only consumes plain text. Something has to turn a file on
disk into that text and into a Document record the store can keep, so
the reader can come back to it and resume where it stopped.

HOW: get_file_extension()/is_supported_format() gate the file type,
parse_document() reads the file as UTF-8 and runs clean_text(), and
create_document() wraps the result in a Document with a fresh id, the
file size and the word count.

RULES:
- Only .txt is supported; anything else raises DocumentImportError
- clean_text: CRLF/CR → LF, 3+ newlines → 2, spaces/tabs runs → one space,
  strip leading/trailing whitespace
- Paragraph breaks survive cleanup; the engine's tokenizer treats them
  as ordinary whitespace
- Read failures are logged and re-raised as DocumentImportError
"""

from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path
from typing import Union

from rsvp_reader.core.tokenizer import count_words
from rsvp_reader.errors import DocumentImportError
from rsvp_reader.storage.models import Document

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = frozenset({".txt"})
"""Importable file extensions (lowercase, with dot)."""

_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
_INLINE_SPACE_RE = re.compile(r"[ \t]+")


def get_file_extension(filename: str) -> str:
    """Lowercase extension including the dot, or "" when there is none."""
    return Path(filename).suffix.lower()


def is_supported_format(filename: str) -> bool:
    return get_file_extension(filename) in SUPPORTED_FORMATS


def clean_text(text: str) -> str:
    """Normalize line endings and intra-line spacing of imported text."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _EXCESS_NEWLINES_RE.sub("\n\n", text)
    text = _INLINE_SPACE_RE.sub(" ", text)
    return text.strip()


def parse_document(path: Union[str, Path]) -> str:
    """Read a supported document and return its cleaned text.

    Raises:
        DocumentImportError: If the extension is unsupported or the file
            can't be read as UTF-8 text.
    """
    path = Path(path)
    if not is_supported_format(path.name):
        raise DocumentImportError(
            "Unsupported file format '{}'. Supported formats: {}".format(
                get_file_extension(path.name) or path.name,
                ", ".join(sorted(SUPPORTED_FORMATS)),
            )
        )

    try:
        raw = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Error reading text file %s: %s", path, e)
        raise DocumentImportError("Failed to read text file: {}".format(path)) from e

    return clean_text(raw)


def create_document(path: Union[str, Path]) -> Document:
    """Import ``path`` into a new Document record (not yet stored)."""
    path = Path(path)
    content = parse_document(path)
    document = Document(
        id=uuid.uuid4().hex,
        name=path.name,
        type=get_file_extension(path.name).lstrip("."),
        uri=str(path.resolve()),
        size=path.stat().st_size,
        word_count=count_words(content),
        content=content,
    )
    logger.info("Imported %s (%d words)", document.name, document.word_count)
    return document
