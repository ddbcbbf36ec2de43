"""Persistence for reader settings, documents and reading progress.

RULES:
- models.py holds the pydantic records, store.py the JSON file store
- Nothing in core imports from here
"""

from rsvp_reader.storage.models import Document, ReaderSettings, ReadingProgress
from rsvp_reader.storage.store import ReaderStore

__all__ = ["Document", "ReaderSettings", "ReaderStore", "ReadingProgress"]
