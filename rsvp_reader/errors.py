"""Exception types for the collaborators around the playback engine.

WHY: The engine itself is total — every out-of-range input is clamped —
but the storage service and the document importer touch the filesystem
and can fail. Callers (the CLI, the session host) need one base class to
catch and report those failures without catching programming errors.

RULES:
- RSVPReaderError is the base for every error this package raises
- The engine never raises any of these
"""

from __future__ import annotations


class RSVPReaderError(Exception):
    """Base class for all rsvp_reader errors."""


class StorageError(RSVPReaderError):
    """A settings, document or progress record could not be written."""


class DocumentImportError(RSVPReaderError):
    """A document could not be imported (unsupported type or unreadable file)."""
