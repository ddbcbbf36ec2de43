"""File-backed store for settings, documents and reading progress.

WHY: The reader needs to remember three things between runs: the user's
settings, the imported documents, and where the user stopped in each
one. The engine must not know about any of that; the session host and
the CLI talk to this store instead.

HOW: One JSON file per collection inside a data directory:
  documents.json — list of Document records, newest first
  progress.json  — {document_id: ReadingProgress}
  settings.json  — ReaderSettings (partial files are merged over defaults)
Reads parse with pydantic; writes go to a temp file that replaces the
target, so a crash mid-write never leaves half a file behind.

RULES:
- All public methods that touch files acquire self._lock
- Getters never raise: missing or corrupt files yield defaults / None
  and a logged warning
- Writers raise StorageError (after logging) when the file can't be written
- save_document() replaces by id or inserts at the front
- delete_document() also deletes the document's progress
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from rsvp_reader.errors import StorageError
from rsvp_reader.storage.models import Document, ReaderSettings, ReadingProgress

logger = logging.getLogger(__name__)

DOCUMENTS_FILE = "documents.json"
PROGRESS_FILE = "progress.json"
SETTINGS_FILE = "settings.json"


class ReaderStore:
    """Thread-safe JSON store rooted at ``data_dir``.

    The directory is created on first write, not on construction.
    """

    def __init__(self, data_dir: Union[str, Path]) -> None:
        self.data_dir = Path(data_dir)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def save_document(self, document: Document) -> None:
        with self._lock:
            documents = self.get_documents()
            for i, existing in enumerate(documents):
                if existing.id == document.id:
                    documents[i] = document
                    break
            else:
                documents.insert(0, document)
            self._write(DOCUMENTS_FILE, [d.model_dump() for d in documents])
        logger.info("Saved document %s (%s)", document.id, document.name)

    def get_documents(self) -> List[Document]:
        with self._lock:
            data = self._read(DOCUMENTS_FILE, [])
        if not isinstance(data, list):
            logger.warning("Ignoring malformed %s", DOCUMENTS_FILE)
            return []
        documents: List[Document] = []
        for item in data:
            try:
                documents.append(Document.model_validate(item))
            except ValidationError:
                logger.warning("Skipping invalid document record in %s", DOCUMENTS_FILE)
        return documents

    def get_document(self, document_id: str) -> Optional[Document]:
        """Return the document with ``document_id``, or None if not found."""
        for document in self.get_documents():
            if document.id == document_id:
                return document
        return None

    def delete_document(self, document_id: str) -> bool:
        """Delete a document and its progress. Returns False if it wasn't stored."""
        with self._lock:
            documents = self.get_documents()
            remaining = [d for d in documents if d.id != document_id]
            if len(remaining) == len(documents):
                return False
            self._write(DOCUMENTS_FILE, [d.model_dump() for d in remaining])
            self.delete_progress(document_id)
        logger.info("Deleted document %s", document_id)
        return True

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def save_progress(self, progress: ReadingProgress) -> None:
        with self._lock:
            all_progress = self.get_all_progress()
            all_progress[progress.document_id] = progress
            self._write(
                PROGRESS_FILE,
                {doc_id: p.model_dump() for doc_id, p in all_progress.items()},
            )
        logger.debug(
            "Saved progress for %s at word %d/%d",
            progress.document_id,
            progress.current_word_index,
            progress.total_words,
        )

    def get_progress(self, document_id: str) -> Optional[ReadingProgress]:
        return self.get_all_progress().get(document_id)

    def get_all_progress(self) -> Dict[str, ReadingProgress]:
        with self._lock:
            data = self._read(PROGRESS_FILE, {})
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed %s", PROGRESS_FILE)
            return {}
        result: Dict[str, ReadingProgress] = {}
        for doc_id, item in data.items():
            try:
                result[doc_id] = ReadingProgress.model_validate(item)
            except ValidationError:
                logger.warning("Skipping invalid progress record for %s", doc_id)
        return result

    def delete_progress(self, document_id: str) -> None:
        """Remove saved progress. Best-effort: failures are logged, not raised."""
        with self._lock:
            all_progress = self.get_all_progress()
            if all_progress.pop(document_id, None) is None:
                return
            try:
                self._write(
                    PROGRESS_FILE,
                    {doc_id: p.model_dump() for doc_id, p in all_progress.items()},
                )
            except StorageError:
                logger.warning("Failed to delete progress for %s", document_id)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def save_settings(self, settings: ReaderSettings) -> None:
        with self._lock:
            self._write(SETTINGS_FILE, settings.model_dump())
        logger.debug("Saved settings (wpm=%d)", settings.wpm)

    def get_settings(self) -> ReaderSettings:
        """Stored settings merged over defaults; defaults if unreadable."""
        with self._lock:
            data = self._read(SETTINGS_FILE, {})
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed %s", SETTINGS_FILE)
            return ReaderSettings()
        try:
            return ReaderSettings.model_validate(data)
        except ValidationError:
            logger.warning("Invalid %s, falling back to defaults", SETTINGS_FILE)
            return ReaderSettings()

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    def clear_all(self) -> None:
        """Remove every stored collection."""
        with self._lock:
            for name in (DOCUMENTS_FILE, PROGRESS_FILE, SETTINGS_FILE):
                path = self.data_dir / name
                try:
                    path.unlink()
                except FileNotFoundError:
                    continue
                except OSError as e:
                    logger.error("Failed to remove %s: %s", path, e)
                    raise StorageError("Failed to clear {}: {}".format(path, e)) from e
        logger.info("Cleared all data in %s", self.data_dir)

    def _read(self, name: str, default: Any) -> Any:
        path = self.data_dir / name
        if not path.is_file():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Could not read %s: %s", path, e)
            return default

    def _write(self, name: str, data: Any) -> None:
        path = self.data_dir / name
        tmp_name = None
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".{}.".format(name), dir=str(self.data_dir))
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except OSError as e:
            logger.error("Error saving %s: %s", path, e)
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError("Failed to write {}: {}".format(path, e)) from e
