# src/nisabwatch/adapters/persistence/file_store.py
"""
File Store - JSON Document Persistence

This module persists small JSON documents (price history, user preferences)
on the local filesystem. Writes are atomic (temp file + rename) so a crash
mid-write never leaves a truncated document behind, and a corrupt file is
backed up and treated as empty instead of crashing the bot.

Files that USE this module:
- nisabwatch.application.history (PriceHistoryStore keeps last quotes here)
- nisabwatch.application.preferences (LocalPreferencesStore keeps user settings here)

Files that this module USES:
- nisabwatch.domain.errors (PersistenceError)
"""
from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Optional

from nisabwatch.domain.errors import PersistenceError

log = logging.getLogger(__name__)


class JsonFileStore:
    """One JSON document at a fixed path."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _ensure_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def save(self, data: Any) -> None:
        """
        Save a JSON-serializable document using an atomic write.

        Uses temporary file + atomic rename to prevent race conditions and corrupted files.

        Raises:
            PersistenceError: If the document cannot be written
        """
        try:
            self._ensure_dir()
            temp_fd, temp_path = tempfile.mkstemp(
                suffix=".json.tmp",
                dir=str(self.path.parent),
                text=True,
            )
        except OSError as e:
            raise PersistenceError(f"Failed to prepare {self.path}: {e}") from e

        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())  # Ensure data is written to disk

            # Atomic rename (replaces target file atomically on Unix/Windows)
            os.replace(temp_path, str(self.path))
        except (OSError, TypeError, ValueError) as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise PersistenceError(f"Failed to save {self.path}: {e}") from e

    def load(self) -> Optional[Any]:
        """
        Load the document.

        Handles corrupt files gracefully: if JSON decoding fails, the file is
        backed up next to the original with a ``.corrupt`` suffix and removed.

        Returns:
            Parsed JSON, or None when the file is missing, unreadable or corrupt
        """
        if not self.path.exists():
            return None

        try:
            with self.path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            self._backup_corrupt(e)
            return None
        except OSError as e:
            log.error("Failed to read %s: %s", self.path, e)
            return None

    def _backup_corrupt(self, error: Exception) -> None:
        backup_path = self.path.with_suffix(".json.corrupt")
        try:
            shutil.copy2(self.path, backup_path)
            self.path.unlink()
            log.warning("%s corrupted (JSON decode error), backed up to %s: %s",
                        self.path, backup_path, error)
        except OSError as backup_error:
            log.error("Failed to backup corrupt file %s: %s", self.path, backup_error)
