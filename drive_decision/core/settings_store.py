"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/core/settings_store.py
Description: JSON-file persistence for the user's settings snapshot.

The fare engine never reads or writes storage itself. This store is the
collaborator that owns the file; callers take a snapshot from it and pass
that snapshot into the analyzer.
"""

import json
import logging
import os
import tempfile
from threading import RLock
from typing import Any, Mapping, Optional

from .config import SettingsSnapshot

logger = logging.getLogger(__name__)


class SettingsStore:
    """Thread-safe loader/saver for a SettingsSnapshot JSON file.

    Attributes:
        path: Location of the JSON file.
        _cached: Last snapshot loaded or saved, None until first access.
        _lock: Reentrant lock guarding file access and the cache.
    """

    def __init__(self, path: str = "config/settings.json") -> None:
        if not path:
            raise ValueError("path cannot be empty")
        self.path = path
        self._cached: Optional[SettingsSnapshot] = None
        self._lock = RLock()

    def load(self) -> SettingsSnapshot:
        """Return the stored snapshot, or defaults when the file does not exist."""
        with self._lock:
            if self._cached is not None:
                return self._cached
            try:
                self._cached = SettingsSnapshot.load_from_file(self.path)
            except FileNotFoundError:
                logger.info(f"No settings file at {self.path}; using defaults")
                self._cached = SettingsSnapshot()
            return self._cached

    def save(self, snapshot: SettingsSnapshot) -> None:
        """Write the snapshot atomically (temp file + rename)."""
        if not isinstance(snapshot, SettingsSnapshot):
            raise TypeError("snapshot must be a SettingsSnapshot")

        with self._lock:
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
            try:
                with os.fdopen(fd, 'w') as f:
                    json.dump(snapshot.to_dict(), f, indent=2)
                os.replace(tmp_path, self.path)
            except OSError:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
            self._cached = snapshot
            logger.info(f"Settings saved to {self.path}")

    def update(self, changes: Mapping[str, Any]) -> SettingsSnapshot:
        """Merge `changes` into the stored snapshot, clamp, persist and return it."""
        with self._lock:
            updated = self.load().merged(changes)
            self.save(updated)
            return updated
