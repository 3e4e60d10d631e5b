"""JSON persistence with atomic writes for version history and dialogue sessions."""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from .exceptions import SessionNotFoundError

logger = logging.getLogger(__name__)

SESSION_ID_RE = re.compile(r"^[\w.-]+$")


class JsonFilePersistence:
    """Loads and saves one JSON document, replacing the file atomically."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self, default: Any = None) -> Any:
        """
        Load the document from disk.
        Returns `default` when the file is missing or unreadable.
        """
        if not self.path.exists():
            return default

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            logger.info(f"Loaded {self.path}")
            return data
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load {self.path}: {e}")
            return default

    def save(self, data: Any) -> bool:
        """
        Save the document with an atomic write.
        Returns True on success, False on failure.
        """
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)

            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())

            temp_path.replace(self.path)
            logger.debug(f"Saved {self.path}")
            return True

        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save {self.path}: {e}")
            if temp_path.exists():
                temp_path.unlink()
            return False


class SessionArchive:
    """One JSON file per saved dialogue session under a directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path_for(self, session_id: str) -> Path:
        if not SESSION_ID_RE.match(session_id):
            raise SessionNotFoundError(session_id)
        return self.directory / f"{session_id}.json"

    def save(self, session: dict) -> bool:
        return JsonFilePersistence(self._path_for(session["id"])).save(session)

    def load(self, session_id: str) -> dict:
        """Load a saved session. Raises SessionNotFoundError if absent or unreadable."""
        session = JsonFilePersistence(self._path_for(session_id)).load()
        if not isinstance(session, dict):
            raise SessionNotFoundError(session_id)
        return session
