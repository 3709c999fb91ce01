"""Flat JSON key/value store for state that survives restarts."""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from ..errors import StorageError

logger = logging.getLogger(__name__)


class StateStore:
    """Persists a small set of keyed values to ``state.json`` in the data directory."""

    FILENAME = "state.json"

    def __init__(self, data_dir: str = "./data"):
        """Initialize state store with data directory.

        Args:
            data_dir: Base directory for storing all data
        """
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.state_file = self.data_dir / self.FILENAME
        self._state = self._load()

        logger.info(f"StateStore initialized with state file: {self.state_file}")

    def _load(self) -> Dict[str, Any]:
        if not self.state_file.exists():
            return {}

        try:
            with open(self.state_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            # Keep the unreadable file for inspection and start empty
            backup = self.state_file.with_suffix(".corrupt")
            logger.error(f"Error loading state file, moving it to {backup}: {e}")
            self.state_file.replace(backup)
            return {}

        if not isinstance(data, dict):
            logger.error(f"Ignoring state file with unexpected content: {self.state_file}")
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for ``key`` or ``default`` when absent."""
        return self._state.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` and write the file.

        The in-memory state changes only once the write succeeded.

        Raises:
            StorageError: if the state file cannot be written
        """
        state = dict(self._state)
        state[key] = value
        self._save(state)
        self._state = state

    def _save(self, state: Dict[str, Any]) -> None:
        tmp_file = self.state_file.with_suffix(".tmp")
        try:
            with open(tmp_file, 'w', encoding='utf-8') as f:
                json.dump(state, f, indent=2, ensure_ascii=False)
            tmp_file.replace(self.state_file)
            logger.debug(f"State saved: {self.state_file}")
        except OSError as e:
            logger.error(f"Error saving state: {e}")
            raise StorageError(f"Failed to write {self.state_file}: {e}") from e
