# followup/storage/json_store.py
"""JSON file store for single-host deployments and local development."""

from pathlib import Path
from typing import Any, Dict, List
import json

from followup.core.exceptions import PersistenceError
from followup.core.logging import get_logger
from followup.storage.base import JSONEncoder, Row
from followup.storage.memory_store import MemoryStore

logger = get_logger(__name__)


class JsonFileStore(MemoryStore):
    """Memory store that rewrites one JSON file after every mutation."""

    def __init__(self, data_dir: str, filename: str):
        self.data_dir = Path(data_dir)
        self.filepath = self.data_dir / filename
        self._ensure_directory()
        super().__init__(seed=self._load_data())

    def _ensure_directory(self):
        """Ensure data directory exists."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _load_data(self) -> Dict[str, List[Row]]:
        """Load data from JSON file."""
        if not self.filepath.exists():
            return {}
        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                data: Any = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to load {self.filepath}: {e}") from e

        if not isinstance(data, dict):
            logger.error(f"Ignoring {self.filepath}: top level is not an object")
            return {}
        return {name: rows for name, rows in data.items() if isinstance(rows, list)}

    def _persist(self, collection: str):
        """Save data to JSON file."""
        try:
            tmp_path = self.filepath.with_suffix(self.filepath.suffix + ".tmp")
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(self._collections, f, indent=2, cls=JSONEncoder)
            tmp_path.replace(self.filepath)
        except OSError as e:
            logger.error(f"Failed to save {self.filepath}: {e}")
            raise PersistenceError(str(e), collection) from e
