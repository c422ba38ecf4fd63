"""
Key-value persistence for automation state.

The template cache keeps everything under a single key, so a store only
needs whole-value get/set/remove. Two backends:
- InMemoryStore: tests and throwaway sessions
- JsonFileStore: one JSON document on disk
"""

import copy
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract async key-value store."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None if absent."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""
        ...

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        ...


class InMemoryStore(KeyValueStore):
    """Dictionary-backed store. Values are deep-copied in and out."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """
    File-based store.

    All keys live in one JSON document. A missing file reads as empty;
    writes go to a temp file that then replaces the original. A corrupt
    document still raises on read but is overwritten by the next write.
    """

    def __init__(self, path: str | Path = "data/form_template_cache.json"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"JSON store initialized at {self.path}")

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}

        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object in {self.path}")
        return data

    def _read_for_write(self) -> dict[str, Any]:
        """Read the document before a write. An unreadable one is replaced."""
        try:
            return self._read_all()
        except ValueError as e:
            logger.warning(f"Discarding unreadable store {self.path}: {e}")
            return {}

    def _write_all(self, data: dict[str, Any]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)
        os.replace(tmp_path, self.path)

    async def get(self, key: str) -> Any | None:
        return self._read_all().get(key)

    async def set(self, key: str, value: Any) -> None:
        data = self._read_for_write()
        data[key] = value
        self._write_all(data)
        logger.debug(f"Stored key {key} in {self.path}")

    async def remove(self, key: str) -> None:
        try:
            data = self._read_all()
        except ValueError as e:
            logger.warning(f"Deleting unreadable store {self.path}: {e}")
            self.path.unlink()
            return

        if key in data:
            del data[key]
            self._write_all(data)
            logger.debug(f"Removed key {key} from {self.path}")
