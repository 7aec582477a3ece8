"""Persistent key-value store used for selections and conversation history."""

import asyncio
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union
import structlog


logger = structlog.get_logger()


# Keys shared by the session, the registries and the CLI
MODEL_KEY = "model"
PROMPT_KEY = "prompt"
CUSTOM_PROMPT_KEY = "custom_prompt"
HISTORY_KEY = "conversationHistory"
THEME_KEY = "theme"


class StoreError(Exception):
    """Raised when the backing storage cannot be read or written."""


class KeyValueStore(ABC):
    """Abstract asynchronous string-keyed store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value for key, or None when it was never set."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete key. Removing a missing key is not an error."""
        pass


class MemoryStore(KeyValueStore):
    """In-process store, used in tests and mock mode."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """
    Store backed by a single JSON object on disk.

    Every write rewrites the whole document through a temp file and an
    atomic rename, so a crash mid-write leaves the previous version intact.
    File I/O runs in a worker thread to keep the event loop responsive.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Failed to read store {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StoreError(f"Store {self.path} does not hold a JSON object")
        return data

    def _atomic_write(self, data: Dict[str, str]) -> None:
        """Atomically write data to the store file."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=self.path.parent,
                delete=False,
                suffix=".tmp",
                encoding="utf-8",
            ) as tmp_file:
                json.dump(data, tmp_file, indent=2, ensure_ascii=False)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
                tmp_path = tmp_file.name

            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreError(f"Failed to write store {self.path}: {e}") from e

    def _get_sync(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def _set_sync(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._atomic_write(data)

    def _remove_sync(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._atomic_write(data)

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._get_sync, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set_sync, key, value)
        logger.debug("Store key written", key=key, size=len(value))

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove_sync, key)
        logger.debug("Store key removed", key=key)
