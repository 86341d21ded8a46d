"""
Key-value persistence channels.

Two channels back the credential store:
1. Durable - a JSON file on disk that survives restarts ("remember me")
2. Ephemeral - an in-memory dict scoped to the running process

Both expose the same get/set/remove string API and raise
StorageUnavailableError when the backing medium fails. Callers
decide whether that failure matters.
"""
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from authcore.utils.logger import get_logger
from authcore.utils.errors import StorageUnavailableError

logger = get_logger(__name__)


class KeyValueStorage(ABC):
    """String key-value store interface."""

    name = "storage"

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass


class MemoryStorage(KeyValueStorage):
    """
    Process-scoped storage. Gone when the process exits.

    Set `available = False` to simulate a disabled store.
    """

    name = "ephemeral"

    def __init__(self):
        self._items: dict[str, str] = {}
        self.available = True

    def _check(self) -> None:
        if not self.available:
            raise StorageUnavailableError(f"{self.name} storage is disabled")

    def get_item(self, key: str) -> Optional[str]:
        self._check()
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check()
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._check()
        self._items.pop(key, None)


class FileStorage(KeyValueStorage):
    """
    JSON-file backed storage.

    The whole file is re-read on every access so that several
    clients sharing a storage directory see each other's writes.
    Writes go to a temp file first and are moved into place.
    """

    name = "durable"

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read {self.path}: {e}")
        except UnicodeDecodeError:
            logger.warning(f"Discarding undecodable storage file: {self.path}")
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding corrupt storage file: {self.path}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Unexpected storage layout in {self.path}, starting empty")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, items: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=".", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(items, f, sort_keys=True, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageUnavailableError(f"Cannot write {self.path}: {e}")

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        if items.get(key) == value:
            return
        items[key] = value
        self._dump(items)

    def remove_item(self, key: str) -> None:
        items = self._load()
        if key not in items:
            return
        del items[key]
        self._dump(items)
