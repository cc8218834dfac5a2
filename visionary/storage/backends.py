"""
Durable key-value storage.

Named slots hold JSON-serializable blobs. A read returns the decoded value or
None when the slot is empty. A write either lands completely or raises
``StorageQuotaExceeded`` and leaves the previous value in place.
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from visionary.core.constants import DEFAULT_STORAGE_QUOTA_BYTES
from visionary.core.exceptions import StorageCorruptError, StorageError, StorageQuotaExceeded
from visionary.core.logging_config import get_logger

logger = get_logger("storage.backends")


def encode_blob(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def blob_size(text: str) -> int:
    return len(text.encode("utf-8"))


class KeyValueStorage(ABC):
    """Quota-bounded key-value persistence."""

    def __init__(self, quota_bytes: int = DEFAULT_STORAGE_QUOTA_BYTES):
        self.quota_bytes = quota_bytes

    @abstractmethod
    def read(self, key: str) -> Optional[Any]:
        """Return the decoded value, None if absent; StorageCorruptError if undecodable."""

    @abstractmethod
    def _put(self, key: str, payload: str) -> None:
        """Store an encoded payload; quota is already checked."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; no-op if absent."""

    @abstractmethod
    def size_of(self, key: str) -> int:
        """Stored size of ``key`` in bytes (0 if absent)."""

    @abstractmethod
    def used_bytes(self) -> int:
        """Total bytes currently stored across all keys."""

    def write(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` or raise without touching the old value."""
        self.write_many({key: value})

    def write_many(self, values: Dict[str, Any]) -> None:
        """Store several slots together.

        The quota is checked against the combined result before any slot is
        written, so a rejection leaves every slot at its previous value.
        """
        payloads = {key: encode_blob(value) for key, value in values.items()}
        self._check_quota(payloads)
        for key, payload in payloads.items():
            self._put(key, payload)

    def _check_quota(self, payloads: Dict[str, str]) -> None:
        required = self.used_bytes()
        for key, payload in payloads.items():
            required += blob_size(payload) - self.size_of(key)
        if required > self.quota_bytes:
            keys = ", ".join(payloads)
            logger.error(f"Write to '{keys}' rejected: {required} bytes exceeds quota {self.quota_bytes}")
            raise StorageQuotaExceeded(keys, required, self.quota_bytes)


class MemoryStorage(KeyValueStorage):
    """In-process storage with the same quota semantics as the file backend."""

    def __init__(self, quota_bytes: int = DEFAULT_STORAGE_QUOTA_BYTES):
        super().__init__(quota_bytes)
        self._blobs: Dict[str, str] = {}

    def read(self, key: str) -> Optional[Any]:
        text = self._blobs.get(key)
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageCorruptError(f"Corrupt blob in '{key}': {e}", {"key": key})

    def _put(self, key: str, payload: str) -> None:
        self._blobs[key] = payload

    def write_raw(self, key: str, text: str) -> None:
        """Store text as-is, bypassing encoding (for seeding fixtures)."""
        self._blobs[key] = text

    def delete(self, key: str) -> None:
        self._blobs.pop(key, None)

    def size_of(self, key: str) -> int:
        text = self._blobs.get(key)
        return blob_size(text) if text is not None else 0

    def used_bytes(self) -> int:
        return sum(blob_size(text) for text in self._blobs.values())


class JsonFileStorage(KeyValueStorage):
    """One JSON file per key under ``storage_dir``; writes are atomic renames."""

    SUFFIX = ".json"

    def __init__(self, storage_dir: Path, quota_bytes: int = DEFAULT_STORAGE_QUOTA_BYTES):
        super().__init__(quota_bytes)
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.storage_dir / f"{key}{self.SUFFIX}"

    def read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StorageCorruptError(f"Corrupt blob in '{key}': {e}", {"path": str(path)})

    def _put(self, key: str, payload: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.storage_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self._path(key))
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Failed to write '{key}': {e}", {"key": key})

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def size_of(self, key: str) -> int:
        path = self._path(key)
        return path.stat().st_size if path.exists() else 0

    def used_bytes(self) -> int:
        return sum(p.stat().st_size for p in self.storage_dir.glob(f"*{self.SUFFIX}"))
