"""Keyed record storage for corpora and model pointers

Records are JSON documents addressed by ``<purpose>.<childID>`` keys. The
file store writes each record atomically (temp file + rename) so readers
never observe a partial document.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from arousal_training.config.config_loader import config


logger = logging.getLogger(__name__)

CORPUS_PURPOSE = "training.corpus"
MODEL_RECORD_PURPOSE = "model.record"


class StorageError(Exception):
    """Exception raised when a record cannot be read or written"""
    pass


def record_key(purpose: str, child_id: str) -> str:
    """Build a storage key such as ``training.corpus.<childID>``"""
    if not child_id or "/" in child_id or "\\" in child_id:
        raise ValueError(f"Invalid child id: {child_id!r}")
    return f"{purpose}.{child_id}"


def write_json_atomic(path: Path, payload: Any) -> None:
    """Write JSON to path via a temporary sibling file and os.replace"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, 'w') as f:
            json.dump(payload, f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class RecordStore(ABC):
    """Key-value store of JSON-compatible records"""

    @abstractmethod
    def save(self, key: str, record: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def load(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the record, or None when the key is absent"""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the record; missing keys are ignored"""
        pass

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        pass

    def exists(self, key: str) -> bool:
        return self.load(key) is not None


class InMemoryRecordStore(RecordStore):
    """Process-local record store"""

    def __init__(self):
        self._records: Dict[str, str] = {}
        self._lock = threading.Lock()

    def save(self, key: str, record: Dict[str, Any]) -> None:
        try:
            encoded = json.dumps(record)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Record {key} is not serializable: {e}") from e
        with self._lock:
            self._records[key] = encoded

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            encoded = self._records.get(key)
        return json.loads(encoded) if encoded is not None else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._records if k.startswith(prefix))


class FileRecordStore(RecordStore):
    """Record store keeping one JSON file per key under a directory

    Attributes:
        root: Directory holding ``<key>.json`` files
    """

    def __init__(self, root: Optional[str] = None):
        if root is None:
            root = Path(config.get('storage.root', 'data')) / config.get('storage.records_dir', 'records')
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def save(self, key: str, record: Dict[str, Any]) -> None:
        try:
            write_json_atomic(self._path(key), record)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save record {key}: {e}")
            raise StorageError(f"Failed to save record {key}: {e}") from e

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load record {key}: {e}")
            raise StorageError(f"Failed to load record {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete record {key}: {e}") from e

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(
            path.stem for path in self.root.glob("*.json")
            if path.stem.startswith(prefix)
        )
