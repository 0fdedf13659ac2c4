"""Model Store

Keeps serialized model blobs under ``<models_root>/<childID>/`` and the
per-child ModelRecord that points at the current one. A record whose blob
has disappeared is treated as absent.
"""

import logging
import re
import shutil
from pathlib import Path
from typing import Dict, List, Optional

from arousal_training.config.config_loader import config
from arousal_training.models.records import ModelRecord
from arousal_training.storage.record_store import MODEL_RECORD_PURPOSE, RecordStore, StorageError, record_key
from arousal_training.training.knn import TrainedModel, load_model, save_model


logger = logging.getLogger(__name__)

BLOB_PATTERN = re.compile(r"^arousal_model_v(\d+)\.json$")


class ModelStore:
    """Persistence for trained models and their records

    Attributes:
        record_store: Store holding ``model.record.<childID>`` records
        models_root: Directory holding per-child model blobs
    """

    def __init__(self, record_store: RecordStore, models_root: Optional[str] = None):
        if models_root is None:
            models_root = Path(config.get('storage.root', 'data')) / config.get('storage.models_dir', 'models')
        self.record_store = record_store
        self.models_root = Path(models_root)
        self._cache: Dict[str, TrainedModel] = {}

    def child_dir(self, child_id: str) -> Path:
        return self.models_root / child_id

    def blob_path(self, child_id: str, version: int) -> Path:
        return self.child_dir(child_id) / f"arousal_model_v{version}.json"

    def blob_versions(self, child_id: str) -> List[int]:
        directory = self.child_dir(child_id)
        if not directory.is_dir():
            return []
        versions = []
        for path in directory.iterdir():
            match = BLOB_PATTERN.match(path.name)
            if match:
                versions.append(int(match.group(1)))
        return sorted(versions)

    def next_version(self, child_id: str) -> int:
        """One past the highest version seen in the record or on disk"""
        highest = 0
        data = self.record_store.load(record_key(MODEL_RECORD_PURPOSE, child_id))
        if data is not None:
            highest = int(data.get("version", 0))
        versions = self.blob_versions(child_id)
        if versions:
            highest = max(highest, versions[-1])
        return highest + 1

    def write_blob(self, child_id: str, version: int, model: TrainedModel) -> Path:
        """Write a model blob; returns its path

        Raises:
            ModelExportError: If writing fails
        """
        path = self.blob_path(child_id, version)
        size = save_model(model, path)
        logger.info(f"Saved model v{version} for child {child_id} ({size} bytes)")
        return path

    def save_record(self, record: ModelRecord) -> None:
        self.record_store.save(record_key(MODEL_RECORD_PURPOSE, record.child_id), record.to_dict())
        self._cache.pop(record.child_id, None)
        logger.info(f"Saved model record v{record.version} for child {record.child_id}")

    def get_record(self, child_id: str) -> Optional[ModelRecord]:
        """Current model record, or None when absent or its blob is missing"""
        data = self.record_store.load(record_key(MODEL_RECORD_PURPOSE, child_id))
        if data is None:
            return None
        record = ModelRecord.from_dict(data)
        if not Path(record.media_ref).is_file():
            logger.warning(f"Model blob missing for child {child_id}: {record.media_ref}")
            return None
        return record

    def has_model(self, child_id: str) -> bool:
        return self.get_record(child_id) is not None

    def load_current_model(self, child_id: str) -> Optional[TrainedModel]:
        """Load (and cache) the model the current record points at

        Raises:
            ModelLoadError: If the blob exists but cannot be read
        """
        record = self.get_record(child_id)
        if record is None:
            self._cache.pop(child_id, None)
            return None

        cached = self._cache.get(child_id)
        if cached is not None:
            return cached

        model = load_model(Path(record.media_ref))
        self._cache[child_id] = model
        logger.info(f"Loaded model v{record.version} for child {child_id}")
        return model

    def delete_model(self, child_id: str) -> None:
        """Remove the record and every blob of a child.

        Deletion is best effort; failures are logged.
        """
        self._cache.pop(child_id, None)
        directory = self.child_dir(child_id)
        if directory.exists():
            try:
                shutil.rmtree(directory)
            except OSError as e:
                logger.warning(f"Could not delete model files for child {child_id}: {e}")

        try:
            self.record_store.delete(record_key(MODEL_RECORD_PURPOSE, child_id))
        except StorageError as e:
            logger.warning(f"Could not delete model record for child {child_id}: {e}")
        logger.info(f"Deleted model for child {child_id}")

    def discard_blob(self, child_id: str, version: int) -> None:
        try:
            self.blob_path(child_id, version).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not delete model v{version} for child {child_id}: {e}")

    def storage_used(self, child_id: str) -> int:
        directory = self.child_dir(child_id)
        if not directory.is_dir():
            return 0
        return sum(path.stat().st_size for path in directory.iterdir() if path.is_file())

    def children_with_models(self) -> List[str]:
        """Children that have a model directory on disk"""
        if not self.models_root.is_dir():
            return []
        return sorted(path.name for path in self.models_root.iterdir() if path.is_dir())

    def total_model_count(self) -> int:
        return sum(1 for child_id in self.children_with_models() if self.has_model(child_id))

    def total_storage_used(self) -> int:
        return sum(self.storage_used(child_id) for child_id in self.children_with_models())
