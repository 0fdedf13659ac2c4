"""Personalization Engine

Host-facing service that composes the corpus manager, feature extractor,
trainer and model store for on-device personalization of arousal-state
detection. All mutating operations for a child run under that child's
asyncio lock, so a child has at most one writer at a time. A second
training request for a child that is already training fails immediately.
"""

import asyncio
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple
import numpy as np

from arousal_training.analysis.errors import ClipExtractionError
from arousal_training.analysis.feature_extractor import MultimodalFeatureExtractor
from arousal_training.config.config_loader import config
from arousal_training.corpus.manager import TrainingCorpusManager
from arousal_training.models.enums import ArousalState, FeatureExtractionStatus
from arousal_training.models.records import ModelRecord, TrainingClip, TrainingStatistics
from arousal_training.storage.record_store import FileRecordStore, RecordStore
from arousal_training.training.errors import TrainingInProgressError
from arousal_training.training.model_store import ModelStore
from arousal_training.training.trainer import ModelTrainer, TrainingProgressCallback


logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Configure root logging for a host process.

    Args:
        level: Log level name (defaults to ``logging.level`` config)
        log_file: Optional log file (defaults to ``logging.file`` config)
    """
    level = level or config.get('logging.level', 'INFO')
    log_file = log_file or config.get('logging.file')

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )


def build_default_extractor() -> MultimodalFeatureExtractor:
    """Feature extractor wired to the PyAV and MediaPipe collaborators"""
    from arousal_training.media import (
        MediaPipeFaceDetector,
        MediaPipePoseDetector,
        PyAVAudioDecoder,
        PyAVFrameSampler,
    )

    return MultimodalFeatureExtractor(
        frame_sampler=PyAVFrameSampler(),
        pose_detector=MediaPipePoseDetector(),
        face_detector=MediaPipeFaceDetector(),
        audio_decoder=PyAVAudioDecoder(),
    )


class PersonalizationEngine:
    """Main entry point for the host application.

    Attributes:
        record_store: Shared record persistence
        corpus_manager: Per-child clip corpora
        model_store: Per-child model blobs and records
        trainer: Model trainer
        timeout: Default training timeout in seconds (None for no limit)
    """

    def __init__(
        self,
        storage_root: Optional[str] = None,
        record_store: Optional[RecordStore] = None,
        extractor: Optional[MultimodalFeatureExtractor] = None,
        corpus_manager: Optional[TrainingCorpusManager] = None,
        model_store: Optional[ModelStore] = None,
        trainer: Optional[ModelTrainer] = None,
    ):
        root = Path(storage_root or config.get('storage.root', 'data'))
        logger.info(f"Initializing PersonalizationEngine at {root}")

        self.record_store = record_store or FileRecordStore(
            str(root / config.get('storage.records_dir', 'records'))
        )
        self.corpus_manager = corpus_manager or TrainingCorpusManager(
            self.record_store, str(root / config.get('storage.clips_dir', 'training_clips'))
        )
        self.model_store = model_store or ModelStore(
            self.record_store, str(root / config.get('storage.models_dir', 'models'))
        )
        if trainer is None:
            trainer = ModelTrainer(extractor or build_default_extractor(), self.model_store)
        self.trainer = trainer
        self.timeout = config.get('training.timeout_seconds')

        self._locks: Dict[str, asyncio.Lock] = {}
        self._training: Set[str] = set()

    def _lock(self, child_id: str) -> asyncio.Lock:
        lock = self._locks.get(child_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[child_id] = lock
        return lock

    def is_training(self, child_id: str) -> bool:
        return child_id in self._training

    # Corpus

    async def add_clip(
        self,
        child_id: str,
        label: ArousalState,
        media_ref: str,
        duration: float,
        recorded_at: Optional[datetime] = None,
    ) -> TrainingClip:
        async with self._lock(child_id):
            return self.corpus_manager.add_clip(child_id, label, media_ref, duration, recorded_at)

    async def remove_clip(self, child_id: str, clip_id: str) -> TrainingClip:
        async with self._lock(child_id):
            return self.corpus_manager.remove_clip(child_id, clip_id)

    async def clear_all(self, child_id: str) -> int:
        async with self._lock(child_id):
            return self.corpus_manager.clear_all(child_id)

    async def cleanup(
        self, child_id: str, max_age: Optional[timedelta] = None
    ) -> Tuple[List[TrainingClip], List[TrainingClip]]:
        """Purge orphaned clips, then clips older than the retention window.

        Returns:
            (orphaned, aged) removed clips
        """
        async with self._lock(child_id):
            orphaned = self.corpus_manager.cleanup_orphaned(child_id)
            aged = self.corpus_manager.cleanup_aged(child_id, max_age)
            return orphaned, aged

    def clips(self, child_id: str) -> List[TrainingClip]:
        return self.corpus_manager.clips(child_id)

    def is_ready_to_train(self, child_id: str) -> bool:
        return self.corpus_manager.is_ready_to_train(child_id)

    def missing_counts(self, child_id: str) -> Dict[ArousalState, int]:
        return self.corpus_manager.missing_counts(child_id)

    def next_label_to_record(self, child_id: str) -> ArousalState:
        return self.corpus_manager.next_label_to_record(child_id)

    def readiness_message(self, child_id: str) -> str:
        return self.corpus_manager.readiness_message(child_id)

    def statistics(self, child_id: str) -> TrainingStatistics:
        return self.corpus_manager.statistics(child_id)

    # Training

    async def train(
        self,
        child_id: str,
        progress_callback: Optional[TrainingProgressCallback] = None,
        timeout: Optional[float] = None,
    ) -> ModelRecord:
        """Train a model from the child's current corpus.

        Clips whose media has gone missing are purged first. Afterwards the
        trained clips are marked processed, or the failing clip marked failed.

        Args:
            child_id: Child to train for
            progress_callback: Receives TrainingProgress updates
            timeout: Seconds before the run is cancelled (defaults to configuration)

        Returns:
            Record of the newly persisted model

        Raises:
            TrainingInProgressError: A run for this child is already active
            asyncio.TimeoutError: The run exceeded the timeout; nothing was persisted
            TrainingError / ClipExtractionError: See ModelTrainer.train
        """
        if child_id in self._training:
            raise TrainingInProgressError(child_id)
        self._training.add(child_id)

        timeout = timeout if timeout is not None else self.timeout
        try:
            async with self._lock(child_id):
                # media can vanish after the corpus was loaded
                self.corpus_manager.cleanup_orphaned(child_id)
                clips = self.corpus_manager.clips(child_id)
                run = self.trainer.train(child_id, clips, progress_callback)
                try:
                    if timeout:
                        record = await asyncio.wait_for(run, timeout=timeout)
                    else:
                        record = await run
                except ClipExtractionError as e:
                    self.corpus_manager.mark_extraction(
                        child_id, [e.clip_id], FeatureExtractionStatus.FAILED
                    )
                    raise
                self.corpus_manager.mark_extraction(
                    child_id, [clip.id for clip in clips], FeatureExtractionStatus.COMPLETED
                )
                return record
        except asyncio.TimeoutError:
            logger.error(f"Training for child {child_id} timed out after {timeout}s")
            raise
        except Exception as e:
            logger.error(f"Training failed for child {child_id}: {e}")
            raise
        finally:
            self._training.discard(child_id)

    # Inference and models

    def current_model(self, child_id: str) -> Optional[ModelRecord]:
        return self.model_store.get_record(child_id)

    def has_model(self, child_id: str) -> bool:
        return self.model_store.has_model(child_id)

    def predict(self, child_id: str, features: np.ndarray) -> ArousalState:
        """Classify a feature vector with the child's current model.

        Returns the default label when the child has no model.
        """
        model = self.model_store.load_current_model(child_id)
        if model is None:
            logger.debug(f"No model for child {child_id}, returning default label")
            return ArousalState.default()
        return model.predict(features)

    async def delete_model(self, child_id: str) -> None:
        async with self._lock(child_id):
            self.model_store.delete_model(child_id)

    def storage_used(self, child_id: str) -> int:
        """Bytes used by the child's clips and model blobs"""
        return self.corpus_manager.storage_used(child_id) + self.model_store.storage_used(child_id)

    def children_with_models(self) -> List[str]:
        return self.model_store.children_with_models()

    async def delete_child(self, child_id: str) -> None:
        """Delete every clip, corpus record, model record and model blob of a child"""
        async with self._lock(child_id):
            clips_removed = self.corpus_manager.delete_corpus(child_id)
            self.model_store.delete_model(child_id)
        self._locks.pop(child_id, None)
        logger.info(f"Deleted all personalization data for child {child_id} ({clips_removed} clips)")
