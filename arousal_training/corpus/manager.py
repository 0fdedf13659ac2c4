"""Training Corpus Manager

Owns each child's labeled clip corpus: accepting recorded clips into
durable per-child storage, removing them, purging orphaned or aged entries,
and answering readiness and bookkeeping queries.
"""

import logging
import shutil
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from arousal_training.config.config_loader import config
from arousal_training.models.enums import ArousalState, FeatureExtractionStatus
from arousal_training.models.records import (
    TrainingClip,
    TrainingCorpus,
    TrainingStatistics,
    utcnow,
)
from arousal_training.storage.record_store import CORPUS_PURPOSE, RecordStore, StorageError, record_key


logger = logging.getLogger(__name__)


class CorpusError(Exception):
    """Base class for corpus management failures"""
    pass


class EmptyMediaError(CorpusError):
    """Recorded media is empty (0 bytes) and cannot be used for training"""

    def __init__(self, path: str, message: Optional[str] = None):
        self.path = path
        super().__init__(
            message or f"Clip file is empty (0 bytes): {path}. The recording may not have "
                       f"finished writing; please record again."
        )


class MediaFileNotFoundError(EmptyMediaError):
    """Recorded media does not exist at the given location"""

    def __init__(self, path: str):
        super().__init__(path, f"Clip file not found: {path}. Recording may have failed.")


class ClipNotFoundError(CorpusError):
    """No clip with the given id exists in the corpus"""

    def __init__(self, child_id: str, clip_id: str):
        self.child_id = child_id
        self.clip_id = clip_id
        super().__init__(f"Training clip {clip_id} not found for child {child_id}")


class TrainingCorpusManager:
    """Manages per-child training corpora.

    Corpora are cached after the first load and persisted after every
    mutation. Callers are expected to serialize mutations per child.

    Attributes:
        record_store: Persistence for corpus records
        media_root: Directory holding ``<childID>/<uuid><ext>`` clip files
        min_clips_per_label: Readiness threshold per label
        min_total_clips: Readiness threshold over all labels
        recommended_clips_per_label: Target used for progress reporting
        max_clip_age: Default retention window for cleanup_aged
        copy_media: Copy (instead of move) recorded media into storage
    """

    def __init__(
        self,
        record_store: RecordStore,
        media_root: Optional[str] = None,
        copy_media: Optional[bool] = None,
    ):
        if media_root is None:
            media_root = Path(config.get('storage.root', 'data')) / config.get('storage.clips_dir', 'training_clips')
        self.record_store = record_store
        self.media_root = Path(media_root)
        self.copy_media = copy_media if copy_media is not None else config.get('corpus.copy_media', False)
        self.min_clips_per_label = config.get('training.min_clips_per_label', 5)
        self.min_total_clips = config.get('training.min_total_clips', 25)
        self.recommended_clips_per_label = config.get('training.recommended_clips_per_label', 10)
        self.max_clip_age = timedelta(days=config.get('corpus.max_clip_age_days', 90))

        self._corpora: Dict[str, TrainingCorpus] = {}

        logger.info(f"TrainingCorpusManager initialized with media_root={self.media_root}")

    # Persistence

    def load_corpus(self, child_id: str) -> TrainingCorpus:
        """Load a child's corpus from storage, creating an empty one if absent.

        Orphaned entries are purged as part of loading.
        """
        data = self.record_store.load(record_key(CORPUS_PURPOSE, child_id))
        if data is not None:
            corpus = TrainingCorpus.from_dict(data)
            logger.info(f"Loaded training corpus for child {child_id}: {corpus.total_clips} clips")
        else:
            corpus = TrainingCorpus(child_id=child_id)
            logger.info(f"Created new training corpus for child {child_id}")

        self._corpora[child_id] = corpus
        self.cleanup_orphaned(child_id)
        return corpus

    def get_corpus(self, child_id: str) -> TrainingCorpus:
        """Cached corpus for the child, loading it on first access"""
        corpus = self._corpora.get(child_id)
        if corpus is None:
            corpus = self.load_corpus(child_id)
        return corpus

    def save(self, child_id: str) -> None:
        corpus = self.get_corpus(child_id)
        self.record_store.save(record_key(CORPUS_PURPOSE, child_id), corpus.to_dict())
        logger.debug(f"Saved training corpus for child {child_id}: {corpus.total_clips} clips")

    def delete_corpus(self, child_id: str) -> int:
        """Delete the corpus record and every clip file of a child.

        Returns:
            Number of clips removed
        """
        corpus = self.get_corpus(child_id)
        removed = len(corpus.clips)
        for clip in corpus.clips:
            self._delete_media(clip)

        child_dir = self.media_root / child_id
        if child_dir.exists():
            shutil.rmtree(child_dir, ignore_errors=True)

        try:
            self.record_store.delete(record_key(CORPUS_PURPOSE, child_id))
        except StorageError as e:
            logger.warning(f"Could not delete corpus record for child {child_id}: {e}")
        self._corpora.pop(child_id, None)
        logger.info(f"Deleted training corpus for child {child_id} ({removed} clips)")
        return removed

    # Clip management

    def _store_media(self, source: Path, child_id: str) -> Path:
        """Validate recorded media and place it in durable per-child storage"""
        if not source.is_file():
            raise MediaFileNotFoundError(str(source))
        if source.stat().st_size == 0:
            raise EmptyMediaError(str(source))

        child_dir = self.media_root / child_id
        child_dir.mkdir(parents=True, exist_ok=True)
        destination = child_dir / f"{uuid.uuid4()}{source.suffix or '.mp4'}"

        if self.copy_media:
            shutil.copy2(source, destination)
        else:
            shutil.move(str(source), str(destination))

        logger.debug(f"Stored clip media at {destination}")
        return destination

    @staticmethod
    def _delete_media(clip: TrainingClip) -> None:
        try:
            clip.media_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not delete media for clip {clip.id}: {e}")

    def add_clip(
        self,
        child_id: str,
        label: ArousalState,
        media_ref: str,
        duration: float,
        recorded_at: Optional[datetime] = None,
    ) -> TrainingClip:
        """Accept a recorded clip into the child's corpus.

        Args:
            child_id: Owner of the clip
            label: Arousal label for the clip
            media_ref: Path of the freshly recorded media
            duration: Clip duration in seconds
            recorded_at: Recording time (defaults to now)

        Returns:
            The stored TrainingClip

        Raises:
            MediaFileNotFoundError: If the media does not exist
            EmptyMediaError: If the media is empty
        """
        corpus = self.get_corpus(child_id)
        stored = self._store_media(Path(media_ref), child_id)

        clip = TrainingClip(
            child_id=child_id,
            label=label,
            media_ref=str(stored),
            duration_seconds=duration,
            recorded_at=recorded_at or utcnow(),
        )
        corpus.clips.append(clip)
        corpus.touch()
        self.save(child_id)

        logger.info(
            f"Added training clip: {label.display_name} ({duration:.1f}s), "
            f"progress {corpus.training_progress(self.recommended_clips_per_label):.0%}"
        )
        return clip

    def remove_clip(self, child_id: str, clip_id: str) -> TrainingClip:
        """Remove a clip and delete its media (best effort).

        Raises:
            ClipNotFoundError: If the corpus has no such clip
        """
        corpus = self.get_corpus(child_id)
        for index, clip in enumerate(corpus.clips):
            if clip.id == clip_id:
                break
        else:
            raise ClipNotFoundError(child_id, clip_id)

        del corpus.clips[index]
        corpus.touch()
        self._delete_media(clip)
        self.save(child_id)

        logger.info(f"Removed training clip: {clip.label.display_name}")
        return clip

    def clear_all(self, child_id: str) -> int:
        """Remove every clip of a child, keeping the (now empty) corpus.

        Returns:
            Number of clips removed
        """
        corpus = self.get_corpus(child_id)
        removed = len(corpus.clips)
        logger.info(f"Clearing {removed} training clips for child {child_id}")

        for clip in corpus.clips:
            self._delete_media(clip)
        corpus.clips = []
        corpus.touch()
        self.save(child_id)
        return removed

    def mark_extraction(
        self,
        child_id: str,
        clip_ids: Iterable[str],
        status: FeatureExtractionStatus,
    ) -> int:
        """Record the extraction outcome of clips after a training run.

        Unknown ids are ignored. Returns the number of clips updated.
        """
        wanted = set(clip_ids)
        updated = 0
        for clip in self.get_corpus(child_id).clips:
            if clip.id in wanted:
                clip.extraction_status = status
                clip.is_processed = status == FeatureExtractionStatus.COMPLETED
                updated += 1
        if updated:
            self.save(child_id)
        return updated

    def cleanup_orphaned(self, child_id: str) -> List[TrainingClip]:
        """Drop clips whose media no longer exists.

        Idempotent: a second call with no intervening changes removes nothing
        and does not touch the corpus.

        Returns:
            The removed clips
        """
        corpus = self.get_corpus(child_id)
        orphaned = [clip for clip in corpus.clips if not clip.media_path.exists()]
        if not orphaned:
            logger.debug(f"No orphaned clip references for child {child_id}")
            return []

        orphaned_ids = {clip.id for clip in orphaned}
        corpus.clips = [clip for clip in corpus.clips if clip.id not in orphaned_ids]
        corpus.touch()
        self.save(child_id)

        for clip in orphaned:
            logger.info(f"Removed orphaned clip: {clip.label.display_name} - {clip.media_path.name}")
        return orphaned

    def cleanup_aged(self, child_id: str, max_age: Optional[timedelta] = None) -> List[TrainingClip]:
        """Remove clips recorded before now - max_age (default retention window).

        Returns:
            The removed clips
        """
        cutoff = utcnow() - (max_age if max_age is not None else self.max_clip_age)
        corpus = self.get_corpus(child_id)
        aged = [clip for clip in corpus.clips if clip.recorded_at < cutoff]
        if not aged:
            return []

        aged_ids = {clip.id for clip in aged}
        for clip in aged:
            self._delete_media(clip)
        corpus.clips = [clip for clip in corpus.clips if clip.id not in aged_ids]
        corpus.touch()
        self.save(child_id)

        logger.info(f"Cleaned up {len(aged)} aged training clips for child {child_id}")
        return aged

    # Queries

    def clips(self, child_id: str) -> List[TrainingClip]:
        return list(self.get_corpus(child_id).clips)

    def clips_for_label(self, child_id: str, label: ArousalState) -> List[TrainingClip]:
        return self.get_corpus(child_id).clips_for_label(label)

    def label_counts(self, child_id: str) -> Dict[ArousalState, int]:
        return self.get_corpus(child_id).label_counts()

    def is_ready_to_train(self, child_id: str) -> bool:
        return self.get_corpus(child_id).is_ready_to_train(
            self.min_clips_per_label, self.min_total_clips
        )

    def missing_counts(self, child_id: str) -> Dict[ArousalState, int]:
        return self.get_corpus(child_id).missing_counts(self.min_clips_per_label)

    def next_label_to_record(self, child_id: str) -> ArousalState:
        """Label with the fewest clips; ties go to the earliest label in enum order"""
        counts = self.label_counts(child_id)
        return min(ArousalState, key=lambda label: counts[label])

    def training_progress(self, child_id: str) -> float:
        return self.get_corpus(child_id).training_progress(self.recommended_clips_per_label)

    def readiness_message(self, child_id: str) -> str:
        corpus = self.get_corpus(child_id)
        if corpus.total_clips == 0:
            return "No training data collected yet."
        if self.is_ready_to_train(child_id):
            return "Ready to train! You have enough clips for all arousal states."

        total_missing = max(
            sum(self.missing_counts(child_id).values()),
            self.min_total_clips - corpus.total_clips,
        )
        plural = "" if total_missing == 1 else "s"
        return f"Collect {total_missing} more clip{plural} to start training."

    def storage_used(self, child_id: str) -> int:
        """Bytes used by the child's existing clip files"""
        return sum(clip.media_size() for clip in self.get_corpus(child_id).clips)

    def statistics(self, child_id: str) -> TrainingStatistics:
        corpus = self.get_corpus(child_id)
        return TrainingStatistics(
            total_clips=corpus.total_clips,
            total_duration=corpus.total_duration,
            label_counts=corpus.label_counts(),
            storage_used=self.storage_used(child_id),
            is_ready_to_train=self.is_ready_to_train(child_id),
            last_updated=corpus.last_updated,
        )
