"""Persisted records: training clips, per-child corpora and model pointers"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
import uuid

from arousal_training.models.enums import ArousalState, FeatureExtractionStatus


MIN_CLIPS_PER_LABEL = 5
MIN_TOTAL_CLIPS = 25
RECOMMENDED_CLIPS_PER_LABEL = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def empty_label_counts() -> Dict[ArousalState, int]:
    """Zero count for every label, in enum order"""
    return {state: 0 for state in ArousalState}


@dataclass
class TrainingClip:
    """A short recorded sample labeled with one arousal state

    Attributes:
        child_id: Owner of the clip
        label: Arousal label assigned at recording time
        media_ref: Path of the clip's media file in the content store
        duration_seconds: Clip length in seconds
        recorded_at: UTC recording time
        id: Unique clip identifier
        is_processed: Whether features were extracted successfully
        extraction_status: Last extraction state
    """
    child_id: str
    label: ArousalState
    media_ref: str
    duration_seconds: float
    recorded_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    is_processed: bool = False
    extraction_status: FeatureExtractionStatus = FeatureExtractionStatus.PENDING

    def __post_init__(self):
        assert self.duration_seconds >= 0, "Duration must be non-negative"
        assert isinstance(self.label, ArousalState), "Label must be an ArousalState"

    @property
    def media_path(self) -> Path:
        return Path(self.media_ref)

    def media_exists(self) -> bool:
        """True when the media file exists and is non-empty"""
        path = self.media_path
        return path.is_file() and path.stat().st_size > 0

    def media_size(self) -> int:
        path = self.media_path
        return path.stat().st_size if path.is_file() else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "child_id": self.child_id,
            "label": self.label.value,
            "media_ref": self.media_ref,
            "duration_seconds": self.duration_seconds,
            "recorded_at": self.recorded_at.isoformat(),
            "is_processed": self.is_processed,
            "extraction_status": self.extraction_status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrainingClip":
        return cls(
            id=data["id"],
            child_id=data["child_id"],
            label=ArousalState(data["label"]),
            media_ref=data["media_ref"],
            duration_seconds=float(data["duration_seconds"]),
            recorded_at=_parse_time(data["recorded_at"]),
            is_processed=bool(data.get("is_processed", False)),
            extraction_status=FeatureExtractionStatus(
                data.get("extraction_status", FeatureExtractionStatus.PENDING.value)
            ),
        )


@dataclass
class TrainingCorpus:
    """All labeled clips recorded for one child

    Attributes:
        child_id: Owner of the corpus
        clips: Clips in insertion order
        last_updated: UTC time of the last mutation
        version: Schema version of the persisted corpus
    """
    child_id: str
    clips: List[TrainingClip] = field(default_factory=list)
    last_updated: datetime = field(default_factory=utcnow)
    version: int = 1

    def label_counts(self) -> Dict[ArousalState, int]:
        counts = empty_label_counts()
        for clip in self.clips:
            counts[clip.label] += 1
        return counts

    def clips_for_label(self, label: ArousalState) -> List[TrainingClip]:
        return [clip for clip in self.clips if clip.label == label]

    @property
    def total_clips(self) -> int:
        return len(self.clips)

    @property
    def total_duration(self) -> float:
        return sum(clip.duration_seconds for clip in self.clips)

    def is_ready_to_train(
        self,
        min_per_label: int = MIN_CLIPS_PER_LABEL,
        min_total: int = MIN_TOTAL_CLIPS,
    ) -> bool:
        """Every label has at least min_per_label clips and the total is at least min_total"""
        counts = self.label_counts()
        return all(c >= min_per_label for c in counts.values()) and self.total_clips >= min_total

    def missing_counts(self, min_per_label: int = MIN_CLIPS_PER_LABEL) -> Dict[ArousalState, int]:
        return {
            label: max(min_per_label - count, 0)
            for label, count in self.label_counts().items()
        }

    def training_progress(self, recommended_per_label: int = RECOMMENDED_CLIPS_PER_LABEL) -> float:
        """Fraction of the recommended corpus size collected, capped at 1.0"""
        target = len(ArousalState) * recommended_per_label
        if target <= 0:
            return 1.0
        return min(self.total_clips / target, 1.0)

    def touch(self) -> None:
        self.last_updated = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "child_id": self.child_id,
            "clips": [clip.to_dict() for clip in self.clips],
            "last_updated": self.last_updated.isoformat(),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrainingCorpus":
        return cls(
            child_id=data["child_id"],
            clips=[TrainingClip.from_dict(c) for c in data.get("clips", [])],
            last_updated=_parse_time(data["last_updated"]),
            version=int(data.get("version", 1)),
        )


@dataclass
class ModelRecord:
    """Metadata pointing at the current trained model of a child

    Attributes:
        child_id: Owner of the model
        media_ref: Path of the serialized model blob
        version: Monotonic model version for the child, starting at 1
        accuracy: Validation accuracy in [0, 1]
        training_clip_count: Number of clips handed to the training run
        size_bytes: Size of the model blob
        precision: Macro precision on the validation split
        recall: Macro recall on the validation split
        trained_at: UTC completion time
        id: Unique record identifier
    """
    child_id: str
    media_ref: str
    version: int
    accuracy: float
    training_clip_count: int
    size_bytes: int
    precision: float = 0.0
    recall: float = 0.0
    trained_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        assert self.version >= 1, "Version must start at 1"
        assert 0.0 <= self.accuracy <= 1.0, "Accuracy must be in [0, 1]"
        assert self.size_bytes >= 0, "Size must be non-negative"

    @property
    def accuracy_percentage(self) -> str:
        return f"{self.accuracy * 100:.0f}%"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "child_id": self.child_id,
            "media_ref": self.media_ref,
            "version": self.version,
            "accuracy": self.accuracy,
            "training_clip_count": self.training_clip_count,
            "size_bytes": self.size_bytes,
            "precision": self.precision,
            "recall": self.recall,
            "trained_at": self.trained_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelRecord":
        return cls(
            id=data["id"],
            child_id=data["child_id"],
            media_ref=data["media_ref"],
            version=int(data["version"]),
            accuracy=float(data["accuracy"]),
            training_clip_count=int(data["training_clip_count"]),
            size_bytes=int(data["size_bytes"]),
            precision=float(data.get("precision", 0.0)),
            recall=float(data.get("recall", 0.0)),
            trained_at=_parse_time(data["trained_at"]),
        )


@dataclass
class TrainingStatistics:
    """Corpus summary for host display"""
    total_clips: int
    total_duration: float
    label_counts: Dict[ArousalState, int]
    storage_used: int
    is_ready_to_train: bool
    last_updated: Optional[datetime]

    @property
    def average_duration(self) -> float:
        if self.total_clips == 0:
            return 0.0
        return self.total_duration / self.total_clips
