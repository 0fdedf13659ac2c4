"""Model Trainer

Runs a training job for one child as a fixed sequence of phases:

    validate -> extract features -> prepare data -> fit -> evaluate -> export

Progress is reported through an optional callback with phase checkpoints
0.0-0.6 (feature extraction, scaled per clip), 0.6 (preparing), 0.7
(training), 0.9 (evaluating), 0.95 (exporting) and 1.0 (complete). Nothing
is persisted unless every phase succeeds; export is the last step.
"""

import logging
from typing import Callable, List, Optional, Sequence, Tuple
import numpy as np

from arousal_training.analysis.feature_extractor import MultimodalFeatureExtractor
from arousal_training.config.config_loader import config
from arousal_training.models.enums import ArousalState, TrainingPhase
from arousal_training.models.features import ExtractedFeatures
from arousal_training.models.records import ModelRecord, TrainingClip, empty_label_counts
from arousal_training.models.results import LabelCounts, LabeledExample, ModelMetrics, TrainingProgress
from arousal_training.storage.record_store import StorageError
from arousal_training.training.errors import (
    InsufficientDataError,
    InsufficientDataForLabelError,
    ModelExportError,
)
from arousal_training.training.knn import TrainedModel, build_model
from arousal_training.training.model_store import ModelStore


logger = logging.getLogger(__name__)

TrainingProgressCallback = Callable[[TrainingProgress], None]

EXTRACTION_WEIGHT = 0.6
PHASE_CHECKPOINTS = {
    TrainingPhase.EXTRACTING_FEATURES: 0.0,
    TrainingPhase.PREPARING_DATA: 0.6,
    TrainingPhase.TRAINING: 0.7,
    TrainingPhase.EVALUATING: 0.9,
    TrainingPhase.EXPORTING: 0.95,
    TrainingPhase.COMPLETE: 1.0,
}


def evaluate_model(model: TrainedModel, validation: Sequence[LabeledExample]) -> ModelMetrics:
    """Accuracy plus macro precision/recall over all labels.

    Labels are iterated in enum order; a label whose precision or recall
    denominator is zero contributes 0 to the average. F1 is computed from
    the averaged precision and recall.
    """
    per_label = {label: LabelCounts() for label in ArousalState}
    confusion = {actual: empty_label_counts() for actual in ArousalState}
    correct = 0

    for example in validation:
        predicted = model.predict(example.features)
        confusion[example.label][predicted] += 1
        if predicted == example.label:
            correct += 1
            per_label[predicted].true_positives += 1
        else:
            per_label[predicted].false_positives += 1
            per_label[example.label].false_negatives += 1

    total = len(validation)
    accuracy = correct / total if total > 0 else 0.0
    precision = float(np.mean([counts.precision for counts in per_label.values()]))
    recall = float(np.mean([counts.recall for counts in per_label.values()]))
    f1_score = 2 * precision * recall / (precision + recall) if (precision + recall) > 0 else 0.0

    return ModelMetrics(
        accuracy=accuracy,
        precision=precision,
        recall=recall,
        f1_score=f1_score,
        validation_size=total,
        per_label=per_label,
        confusion=confusion,
    )


class ModelTrainer:
    """Trains personalized k-NN arousal models.

    Attributes:
        extractor: Feature extractor for training clips
        model_store: Destination for blobs and model records
        k: Neighbours per prediction
        train_split: Fraction of shuffled examples used for fitting
        min_clips_per_label: Per-label minimum enforced before extraction
        min_total_clips: Overall minimum enforced before extraction
        rng: Random generator used for the shuffle
    """

    def __init__(
        self,
        extractor: MultimodalFeatureExtractor,
        model_store: ModelStore,
        k: Optional[int] = None,
        train_split: Optional[float] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.extractor = extractor
        self.model_store = model_store
        self.k = k if k is not None else config.get('training.k', 5)
        self.train_split = train_split if train_split is not None else config.get('training.train_split', 0.8)
        if not isinstance(self.k, int) or self.k < 1:
            raise ValueError(f"Invalid k: {self.k}, must be a positive integer")
        if not 0 < self.train_split < 1:
            raise ValueError(f"Invalid train_split: {self.train_split}, must be in (0, 1)")
        self.min_clips_per_label = config.get('training.min_clips_per_label', 5)
        self.min_total_clips = config.get('training.min_total_clips', 25)
        self.std_floor = config.get('training.std_floor', 1e-4)
        self.rng = rng if rng is not None else np.random.default_rng(config.get('training.seed'))

        logger.info(f"ModelTrainer initialized: k={self.k}, train_split={self.train_split}")

    def validate(self, clips: Sequence[TrainingClip]) -> None:
        """Check corpus size and label balance before any expensive work.

        Raises:
            InsufficientDataError: Fewer than min_total_clips clips
            InsufficientDataForLabelError: First label (enum order) below the per-label minimum
        """
        if len(clips) < self.min_total_clips:
            raise InsufficientDataError(len(clips), self.min_total_clips)

        counts = empty_label_counts()
        for clip in clips:
            counts[clip.label] += 1
        for label in ArousalState:
            if counts[label] < self.min_clips_per_label:
                raise InsufficientDataForLabelError(label, counts[label], self.min_clips_per_label)

    def prepare(self, features: Sequence[ExtractedFeatures]) -> Tuple[List[LabeledExample], List[LabeledExample]]:
        """Shuffle labeled vectors and split them into training and validation sets"""
        examples = [LabeledExample(features=f.to_vector(), label=f.label) for f in features]
        order = self.rng.permutation(len(examples))
        shuffled = [examples[i] for i in order]
        split = int(np.floor(self.train_split * len(shuffled)))
        return shuffled[:split], shuffled[split:]

    def fit(self, training: Sequence[LabeledExample]) -> TrainedModel:
        """Raises EmptyTrainingSetError when the training split is empty"""
        return build_model(training, k=self.k, std_floor=self.std_floor)

    def _export(self, child_id: str, model: TrainedModel, metrics: ModelMetrics, clip_count: int) -> ModelRecord:
        version = self.model_store.next_version(child_id)
        path = self.model_store.write_blob(child_id, version, model)
        try:
            record = ModelRecord(
                child_id=child_id,
                media_ref=str(path),
                version=version,
                accuracy=metrics.accuracy,
                training_clip_count=clip_count,
                size_bytes=path.stat().st_size,
                precision=metrics.precision,
                recall=metrics.recall,
            )
            self.model_store.save_record(record)
        except (OSError, StorageError) as e:
            self.model_store.discard_blob(child_id, version)
            raise ModelExportError(f"Failed to record model v{version} for child {child_id}: {e}") from e
        except BaseException:
            self.model_store.discard_blob(child_id, version)
            raise
        return record

    async def train(
        self,
        child_id: str,
        clips: Sequence[TrainingClip],
        progress_callback: Optional[TrainingProgressCallback] = None,
    ) -> ModelRecord:
        """Train, evaluate and persist a model for a child.

        Args:
            child_id: Owner of the clips and of the resulting model
            clips: Labeled clips to learn from
            progress_callback: Receives TrainingProgress updates

        Returns:
            The persisted ModelRecord

        Raises:
            InsufficientDataError: Too few clips overall
            InsufficientDataForLabelError: Too few clips for some label
            ClipExtractionError: Feature extraction failed for a clip
            EmptyTrainingSetError: The training split is empty
            ModelExportError: The model could not be written or recorded
        """
        def report(phase: TrainingPhase, fraction: Optional[float] = None):
            if progress_callback is not None:
                value = PHASE_CHECKPOINTS[phase] if fraction is None else fraction
                progress_callback(TrainingProgress(phase=phase, fraction=value, message=phase.display_name))

        foreign = [clip.id for clip in clips if clip.child_id != child_id]
        if foreign:
            raise ValueError(f"Clips {foreign} do not belong to child {child_id}")

        self.validate(clips)
        logger.info(f"Starting model training for child {child_id}: {len(clips)} clips, k={self.k}")

        report(TrainingPhase.EXTRACTING_FEATURES)
        features = await self.extractor.extract_all(
            clips,
            progress_callback=lambda done: report(TrainingPhase.EXTRACTING_FEATURES, done * EXTRACTION_WEIGHT),
        )
        logger.info(f"Feature extraction complete: {len(features)} feature sets")

        report(TrainingPhase.PREPARING_DATA)
        training, validation = self.prepare(features)
        logger.info(f"Data prepared - training: {len(training)}, validation: {len(validation)}")

        report(TrainingPhase.TRAINING)
        model = self.fit(training)

        report(TrainingPhase.EVALUATING)
        metrics = evaluate_model(model, validation)
        logger.info(
            f"Model evaluation: accuracy={metrics.accuracy:.1%}, precision={metrics.precision:.1%}, "
            f"recall={metrics.recall:.1%}, f1={metrics.f1_score:.1%}"
        )

        report(TrainingPhase.EXPORTING)
        # Runs inline so a cancelled run cannot leave a half-finished export behind
        record = self._export(child_id, model, metrics, len(clips))

        report(TrainingPhase.COMPLETE)
        logger.info(f"Model training complete for child {child_id}: v{record.version}")
        return record
