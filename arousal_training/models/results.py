"""Data models for training inputs and results"""

from dataclasses import dataclass, field
from typing import Dict, Optional
import numpy as np

from arousal_training.models.enums import ArousalState, TrainingPhase


@dataclass
class LabeledExample:
    """A feature vector paired with its arousal label

    Attributes:
        features: 1-D float64 feature vector
        label: Arousal label of the source clip
    """
    features: np.ndarray
    label: ArousalState

    def __post_init__(self):
        """Validate example data"""
        assert isinstance(self.features, np.ndarray), "Features must be numpy array"
        assert self.features.ndim == 1, "Features must be a 1-D vector"


@dataclass
class LabelCounts:
    """Per-label confusion counts"""
    true_positives: int = 0
    false_positives: int = 0
    false_negatives: int = 0

    @property
    def precision(self) -> float:
        denominator = self.true_positives + self.false_positives
        return self.true_positives / denominator if denominator > 0 else 0.0

    @property
    def recall(self) -> float:
        denominator = self.true_positives + self.false_negatives
        return self.true_positives / denominator if denominator > 0 else 0.0


@dataclass
class ModelMetrics:
    """Validation metrics of a trained model

    Attributes:
        accuracy: Fraction of validation examples predicted correctly
        precision: Macro-averaged precision over all labels
        recall: Macro-averaged recall over all labels
        f1_score: Harmonic mean of the macro precision and recall
        validation_size: Number of validation examples
        per_label: Confusion counts per label, in enum order
        confusion: confusion[actual][predicted] counts
    """
    accuracy: float
    precision: float
    recall: float
    f1_score: float
    validation_size: int
    per_label: Dict[ArousalState, LabelCounts] = field(default_factory=dict)
    confusion: Dict[ArousalState, Dict[ArousalState, int]] = field(default_factory=dict)

    def __post_init__(self):
        """Validate metric ranges"""
        for name in ("accuracy", "precision", "recall", "f1_score"):
            value = getattr(self, name)
            assert 0.0 <= value <= 1.0, f"{name} must be in [0, 1]"


@dataclass
class TrainingProgress:
    """Progress report emitted during a training run

    Attributes:
        phase: Current training phase
        fraction: Overall completion in [0, 1], non-decreasing within a run
        message: Human readable status line
    """
    phase: TrainingPhase
    fraction: float
    message: Optional[str] = None

    def __post_init__(self):
        assert 0.0 <= self.fraction <= 1.0, "Progress must be in [0, 1]"

    @property
    def percentage(self) -> int:
        return int(round(self.fraction * 100))
