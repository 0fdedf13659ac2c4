"""Enumerations for arousal labels and training phases"""

from enum import Enum
from typing import Tuple


class ArousalState(Enum):
    """Arousal labels a clip can carry

    Declaration order is significant: per-label counters, evaluation
    metrics and tie-breaking all iterate labels in this order.
    """
    SHUTDOWN = "shutdown"
    CALM = "calm"
    ELEVATED = "elevated"
    ESCALATING = "escalating"
    CRISIS = "crisis"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def score_range(self) -> Tuple[float, float]:
        """Expected arousal score interval for clips with this label"""
        return _SCORE_RANGES[self]

    @classmethod
    def default(cls) -> "ArousalState":
        """Label returned when no model can decide"""
        return cls.CALM


_DESCRIPTIONS = {
    ArousalState.SHUTDOWN: "Withdrawn, low energy, minimal movement or response",
    ArousalState.CALM: "Relaxed and regulated, typical baseline behaviour",
    ArousalState.ELEVATED: "Alert or excited, increased movement and vocal energy",
    ArousalState.ESCALATING: "Agitated, rapid movement, raised voice",
    ArousalState.CRISIS: "Overwhelmed, intense movement or vocalisation",
}

_SCORE_RANGES = {
    ArousalState.SHUTDOWN: (0.0, 0.2),
    ArousalState.CALM: (0.2, 0.4),
    ArousalState.ELEVATED: (0.4, 0.6),
    ArousalState.ESCALATING: (0.6, 0.8),
    ArousalState.CRISIS: (0.8, 1.0),
}


class TrainingPhase(Enum):
    """Phases of a training run, in execution order"""
    EXTRACTING_FEATURES = "extracting_features"
    PREPARING_DATA = "preparing_data"
    TRAINING = "training"
    EVALUATING = "evaluating"
    EXPORTING = "exporting"
    COMPLETE = "complete"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").capitalize()


class FeatureExtractionStatus(Enum):
    """Processing state of a single training clip"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
