"""Data models and interfaces"""

from arousal_training.models.enums import ArousalState, TrainingPhase, FeatureExtractionStatus
from arousal_training.models.frames import VideoFrame, AudioTrack
from arousal_training.models.features import (
    PoseKeypoints,
    FaceObservation,
    PoseFeatureVector,
    FacialFeatureVector,
    AudioFeatureVector,
    ExtractedFeatures,
    FEATURE_NAMES,
    FEATURE_DIMENSION,
)
from arousal_training.models.records import (
    TrainingClip,
    TrainingCorpus,
    ModelRecord,
    TrainingStatistics,
)
from arousal_training.models.results import (
    LabeledExample,
    LabelCounts,
    ModelMetrics,
    TrainingProgress,
)
from arousal_training.models.interfaces import (
    FrameSampler,
    AudioDecoder,
    PoseDetector,
    FaceLandmarkDetector,
)

__all__ = [
    # Enums
    "ArousalState",
    "TrainingPhase",
    "FeatureExtractionStatus",
    # Frames
    "VideoFrame",
    "AudioTrack",
    # Features
    "PoseKeypoints",
    "FaceObservation",
    "PoseFeatureVector",
    "FacialFeatureVector",
    "AudioFeatureVector",
    "ExtractedFeatures",
    "FEATURE_NAMES",
    "FEATURE_DIMENSION",
    # Records
    "TrainingClip",
    "TrainingCorpus",
    "ModelRecord",
    "TrainingStatistics",
    # Results
    "LabeledExample",
    "LabelCounts",
    "ModelMetrics",
    "TrainingProgress",
    # Interfaces
    "FrameSampler",
    "AudioDecoder",
    "PoseDetector",
    "FaceLandmarkDetector",
]
