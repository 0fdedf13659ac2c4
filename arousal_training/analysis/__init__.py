"""Feature extraction for pose, facial, and acoustic modalities"""

from arousal_training.analysis.acoustic import AcousticFeatureExtractor
from arousal_training.analysis.errors import (
    FeatureExtractionError,
    MediaNotFoundError,
    NoVideoTrackError,
    NoAudioTrackError,
    NoAudioDataError,
    ClipExtractionError,
)
from arousal_training.analysis.facial import FacialFeatureExtractor
from arousal_training.analysis.feature_extractor import MultimodalFeatureExtractor
from arousal_training.analysis.pose import PoseFeatureExtractor
from arousal_training.analysis.statistics import SummaryStats, compute_stats, mean_std

__all__ = [
    'AcousticFeatureExtractor',
    'FacialFeatureExtractor',
    'PoseFeatureExtractor',
    'MultimodalFeatureExtractor',
    'FeatureExtractionError',
    'MediaNotFoundError',
    'NoVideoTrackError',
    'NoAudioTrackError',
    'NoAudioDataError',
    'ClipExtractionError',
    'SummaryStats',
    'compute_stats',
    'mean_std',
]
