"""Facial Feature Extraction

Summarizes facial expression over the sampled frames of a clip from
landmark contours. Measurements use normalized, y-up coordinates.
"""

import logging
from typing import Dict, List, Optional, Sequence
import numpy as np

from arousal_training.analysis.statistics import compute_stats
from arousal_training.models.features import FaceObservation, FacialFeatureVector
from arousal_training.models.frames import VideoFrame
from arousal_training.models.interfaces import FaceLandmarkDetector


logger = logging.getLogger(__name__)

DEFAULT_EYE_OPEN = 0.5
DEFAULT_MOUTH_OPEN = 0.0
DEFAULT_MOUTH_WIDTH = 0.5
DEFAULT_BROW_HEIGHT = 0.5
SMILE_FACTOR = 0.8
CHEEK_FACTOR = 0.7

CHANNELS = (
    "left_eye_open", "right_eye_open", "mouth_open", "mouth_width",
    "left_brow_height", "right_brow_height", "brow_raise", "brow_lower",
    "smile", "jaw_open", "cheek_raise", "head_yaw", "head_pitch", "head_roll",
)


def contour_openness(points: Optional[np.ndarray], default: float) -> float:
    """Vertical gap between the two halves of a contour.

    Top is the highest point of the first half, bottom the lowest point of
    the second half. Contours with fewer than 6 points give 0.5.
    """
    if points is None:
        return default
    if len(points) < 6:
        return 0.5
    half = len(points) // 2
    top = float(np.max(points[:half, 1]))
    bottom = float(np.min(points[half:, 1]))
    return abs(top - bottom)


def contour_width(points: Optional[np.ndarray]) -> float:
    if points is None or len(points) == 0:
        return DEFAULT_MOUTH_WIDTH
    return float(np.max(points[:, 0]) - np.min(points[:, 0]))


def brow_height(points: Optional[np.ndarray]) -> float:
    if points is None or len(points) == 0:
        return DEFAULT_BROW_HEIGHT
    return float(np.max(points[:, 1]))


def measure_face(face: FaceObservation) -> Dict[str, float]:
    """Per-frame facial measurements"""
    mouth_open = contour_openness(face.inner_lips, DEFAULT_MOUTH_OPEN)
    mouth_width = contour_width(face.outer_lips)
    left_brow = brow_height(face.left_eyebrow)
    right_brow = brow_height(face.right_eyebrow)
    smile = mouth_width * SMILE_FACTOR

    return {
        "left_eye_open": contour_openness(face.left_eye, DEFAULT_EYE_OPEN),
        "right_eye_open": contour_openness(face.right_eye, DEFAULT_EYE_OPEN),
        "mouth_open": mouth_open,
        "mouth_width": mouth_width,
        "left_brow_height": left_brow,
        "right_brow_height": right_brow,
        "brow_raise": max(left_brow, right_brow) - 0.5,
        "brow_lower": 0.5 - min(left_brow, right_brow),
        "smile": smile,
        "jaw_open": mouth_open,
        "cheek_raise": smile * CHEEK_FACTOR,
        "head_yaw": face.yaw if face.yaw is not None else 0.0,
        "head_pitch": face.pitch if face.pitch is not None else 0.0,
        "head_roll": face.roll if face.roll is not None else 0.0,
    }


def summarize_faces(observations: Sequence[FaceObservation]) -> FacialFeatureVector:
    """Reduce per-frame observations to the facial sub-vector (all zeros when empty)"""
    series: Dict[str, List[float]] = {name: [] for name in CHANNELS}
    for face in observations:
        for name, value in measure_face(face).items():
            series[name].append(value)

    values = {}
    for name in CHANNELS:
        stats = compute_stats(series[name])
        values[f"{name}_mean"] = stats.mean
        values[f"{name}_std"] = stats.std
    return FacialFeatureVector(**values)


class FacialFeatureExtractor:
    """Runs a FaceLandmarkDetector over sampled frames and summarizes the result"""

    def __init__(self, detector: FaceLandmarkDetector):
        self.detector = detector

    def _detect(self, frame: VideoFrame) -> Optional[FaceObservation]:
        try:
            return self.detector.detect(frame)
        except Exception as e:
            logger.debug(f"Face detection failed for frame {frame.frame_number}: {e}")
            return None

    def extract(self, frames: Sequence[VideoFrame]) -> FacialFeatureVector:
        observations = []
        for frame in frames:
            face = self._detect(frame)
            if face is not None:
                observations.append(face)

        logger.debug(f"Face detected in {len(observations)}/{len(frames)} frames")
        return summarize_faces(observations)
