"""Pose Feature Extraction

Summarizes body motion over the sampled frames of a clip. Each frame with a
complete pose contributes one measurement per channel; frames where the
detector found nothing (or failed) are skipped.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

from arousal_training.analysis.statistics import compute_stats
from arousal_training.models.features import PoseFeatureVector, PoseKeypoints, Point
from arousal_training.models.frames import VideoFrame
from arousal_training.models.interfaces import PoseDetector


logger = logging.getLogger(__name__)

CHANNELS = (
    "head_x", "head_y", "torso_x", "torso_y",
    "left_arm_x", "left_arm_y", "right_arm_x", "right_arm_y",
    "left_leg_x", "left_leg_y", "right_leg_x", "right_leg_y",
    "velocity", "openness", "posture_angle",
)


def _midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)


def measure_pose(keypoints: PoseKeypoints) -> Dict[str, float]:
    """Per-frame pose measurements.

    head is the nose; torso is the shoulder midpoint; each arm is the
    midpoint of shoulder and wrist; each leg is the midpoint of hip and knee.
    Velocity is the head-to-torso distance within the frame, not motion
    across frames.
    """
    head_x, head_y = keypoints.nose
    torso_x, torso_y = _midpoint(keypoints.left_shoulder, keypoints.right_shoulder)
    left_arm = _midpoint(keypoints.left_shoulder, keypoints.left_wrist)
    right_arm = _midpoint(keypoints.right_shoulder, keypoints.right_wrist)
    left_leg = _midpoint(keypoints.left_hip, keypoints.left_knee)
    right_leg = _midpoint(keypoints.right_hip, keypoints.right_knee)

    neck_x, neck_y = keypoints.neck

    return {
        "head_x": head_x,
        "head_y": head_y,
        "torso_x": torso_x,
        "torso_y": torso_y,
        "left_arm_x": left_arm[0],
        "left_arm_y": left_arm[1],
        "right_arm_x": right_arm[0],
        "right_arm_y": right_arm[1],
        "left_leg_x": left_leg[0],
        "left_leg_y": left_leg[1],
        "right_leg_x": right_leg[0],
        "right_leg_y": right_leg[1],
        "velocity": math.hypot(head_x - torso_x, head_y - torso_y),
        "openness": abs(keypoints.left_wrist[0] - keypoints.right_wrist[0]),
        "posture_angle": math.atan2(neck_y - torso_y, neck_x - torso_x),
    }


def summarize_pose(observations: Sequence[PoseKeypoints]) -> PoseFeatureVector:
    """Reduce per-frame keypoints to the pose sub-vector (all zeros when empty)"""
    series: Dict[str, List[float]] = {name: [] for name in CHANNELS}
    for keypoints in observations:
        for name, value in measure_pose(keypoints).items():
            series[name].append(value)

    values = {}
    for name in CHANNELS:
        stats = compute_stats(series[name])
        values[f"{name}_mean"] = stats.mean
        values[f"{name}_std"] = stats.std
        if name == "velocity":
            values["velocity_max"] = stats.max
    return PoseFeatureVector(**values)


class PoseFeatureExtractor:
    """Runs a PoseDetector over sampled frames and summarizes the result"""

    def __init__(self, detector: PoseDetector):
        self.detector = detector

    def _detect(self, frame: VideoFrame) -> Optional[PoseKeypoints]:
        try:
            return self.detector.detect(frame)
        except Exception as e:
            logger.debug(f"Pose detection failed for frame {frame.frame_number}: {e}")
            return None

    def extract(self, frames: Sequence[VideoFrame]) -> PoseFeatureVector:
        observations = []
        for frame in frames:
            keypoints = self._detect(frame)
            if keypoints is not None:
                observations.append(keypoints)

        logger.debug(f"Pose detected in {len(observations)}/{len(frames)} frames")
        return summarize_pose(observations)
