"""Data models for detector observations and extracted feature vectors"""

from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
import numpy as np

from arousal_training.models.enums import ArousalState


Point = Tuple[float, float]


@dataclass
class PoseKeypoints:
    """Body joints detected in one frame

    Coordinates are normalized to [0, 1] with the origin at the bottom-left
    of the image (y grows upward). A detector only returns keypoints when
    every joint below was found.
    """
    nose: Point
    neck: Point
    left_shoulder: Point
    right_shoulder: Point
    left_elbow: Point
    right_elbow: Point
    left_wrist: Point
    right_wrist: Point
    left_hip: Point
    right_hip: Point
    left_knee: Point
    right_knee: Point
    confidence: float = 1.0

    def __post_init__(self):
        assert 0.0 <= self.confidence <= 1.0, "Confidence must be in [0, 1]"


@dataclass
class FaceObservation:
    """Facial landmark regions and head orientation detected in one frame

    Attributes:
        left_eye: (N, 2) contour points, upper lid first then lower lid
        right_eye: (N, 2) contour points, upper lid first then lower lid
        inner_lips: (N, 2) contour points, upper lip first then lower lip
        outer_lips: (N, 2) contour points
        left_eyebrow: (N, 2) points
        right_eyebrow: (N, 2) points
        yaw: Head yaw in radians, None when unavailable
        pitch: Head pitch in radians, None when unavailable
        roll: Head roll in radians, None when unavailable
        confidence: Detection confidence score [0, 1]

    Region coordinates use the same normalized, y-up convention as
    PoseKeypoints. Any region may be None when the detector did not find it.
    """
    left_eye: Optional[np.ndarray] = None
    right_eye: Optional[np.ndarray] = None
    inner_lips: Optional[np.ndarray] = None
    outer_lips: Optional[np.ndarray] = None
    left_eyebrow: Optional[np.ndarray] = None
    right_eyebrow: Optional[np.ndarray] = None
    yaw: Optional[float] = None
    pitch: Optional[float] = None
    roll: Optional[float] = None
    confidence: float = 1.0

    def __post_init__(self):
        """Validate landmark data"""
        assert 0.0 <= self.confidence <= 1.0, "Confidence must be in [0, 1]"
        for name in ("left_eye", "right_eye", "inner_lips", "outer_lips",
                     "left_eyebrow", "right_eyebrow"):
            points = getattr(self, name)
            if points is not None and len(points) > 0:
                assert isinstance(points, np.ndarray), f"{name} must be numpy array"
                assert points.ndim == 2 and points.shape[1] == 2, \
                    f"{name} must be an (N, 2) array"


class _FeatureBlock:
    """Mixin giving fixed-order array conversion to the feature dataclasses"""

    PREFIX = ""

    def to_array(self) -> np.ndarray:
        return np.array([getattr(self, f.name) for f in fields(self)], dtype=np.float64)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def field_names(cls) -> List[str]:
        return [f"{cls.PREFIX}.{f.name}" for f in fields(cls)]

    @classmethod
    def dimension(cls) -> int:
        return len(fields(cls))

    @classmethod
    def from_array(cls, values):
        values = list(values)
        assert len(values) == cls.dimension(), \
            f"{cls.__name__} expects {cls.dimension()} values, got {len(values)}"
        return cls(*[float(v) for v in values])

    @classmethod
    def zeros(cls):
        return cls(*([0.0] * cls.dimension()))


@dataclass
class PoseFeatureVector(_FeatureBlock):
    """Body motion summary of a clip (31 values)"""
    PREFIX = "pose"

    head_x_mean: float
    head_x_std: float
    head_y_mean: float
    head_y_std: float
    torso_x_mean: float
    torso_x_std: float
    torso_y_mean: float
    torso_y_std: float
    left_arm_x_mean: float
    left_arm_x_std: float
    left_arm_y_mean: float
    left_arm_y_std: float
    right_arm_x_mean: float
    right_arm_x_std: float
    right_arm_y_mean: float
    right_arm_y_std: float
    left_leg_x_mean: float
    left_leg_x_std: float
    left_leg_y_mean: float
    left_leg_y_std: float
    right_leg_x_mean: float
    right_leg_x_std: float
    right_leg_y_mean: float
    right_leg_y_std: float
    velocity_mean: float
    velocity_std: float
    velocity_max: float
    openness_mean: float
    openness_std: float
    posture_angle_mean: float
    posture_angle_std: float


@dataclass
class FacialFeatureVector(_FeatureBlock):
    """Facial expression summary of a clip (28 values)"""
    PREFIX = "face"

    left_eye_open_mean: float
    left_eye_open_std: float
    right_eye_open_mean: float
    right_eye_open_std: float
    mouth_open_mean: float
    mouth_open_std: float
    mouth_width_mean: float
    mouth_width_std: float
    left_brow_height_mean: float
    left_brow_height_std: float
    right_brow_height_mean: float
    right_brow_height_std: float
    brow_raise_mean: float
    brow_raise_std: float
    brow_lower_mean: float
    brow_lower_std: float
    smile_mean: float
    smile_std: float
    jaw_open_mean: float
    jaw_open_std: float
    cheek_raise_mean: float
    cheek_raise_std: float
    head_yaw_mean: float
    head_yaw_std: float
    head_pitch_mean: float
    head_pitch_std: float
    head_roll_mean: float
    head_roll_std: float


@dataclass
class AudioFeatureVector(_FeatureBlock):
    """Vocal audio summary of a clip (22 values)

    The six band channels are mel-band log energies or, in proxy mode,
    whole-signal statistics repeated per channel. Pitch is an amplitude
    proxy unless pYIN tracking is enabled.
    """
    PREFIX = "audio"

    band0_mean: float
    band0_std: float
    band1_mean: float
    band1_std: float
    band2_mean: float
    band2_std: float
    band3_mean: float
    band3_std: float
    band4_mean: float
    band4_std: float
    band5_mean: float
    band5_std: float
    pitch_mean: float
    pitch_std: float
    pitch_min: float
    pitch_max: float
    energy_mean: float
    energy_std: float
    energy_max: float
    zcr_mean: float
    zcr_std: float
    speech_rate: float


FEATURE_NAMES: List[str] = (
    PoseFeatureVector.field_names()
    + FacialFeatureVector.field_names()
    + AudioFeatureVector.field_names()
)
FEATURE_DIMENSION = len(FEATURE_NAMES)

POSE_SLICE = slice(0, PoseFeatureVector.dimension())
FACE_SLICE = slice(POSE_SLICE.stop, POSE_SLICE.stop + FacialFeatureVector.dimension())
AUDIO_SLICE = slice(FACE_SLICE.stop, FEATURE_DIMENSION)


@dataclass
class ExtractedFeatures:
    """All features extracted from one training clip

    Attributes:
        clip_id: Identifier of the source clip
        child_id: Owner of the clip
        label: Arousal label of the clip
        pose: Body motion sub-vector
        facial: Facial expression sub-vector
        audio: Vocal audio sub-vector (all zeros when the clip has no audio)
        extracted_at: UTC time of extraction
        has_audio: Whether the audio sub-vector came from a real audio track
    """
    clip_id: str
    child_id: str
    label: ArousalState
    pose: PoseFeatureVector
    facial: FacialFeatureVector
    audio: AudioFeatureVector
    extracted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    has_audio: bool = True

    def to_vector(self) -> np.ndarray:
        """Concatenate pose, facial and audio blocks in FEATURE_NAMES order"""
        vector = np.concatenate([
            self.pose.to_array(),
            self.facial.to_array(),
            self.audio.to_array(),
        ])
        assert vector.shape == (FEATURE_DIMENSION,)
        return vector
