"""Synthetic collaborators and factories shared by the test suites

The fake frame sampler fills every frame with the first byte of the clip's
media file, and the fake detectors derive their landmarks from that value.
Clips written with different bytes therefore produce different feature
vectors without any real video decoding.
"""

from pathlib import Path
from typing import Dict, List, Optional
import uuid

import numpy as np

from arousal_training.analysis.errors import NoAudioTrackError, NoVideoTrackError
from arousal_training.analysis.feature_extractor import MultimodalFeatureExtractor
from arousal_training.analysis.acoustic import AcousticFeatureExtractor
from arousal_training.models.enums import ArousalState
from arousal_training.models.features import FaceObservation, PoseKeypoints
from arousal_training.models.frames import AudioTrack, VideoFrame
from arousal_training.models.interfaces import (
    AudioDecoder,
    FaceLandmarkDetector,
    FrameSampler,
    PoseDetector,
)
from arousal_training.models.records import TrainingClip


LABEL_LEVELS = {
    ArousalState.SHUTDOWN: 20,
    ArousalState.CALM: 70,
    ArousalState.ELEVATED: 120,
    ArousalState.ESCALATING: 170,
    ArousalState.CRISIS: 220,
}


def write_media(directory: Path, level: int = 100, size: int = 64, suffix: str = ".mp4") -> Path:
    """Write a fake clip file whose bytes all equal level"""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{uuid.uuid4()}{suffix}"
    path.write_bytes(bytes([level % 256]) * size)
    return path


def make_clip(directory: Path, child_id: str, label: ArousalState,
              level: Optional[int] = None, duration: float = 10.0) -> TrainingClip:
    """A clip whose media level encodes its label"""
    level = LABEL_LEVELS[label] if level is None else level
    path = write_media(directory, level)
    return TrainingClip(child_id=child_id, label=label, media_ref=str(path), duration_seconds=duration)


def make_clips(directory: Path, child_id: str, counts: Dict[ArousalState, int]) -> List[TrainingClip]:
    clips = []
    for label, count in counts.items():
        for i in range(count):
            # Small per-clip jitter keeps exemplars distinct
            clips.append(make_clip(directory, child_id, label, LABEL_LEVELS[label] + (i % 5)))
    return clips


def balanced_counts(per_label: int) -> Dict[ArousalState, int]:
    return {label: per_label for label in ArousalState}


class FakeFrameSampler(FrameSampler):
    """Frames filled with the media file's first byte"""

    def __init__(self, has_video: bool = True):
        self.has_video = has_video
        self.calls = 0

    def sample_frames(self, media_ref: str, max_frames: int, duration: float) -> List[VideoFrame]:
        self.calls += 1
        if not self.has_video:
            raise NoVideoTrackError(media_ref)
        level = Path(media_ref).read_bytes()[0]
        return [
            VideoFrame(
                image=np.full((8, 8, 3), level, dtype=np.uint8),
                timestamp=i * duration / max_frames,
                frame_number=i,
            )
            for i in range(max_frames)
        ]


class FakePoseDetector(PoseDetector):
    """Keypoints offset by the frame level; optionally fails on some frames"""

    def __init__(self, miss_every: int = 0, raise_every: int = 0):
        self.miss_every = miss_every
        self.raise_every = raise_every

    def detect(self, frame: VideoFrame) -> Optional[PoseKeypoints]:
        n = frame.frame_number
        if self.raise_every and n % self.raise_every == 0:
            raise RuntimeError("detector crashed")
        if self.miss_every and n % self.miss_every == 0:
            return None
        v = float(frame.image[0, 0, 0]) / 255.0
        return PoseKeypoints(
            nose=(0.5, 0.8 + 0.1 * v),
            neck=(0.5, 0.7),
            left_shoulder=(0.4, 0.65),
            right_shoulder=(0.6, 0.65),
            left_elbow=(0.3, 0.5),
            right_elbow=(0.7, 0.5),
            left_wrist=(0.3 - 0.2 * v, 0.4 + 0.3 * v),
            right_wrist=(0.7 + 0.2 * v, 0.4 + 0.3 * v),
            left_hip=(0.45, 0.35),
            right_hip=(0.55, 0.35),
            left_knee=(0.45, 0.15),
            right_knee=(0.55, 0.15),
        )


class FakeFaceDetector(FaceLandmarkDetector):
    """Face contours scaled by the frame level"""

    def __init__(self, miss_every: int = 0):
        self.miss_every = miss_every

    def detect(self, frame: VideoFrame) -> Optional[FaceObservation]:
        if self.miss_every and frame.frame_number % self.miss_every == 0:
            return None
        v = float(frame.image[0, 0, 0]) / 255.0
        eye = np.array([[0.1 * i, 0.6 + 0.05 * v] for i in range(3)]
                       + [[0.1 * i, 0.55 - 0.05 * v] for i in range(3)])
        lips = np.array([[0.1 * i, 0.3 + 0.1 * v] for i in range(3)]
                        + [[0.1 * i, 0.3 - 0.1 * v] for i in range(3)])
        outer = np.array([[0.4 - 0.1 * v, 0.3], [0.6 + 0.1 * v, 0.3], [0.5, 0.25]])
        brow = np.array([[0.3, 0.7 + 0.1 * v], [0.35, 0.72 + 0.1 * v]])
        return FaceObservation(
            left_eye=eye,
            right_eye=eye.copy(),
            inner_lips=lips,
            outer_lips=outer,
            left_eyebrow=brow,
            right_eyebrow=brow.copy(),
            yaw=0.1 * v,
            pitch=-0.1 * v,
            roll=0.0,
        )


class FakeAudioDecoder(AudioDecoder):
    """Sine tone whose amplitude follows the media level"""

    def __init__(self, has_audio: bool = True, sample_rate: int = 8000, seconds: float = 1.0):
        self.has_audio = has_audio
        self.sample_rate = sample_rate
        self.seconds = seconds

    def decode(self, media_ref: str) -> AudioTrack:
        if not self.has_audio:
            raise NoAudioTrackError(media_ref)
        level = Path(media_ref).read_bytes()[0] / 255.0
        t = np.arange(int(self.sample_rate * self.seconds)) / self.sample_rate
        samples = (level * np.sin(2 * np.pi * 220 * t)).astype(np.float32)
        return AudioTrack(samples=samples, sample_rate=self.sample_rate)


def make_extractor(has_audio: bool = True, max_frames: int = 6, max_concurrent: int = 1,
                   **detector_options) -> MultimodalFeatureExtractor:
    return MultimodalFeatureExtractor(
        frame_sampler=FakeFrameSampler(),
        pose_detector=FakePoseDetector(**detector_options),
        face_detector=FakeFaceDetector(),
        audio_decoder=FakeAudioDecoder(has_audio=has_audio),
        acoustic_extractor=AcousticFeatureExtractor(band_method='proxy'),
        max_frames=max_frames,
        max_concurrent=max_concurrent,
    )
