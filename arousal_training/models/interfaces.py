"""Base interfaces for media access and per-frame detection"""

from abc import ABC, abstractmethod
from typing import List, Optional
from arousal_training.models.frames import AudioTrack, VideoFrame
from arousal_training.models.features import FaceObservation, PoseKeypoints


class FrameSampler(ABC):
    """Samples still frames from a clip's video track"""

    @abstractmethod
    def sample_frames(self, media_ref: str, max_frames: int, duration: float) -> List[VideoFrame]:
        """Sample up to max_frames frames evenly spaced over the clip

        Frame i is taken at time i * duration / max_frames.

        Args:
            media_ref: Path of the clip media
            max_frames: Number of frames requested
            duration: Clip duration in seconds

        Returns:
            Frames in timestamp order (may be fewer than requested)

        Raises:
            NoVideoTrackError: If the media has no video track
        """
        pass


class AudioDecoder(ABC):
    """Decodes a clip's audio track into mono samples"""

    @abstractmethod
    def decode(self, media_ref: str) -> AudioTrack:
        """Decode the full audio track

        Args:
            media_ref: Path of the clip media

        Returns:
            Mono audio track

        Raises:
            NoAudioTrackError: If the media has no audio track
        """
        pass


class PoseDetector(ABC):
    """Detects body joints in a single frame"""

    @abstractmethod
    def detect(self, frame: VideoFrame) -> Optional[PoseKeypoints]:
        """Detect the primary person's joints

        Returns:
            Keypoints, or None when no complete pose was found
        """
        pass


class FaceLandmarkDetector(ABC):
    """Detects facial landmark regions in a single frame"""

    @abstractmethod
    def detect(self, frame: VideoFrame) -> Optional[FaceObservation]:
        """Detect the primary face

        Returns:
            Face observation, or None when no face was found
        """
        pass
