"""Data models for decoded video frames and audio tracks"""

from dataclasses import dataclass
import numpy as np


@dataclass
class VideoFrame:
    """A single video frame sampled from a clip

    Attributes:
        image: RGB image as numpy array (H, W, 3)
        timestamp: Seconds since clip start
        frame_number: Index of the frame within the sampled sequence
    """
    image: np.ndarray    # RGB image (H, W, 3)
    timestamp: float     # seconds since clip start
    frame_number: int

    def __post_init__(self):
        """Validate video frame data integrity.

        Raises:
            AssertionError: If any validation check fails
        """
        assert self.timestamp >= 0, "Timestamp must be non-negative"
        assert self.frame_number >= 0, "Frame number must be non-negative"
        assert isinstance(self.image, np.ndarray), "Image must be numpy array"
        assert len(self.image.shape) == 3, "Image must be 3D array (H, W, C)"
        assert self.image.shape[2] == 3, "Image must have 3 channels (RGB)"

    @property
    def resolution(self) -> tuple:
        """(width, height) of the frame"""
        return (self.image.shape[1], self.image.shape[0])


@dataclass
class AudioTrack:
    """The full mono audio track of a clip

    Attributes:
        samples: Mono PCM samples as float numpy array, nominally in [-1, 1]
        sample_rate: Sample rate in Hz
    """
    samples: np.ndarray
    sample_rate: int

    def __post_init__(self):
        assert self.sample_rate > 0, "Sample rate must be positive"
        assert isinstance(self.samples, np.ndarray), "Samples must be numpy array"
        assert self.samples.ndim == 1, "Samples must be mono (1D array)"

    @property
    def duration(self) -> float:
        """Track duration in seconds"""
        return len(self.samples) / self.sample_rate

    @property
    def is_empty(self) -> bool:
        return len(self.samples) == 0
