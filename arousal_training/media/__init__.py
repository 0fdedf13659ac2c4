"""Default media collaborators backed by PyAV, MediaPipe and OpenCV"""

from arousal_training.media.reader import PyAVFrameSampler, PyAVAudioDecoder
from arousal_training.media.detectors import MediaPipePoseDetector, MediaPipeFaceDetector

__all__ = [
    'PyAVFrameSampler',
    'PyAVAudioDecoder',
    'MediaPipePoseDetector',
    'MediaPipeFaceDetector',
]
