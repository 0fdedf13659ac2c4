"""PyAV-backed frame sampling and audio decoding for clip media"""

import logging
from pathlib import Path
from typing import List, Optional

import av
import numpy as np

from arousal_training.analysis.errors import (
    FeatureExtractionError,
    NoAudioTrackError,
    NoVideoTrackError,
)
from arousal_training.config.config_loader import config
from arousal_training.models.frames import AudioTrack, VideoFrame
from arousal_training.models.interfaces import AudioDecoder, FrameSampler


logger = logging.getLogger(__name__)


def _open(media_ref: str):
    if not Path(media_ref).exists():
        raise FileNotFoundError(f"Media file not found: {media_ref}")
    try:
        return av.open(media_ref)
    except Exception as e:
        logger.error(f"Failed to open media {media_ref}: {e}")
        raise FeatureExtractionError(f"Cannot open media {media_ref}: {e}") from e


def _first_stream(container, kind: str):
    for stream in container.streams:
        if stream.type == kind:
            return stream
    return None


def _container_duration(container, stream) -> float:
    if stream.duration is not None and stream.time_base is not None:
        return float(stream.duration * stream.time_base)
    if container.duration is not None:
        return container.duration / av.time_base
    return 0.0


class PyAVFrameSampler(FrameSampler):
    """Samples RGB frames at evenly spaced timestamps.

    Frames are decoded sequentially; for each target time i * duration / n
    the first decoded frame at or after it is kept.
    """

    def sample_frames(self, media_ref: str, max_frames: int, duration: float) -> List[VideoFrame]:
        container = _open(media_ref)
        with container:
            video_stream = _first_stream(container, 'video')
            if video_stream is None:
                raise NoVideoTrackError(media_ref)

            if not duration or duration <= 0:
                duration = _container_duration(container, video_stream)

            targets = [i * duration / max_frames for i in range(max_frames)]
            frames: List[VideoFrame] = []
            next_target = 0

            for av_frame in container.decode(video_stream):
                if next_target >= len(targets):
                    break
                timestamp = av_frame.time if av_frame.time is not None else 0.0
                if timestamp + 1e-6 < targets[next_target]:
                    continue

                image = av_frame.to_ndarray(format='rgb24')
                frames.append(VideoFrame(
                    image=image,
                    timestamp=max(timestamp, 0.0),
                    frame_number=len(frames),
                ))
                # One decoded frame may satisfy several targets on short clips
                while next_target < len(targets) and targets[next_target] <= timestamp + 1e-6:
                    next_target += 1

            codec = video_stream.codec_context.name
            logger.debug(f"Sampled {len(frames)}/{max_frames} frames ({codec}) from {media_ref}")
            return frames


class PyAVAudioDecoder(AudioDecoder):
    """Decodes the first audio stream to mono float32 samples.

    Attributes:
        sample_rate: Target sample rate; None keeps the stream's native rate
    """

    def __init__(self, sample_rate: Optional[int] = None):
        self.sample_rate = sample_rate or config.get('audio.sample_rate')

    def decode(self, media_ref: str) -> AudioTrack:
        container = _open(media_ref)
        with container:
            audio_stream = _first_stream(container, 'audio')
            if audio_stream is None:
                raise NoAudioTrackError(media_ref)

            rate = self.sample_rate or audio_stream.codec_context.sample_rate or 44100
            resampler = av.AudioResampler(format='flt', layout='mono', rate=rate)

            chunks = []
            for av_frame in container.decode(audio_stream):
                for resampled in resampler.resample(av_frame):
                    chunks.append(resampled.to_ndarray().reshape(-1))
            for resampled in resampler.resample(None):
                chunks.append(resampled.to_ndarray().reshape(-1))

            samples = np.concatenate(chunks).astype(np.float32) if chunks else np.zeros(0, dtype=np.float32)
            logger.debug(f"Decoded {len(samples)} audio samples at {rate} Hz from {media_ref}")
            return AudioTrack(samples=samples, sample_rate=int(rate))
