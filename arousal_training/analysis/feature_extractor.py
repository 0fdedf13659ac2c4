"""Multimodal Feature Extraction

Turns a training clip into ExtractedFeatures by sampling frames once,
running pose and facial extraction over them concurrently, and decoding
and summarizing the audio track alongside. Detector work runs in worker
threads so the event loop stays responsive.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Sequence, Tuple

from arousal_training.analysis.acoustic import AcousticFeatureExtractor
from arousal_training.analysis.errors import (
    ClipExtractionError,
    MediaNotFoundError,
    NoAudioDataError,
    NoAudioTrackError,
)
from arousal_training.analysis.facial import FacialFeatureExtractor
from arousal_training.analysis.pose import PoseFeatureExtractor
from arousal_training.config.config_loader import config
from arousal_training.models.features import AudioFeatureVector, ExtractedFeatures
from arousal_training.models.interfaces import (
    AudioDecoder,
    FaceLandmarkDetector,
    FrameSampler,
    PoseDetector,
)
from arousal_training.models.records import TrainingClip


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class MultimodalFeatureExtractor:
    """Extracts the full feature vector of training clips.

    Attributes:
        frame_sampler: Source of still frames
        audio_decoder: Source of the audio track
        pose_extractor: Summarizes pose over frames
        facial_extractor: Summarizes facial landmarks over frames
        acoustic_extractor: Summarizes the audio track
        max_frames: Frames sampled per clip
        max_concurrent: Clips extracted in parallel by extract_all
    """

    def __init__(
        self,
        frame_sampler: FrameSampler,
        pose_detector: PoseDetector,
        face_detector: FaceLandmarkDetector,
        audio_decoder: AudioDecoder,
        acoustic_extractor: Optional[AcousticFeatureExtractor] = None,
        max_frames: Optional[int] = None,
        max_concurrent: Optional[int] = None,
    ):
        self.frame_sampler = frame_sampler
        self.audio_decoder = audio_decoder
        self.pose_extractor = PoseFeatureExtractor(pose_detector)
        self.facial_extractor = FacialFeatureExtractor(face_detector)
        self.acoustic_extractor = acoustic_extractor or AcousticFeatureExtractor()
        self.max_frames = max_frames or config.get('extraction.max_frames', 30)
        self.max_concurrent = max_concurrent or config.get('extraction.max_concurrent_clips', 1)

        logger.info(
            f"MultimodalFeatureExtractor initialized with max_frames={self.max_frames}, "
            f"max_concurrent={self.max_concurrent}"
        )

    def _extract_audio_sync(self, clip: TrainingClip) -> AudioFeatureVector:
        track = self.audio_decoder.decode(clip.media_ref)
        return self.acoustic_extractor.extract(track, clip.duration_seconds)

    async def _extract_audio(self, clip: TrainingClip) -> Tuple[AudioFeatureVector, bool]:
        """Audio block plus whether it came from real audio.

        Any audio failure falls back to the neutral block.
        """
        try:
            audio = await asyncio.to_thread(self._extract_audio_sync, clip)
            return audio, True
        except (NoAudioTrackError, NoAudioDataError) as e:
            logger.info(f"No usable audio in clip {clip.id}, using default audio features: {e}")
        except Exception as e:
            logger.error(f"Audio extraction failed for clip {clip.id}, using default: {e}", exc_info=True)
        return AcousticFeatureExtractor.default_features(), False

    async def extract(self, clip: TrainingClip) -> ExtractedFeatures:
        """Extract all features from one clip.

        Args:
            clip: Clip whose media should be analyzed

        Returns:
            ExtractedFeatures for the clip

        Raises:
            MediaNotFoundError: If the media is missing or empty
            NoVideoTrackError: If the media has no video track
        """
        if not clip.media_exists():
            raise MediaNotFoundError(clip.id, clip.media_ref)

        logger.debug(f"Starting feature extraction for clip {clip.id}")

        frames = await asyncio.to_thread(
            self.frame_sampler.sample_frames,
            clip.media_ref,
            self.max_frames,
            clip.duration_seconds,
        )
        logger.debug(f"Sampled {len(frames)} frames from clip {clip.id}")

        pose, facial, (audio, has_audio) = await asyncio.gather(
            asyncio.to_thread(self.pose_extractor.extract, frames),
            asyncio.to_thread(self.facial_extractor.extract, frames),
            self._extract_audio(clip),
        )

        logger.debug(f"Feature extraction complete for clip {clip.id}")
        return ExtractedFeatures(
            clip_id=clip.id,
            child_id=clip.child_id,
            label=clip.label,
            pose=pose,
            facial=facial,
            audio=audio,
            has_audio=has_audio,
        )

    async def _extract_or_raise(self, clip: TrainingClip) -> ExtractedFeatures:
        try:
            return await self.extract(clip)
        except Exception as e:
            logger.error(f"Failed to extract features from clip {clip.id}: {e}")
            raise ClipExtractionError(clip.id, e) from e

    async def extract_all(
        self,
        clips: Sequence[TrainingClip],
        progress_callback: Optional[ProgressCallback] = None,
        max_concurrent: Optional[int] = None,
    ) -> List[ExtractedFeatures]:
        """Extract features from a batch of clips.

        Results keep input order. Progress is reported as the fraction of
        clips finished and never decreases. The first fatal failure aborts
        the batch.

        Args:
            clips: Clips to analyze
            progress_callback: Called with the completed fraction after each clip
            max_concurrent: Clips processed in parallel (defaults to configuration)

        Returns:
            One ExtractedFeatures per clip, in input order

        Raises:
            ClipExtractionError: Wrapping the first failure, with its clip id
        """
        total = len(clips)
        if total == 0:
            return []

        limit = max(1, max_concurrent or self.max_concurrent)
        completed = 0

        def report():
            nonlocal completed
            completed += 1
            if progress_callback is not None:
                progress_callback(completed / total)

        if limit == 1:
            results = []
            for clip in clips:
                results.append(await self._extract_or_raise(clip))
                report()
            return results

        semaphore = asyncio.Semaphore(limit)

        async def run(clip: TrainingClip) -> ExtractedFeatures:
            async with semaphore:
                features = await self._extract_or_raise(clip)
            report()
            return features

        tasks = [asyncio.create_task(run(clip)) for clip in clips]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
