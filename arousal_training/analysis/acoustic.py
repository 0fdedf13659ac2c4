"""Acoustic Feature Extraction

Summarizes the vocal audio of a clip into a fixed 22-value block:

    6 bands x (mean, std) | pitch (mean, std, min, max) |
    energy (mean, std, max) | zero-crossing rate (mean, std) | speech rate

Band channels are six mel-band log energies by default. Setting
``audio.band_method: proxy`` instead repeats whole-signal mean/std on every
channel. Pitch defaults to a mean-absolute-amplitude proxy; setting
``audio.pitch_method: pyin`` tracks F0 with librosa's pYIN. The block shape
is identical in every mode.
"""

import logging
from typing import List, Optional, Tuple
import numpy as np
import librosa

from arousal_training.analysis.errors import NoAudioDataError
from arousal_training.analysis.statistics import compute_stats
from arousal_training.config.config_loader import config
from arousal_training.models.features import AudioFeatureVector
from arousal_training.models.frames import AudioTrack


logger = logging.getLogger(__name__)

N_BANDS = 6
MIN_MEL_SAMPLES = 64
MAX_N_FFT = 2048


class AcousticFeatureExtractor:
    """Extracts the audio sub-vector from a decoded audio track.

    Attributes:
        band_method: "mel" or "proxy"
        pitch_method: "amplitude" or "pyin"
        zcr_window: Window length (samples) for zero-crossing rate
        peak_threshold: Minimum amplitude of a speech-rate peak
    """

    def __init__(
        self,
        band_method: Optional[str] = None,
        pitch_method: Optional[str] = None,
        zcr_window: Optional[int] = None,
        peak_threshold: Optional[float] = None,
    ):
        self.band_method = band_method or config.get('audio.band_method', 'mel')
        self.pitch_method = pitch_method or config.get('audio.pitch_method', 'amplitude')
        self.zcr_window = zcr_window or config.get('audio.zcr_window', 1024)
        self.peak_threshold = (
            peak_threshold if peak_threshold is not None
            else config.get('audio.peak_threshold', 0.1)
        )

    @staticmethod
    def default_features() -> AudioFeatureVector:
        """Neutral block used when a clip has no usable audio"""
        return AudioFeatureVector.zeros()

    def _band_features(self, samples: np.ndarray, sample_rate: int) -> List[Tuple[float, float]]:
        """Per-band (mean, std) pairs"""
        if self.band_method == 'proxy' or len(samples) < MIN_MEL_SAMPLES:
            stats = compute_stats(samples)
            return [(stats.mean, stats.std)] * N_BANDS

        n_fft = min(MAX_N_FFT, 2 ** int(np.floor(np.log2(len(samples)))))
        mel = librosa.feature.melspectrogram(
            y=samples,
            sr=sample_rate,
            n_fft=n_fft,
            hop_length=n_fft // 4,
            n_mels=N_BANDS,
        )
        log_mel = librosa.power_to_db(mel, ref=1.0)
        return [
            (float(np.mean(band)), float(np.std(band)))
            for band in log_mel
        ]

    def _pitch_features(self, samples: np.ndarray, sample_rate: int) -> Tuple[float, float, float, float]:
        if self.pitch_method == 'pyin':
            if len(samples) < MAX_N_FFT:
                return (0.0, 0.0, 0.0, 0.0)
            f0, voiced_flag, _ = librosa.pyin(
                samples,
                fmin=librosa.note_to_hz('C2'),
                fmax=librosa.note_to_hz('C7'),
                sr=sample_rate,
            )
            voiced = f0[voiced_flag & ~np.isnan(f0)]
            stats = compute_stats(voiced)
        else:
            stats = compute_stats(np.abs(samples))
        return (stats.mean, stats.std, stats.min, stats.max)

    def _energy_features(self, samples: np.ndarray) -> Tuple[float, float, float]:
        stats = compute_stats(samples ** 2)
        return (stats.mean, stats.std, stats.max)

    def _zero_crossing_features(self, samples: np.ndarray) -> Tuple[float, float]:
        """Mean/std of crossings per sample over non-overlapping windows.

        A window starting at i counts sign changes between consecutive pairs
        inside [i, i + window). Only windows with i < len(samples) - window
        are used.
        """
        window = self.zcr_window
        if len(samples) - 1 < window:
            return (0.0, 0.0)

        # Dropping the last sample keeps exactly the windows starting before len - window.
        frames = librosa.util.frame(samples[:-1], frame_length=window, hop_length=window, axis=0)
        negative = frames < 0
        crossings = np.count_nonzero(negative[:, 1:] != negative[:, :-1], axis=1)
        stats = compute_stats(crossings / window)
        return (stats.mean, stats.std)

    def _speech_rate(self, samples: np.ndarray, duration: float) -> float:
        """Amplitude peaks above threshold per second of clip"""
        if len(samples) < 3 or duration <= 0:
            return 0.0
        middle = samples[1:-1]
        peaks = (middle > self.peak_threshold) & (middle > samples[:-2]) & (middle > samples[2:])
        return float(np.count_nonzero(peaks)) / duration

    def extract(self, track: AudioTrack, duration: Optional[float] = None) -> AudioFeatureVector:
        """Extract the audio block from a decoded track.

        Args:
            track: Decoded mono audio
            duration: Clip duration in seconds; the track length is used when
                      missing or non-positive

        Returns:
            AudioFeatureVector with 22 values

        Raises:
            NoAudioDataError: If the track contains no samples
        """
        if track.is_empty:
            raise NoAudioDataError("Audio track contains no samples")

        samples = track.samples.astype(np.float32)
        sr = track.sample_rate
        if not duration or duration <= 0:
            duration = track.duration

        bands = self._band_features(samples, sr)
        pitch_mean, pitch_std, pitch_min, pitch_max = self._pitch_features(samples, sr)
        energy_mean, energy_std, energy_max = self._energy_features(samples.astype(np.float64))
        zcr_mean, zcr_std = self._zero_crossing_features(samples)
        speech_rate = self._speech_rate(samples, duration)

        values = []
        for mean, std in bands:
            values.extend([mean, std])
        values.extend([
            pitch_mean, pitch_std, pitch_min, pitch_max,
            energy_mean, energy_std, energy_max,
            zcr_mean, zcr_std,
            speech_rate,
        ])

        logger.debug(
            f"Audio features: bands={self.band_method}, pitch={self.pitch_method}, "
            f"energy_mean={energy_mean:.4f}, zcr_mean={zcr_mean:.4f}, speech_rate={speech_rate:.2f}"
        )
        return AudioFeatureVector.from_array(values)
