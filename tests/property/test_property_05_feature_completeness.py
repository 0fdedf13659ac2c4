"""Property-based tests for feature vector completeness

Property 5: Every extraction yields a finite vector of the full feature
dimension, with an all-zero audio block when the clip has no audio.
"""

import asyncio
import tempfile
from pathlib import Path

import numpy as np
from hypothesis import given, settings, strategies as st

from arousal_training.analysis.acoustic import AcousticFeatureExtractor
from arousal_training.models.enums import ArousalState
from arousal_training.models.features import AUDIO_SLICE, FEATURE_DIMENSION, AudioFeatureVector
from arousal_training.models.frames import AudioTrack

from helpers import make_clip, make_extractor


@settings(max_examples=50, deadline=None)
@given(
    samples=st.lists(st.floats(min_value=-1.0, max_value=1.0, allow_nan=False), min_size=1, max_size=3000),
    sample_rate=st.sampled_from([8000, 16000, 44100]),
    band_method=st.sampled_from(['proxy', 'mel']),
)
def test_acoustic_features_are_finite(samples, sample_rate, band_method):
    extractor = AcousticFeatureExtractor(band_method=band_method, pitch_method='amplitude', zcr_window=256)
    track = AudioTrack(samples=np.array(samples, dtype=np.float32), sample_rate=sample_rate)

    values = extractor.extract(track).to_array()

    assert values.shape == (AudioFeatureVector.dimension(),)
    assert np.all(np.isfinite(values))
    assert values[-1] >= 0.0  # speech rate


@settings(max_examples=50, deadline=None)
@given(
    level=st.integers(min_value=1, max_value=255),
    label=st.sampled_from(list(ArousalState)),
    has_audio=st.booleans(),
    max_frames=st.integers(min_value=1, max_value=8),
)
def test_extracted_vector_is_complete(level, label, has_audio, max_frames):
    with tempfile.TemporaryDirectory() as tmp:
        clip = make_clip(Path(tmp), "child", label, level=level)
        extractor = make_extractor(has_audio=has_audio, max_frames=max_frames)
        features = asyncio.run(extractor.extract(clip))

    vector = features.to_vector()
    assert vector.shape == (FEATURE_DIMENSION,)
    assert np.all(np.isfinite(vector))
    assert features.has_audio == has_audio
    if not has_audio:
        assert np.all(vector[AUDIO_SLICE] == 0.0)
