"""
Integration tests for the end-to-end personalization pipeline.

Covers the full life cycle against file-backed storage:
- Recording clips until the corpus is ready
- Training, persisting and reloading a model across engine restarts
- Retraining, cleanup and cascading deletion
"""

import numpy as np
import pytest

from arousal_training.engine import PersonalizationEngine
from arousal_training.models.enums import ArousalState, TrainingPhase
from arousal_training.storage.record_store import FileRecordStore

from helpers import LABEL_LEVELS, make_extractor, write_media


CHILD = "child-42"


def _engine(root):
    return PersonalizationEngine(
        storage_root=str(root),
        record_store=FileRecordStore(str(root / "records")),
        extractor=make_extractor(max_frames=8),
    )


async def _record_until_ready(engine, incoming_dir):
    recorded = 0
    while not engine.is_ready_to_train(CHILD):
        label = engine.next_label_to_record(CHILD)
        path = write_media(incoming_dir, LABEL_LEVELS[label] + recorded % 5)
        await engine.add_clip(CHILD, label, str(path), 6.0)
        recorded += 1
    return recorded


@pytest.mark.asyncio
async def test_full_pipeline(tmp_path, incoming_dir):
    root = tmp_path / "store"
    engine = _engine(root)

    # Guided recording fills labels evenly until the thresholds are met
    recorded = await _record_until_ready(engine, incoming_dir)
    assert recorded == 25
    assert all(count == 5 for count in engine.statistics(CHILD).label_counts.values())
    assert engine.readiness_message(CHILD).startswith("Ready to train!")

    updates = []
    record = await engine.train(CHILD, progress_callback=updates.append)

    assert record.version == 1
    assert record.training_clip_count == 25
    assert updates[-1].phase == TrainingPhase.COMPLETE
    assert (root / "models" / CHILD / "arousal_model_v1.json").is_file()
    assert (root / "records" / f"model.record.{CHILD}.json").is_file()
    assert (root / "records" / f"training.corpus.{CHILD}.json").is_file()

    # A fresh engine sees the same corpus and model
    restarted = _engine(root)
    assert len(restarted.clips(CHILD)) == 25
    assert restarted.current_model(CHILD) == record
    clip = restarted.clips(CHILD)[0]
    features = await restarted.trainer.extractor.extract(clip)
    assert restarted.predict(CHILD, features.to_vector()) == engine.predict(CHILD, features.to_vector())


@pytest.mark.asyncio
async def test_model_separates_distinct_states(tmp_path, incoming_dir):
    """With well separated synthetic clips the model recovers the labels"""
    root = tmp_path / "store"
    engine = _engine(root)
    for label in ArousalState:
        for i in range(10):
            path = write_media(incoming_dir, LABEL_LEVELS[label] + i % 3)
            await engine.add_clip(CHILD, label, str(path), 6.0)

    record = await engine.train(CHILD)
    assert record.accuracy >= 0.8

    for label in ArousalState:
        probe = await engine.add_clip(CHILD, label, str(write_media(incoming_dir, LABEL_LEVELS[label] + 1)), 6.0)
        features = await engine.trainer.extractor.extract(probe)
        assert engine.predict(CHILD, features.to_vector()) == label


@pytest.mark.asyncio
async def test_retrain_cleanup_and_delete(tmp_path, incoming_dir):
    root = tmp_path / "store"
    engine = _engine(root)
    await _record_until_ready(engine, incoming_dir)

    first = await engine.train(CHILD)
    path = write_media(incoming_dir, LABEL_LEVELS[ArousalState.CRISIS])
    extra = await engine.add_clip(CHILD, ArousalState.CRISIS, str(path), 6.0)
    second = await engine.train(CHILD)

    assert (first.version, second.version) == (1, 2)
    assert second.training_clip_count == 26
    assert engine.current_model(CHILD).version == 2

    # Losing a clip's media only drops that clip
    extra.media_path.unlink()
    orphaned, aged = await engine.cleanup(CHILD)
    assert [c.id for c in orphaned] == [extra.id]
    assert aged == []
    assert engine.is_ready_to_train(CHILD)

    await engine.delete_child(CHILD)

    assert engine.clips(CHILD) == []
    assert not engine.has_model(CHILD)
    assert not (root / "models" / CHILD).exists()
    assert not (root / "training_clips" / CHILD).exists()
    assert not (root / "records" / f"model.record.{CHILD}.json").exists()
    assert engine.predict(CHILD, np.zeros(81)) == ArousalState.CALM
