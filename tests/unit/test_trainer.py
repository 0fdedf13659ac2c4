"""Unit tests for the Model Trainer"""

import numpy as np
import pytest

from arousal_training.analysis.errors import ClipExtractionError, MediaNotFoundError
from arousal_training.models.enums import ArousalState, TrainingPhase
from arousal_training.models.results import LabeledExample
from arousal_training.storage.record_store import InMemoryRecordStore, StorageError
from arousal_training.training.errors import (
    InsufficientDataError,
    InsufficientDataForLabelError,
    ModelExportError,
)
from arousal_training.training.knn import build_model
from arousal_training.training.model_store import ModelStore
from arousal_training.training.trainer import ModelTrainer, evaluate_model

from helpers import balanced_counts, make_clips, make_extractor


CHILD = "child-1"


@pytest.fixture
def trainer(model_store):
    return ModelTrainer(make_extractor(), model_store, rng=np.random.default_rng(42))


@pytest.fixture
def clip_dir(tmp_path):
    return tmp_path / "media"


class FailingRecordStore(InMemoryRecordStore):
    """Accepts corpus records but refuses model records"""

    def save(self, key, record):
        if key.startswith("model.record."):
            raise StorageError("disk full")
        super().save(key, record)


class TestConstruction:
    """Tests for trainer parameters"""

    @pytest.mark.parametrize("options", [{"k": 0}, {"train_split": 0.0}, {"train_split": 1.0}])
    def test_explicit_invalid_values_are_not_replaced(self, model_store, options):
        with pytest.raises(ValueError):
            ModelTrainer(make_extractor(), model_store, **options)

    def test_explicit_values_are_kept(self, model_store):
        trainer = ModelTrainer(make_extractor(), model_store, k=1, train_split=0.5)
        assert (trainer.k, trainer.train_split) == (1, 0.5)

    def test_defaults_come_from_configuration(self, model_store):
        trainer = ModelTrainer(make_extractor(), model_store)
        assert (trainer.k, trainer.train_split) == (5, 0.8)


class TestValidation:
    """Tests for corpus validation before training"""

    def test_too_few_clips(self, trainer, clip_dir):
        clips = make_clips(clip_dir, CHILD, balanced_counts(4))
        with pytest.raises(InsufficientDataError) as exc_info:
            trainer.validate(clips)
        assert (exc_info.value.have, exc_info.value.need) == (20, 25)

    def test_one_short_of_total(self, trainer, clip_dir):
        counts = balanced_counts(5)
        counts[ArousalState.CRISIS] = 4
        with pytest.raises(InsufficientDataError) as exc_info:
            trainer.validate(make_clips(clip_dir, CHILD, counts))
        assert exc_info.value.have == 24

    def test_label_below_minimum(self, trainer, clip_dir):
        counts = {
            ArousalState.SHUTDOWN: 6,
            ArousalState.CALM: 6,
            ArousalState.ELEVATED: 5,
            ArousalState.ESCALATING: 5,
            ArousalState.CRISIS: 3,
        }
        with pytest.raises(InsufficientDataForLabelError) as exc_info:
            trainer.validate(make_clips(clip_dir, CHILD, counts))
        error = exc_info.value
        assert (error.label, error.have, error.need) == (ArousalState.CRISIS, 3, 5)

    def test_enough_clips_but_one_label_at_four(self, trainer, clip_dir):
        counts = balanced_counts(5)
        counts[ArousalState.CALM] = 6
        counts[ArousalState.ESCALATING] = 4
        with pytest.raises(InsufficientDataForLabelError) as exc_info:
            trainer.validate(make_clips(clip_dir, CHILD, counts))
        assert (exc_info.value.label, exc_info.value.have) == (ArousalState.ESCALATING, 4)

    def test_first_short_label_in_enum_order_is_reported(self, trainer, clip_dir):
        counts = balanced_counts(7)
        counts[ArousalState.CALM] = 2
        counts[ArousalState.CRISIS] = 1
        with pytest.raises(InsufficientDataForLabelError) as exc_info:
            trainer.validate(make_clips(clip_dir, CHILD, counts))
        assert exc_info.value.label == ArousalState.CALM

    @pytest.mark.asyncio
    async def test_validation_happens_before_extraction(self, model_store, clip_dir):
        extractor = make_extractor()
        trainer = ModelTrainer(extractor, model_store)
        with pytest.raises(InsufficientDataError):
            await trainer.train(CHILD, make_clips(clip_dir, CHILD, balanced_counts(2)))
        assert extractor.frame_sampler.calls == 0


class TestTraining:
    """Tests for full training runs"""

    @pytest.mark.asyncio
    async def test_successful_training(self, trainer, model_store, clip_dir):
        clips = make_clips(clip_dir, CHILD, balanced_counts(6))

        record = await trainer.train(CHILD, clips)

        assert record.child_id == CHILD
        assert record.version == 1
        assert record.training_clip_count == 30
        assert 0.0 <= record.accuracy <= 1.0
        assert record.size_bytes > 0
        assert model_store.get_record(CHILD) == record
        assert model_store.load_current_model(CHILD).exemplars.shape == (24, 81)

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_and_complete(self, trainer, clip_dir):
        updates = []
        await trainer.train(CHILD, make_clips(clip_dir, CHILD, balanced_counts(5)), updates.append)

        fractions = [u.fraction for u in updates]
        assert fractions == sorted(fractions)
        assert fractions[0] == 0.0
        assert fractions[-1] == 1.0
        assert updates[-1].phase == TrainingPhase.COMPLETE
        phases = [u.phase for u in updates]
        assert phases.index(TrainingPhase.TRAINING) < phases.index(TrainingPhase.EXPORTING)

    @pytest.mark.asyncio
    async def test_retraining_increments_version(self, trainer, clip_dir):
        clips = make_clips(clip_dir, CHILD, balanced_counts(5))
        first = await trainer.train(CHILD, clips)
        second = await trainer.train(CHILD, clips)
        assert (first.version, second.version) == (1, 2)
        assert second.media_ref.endswith("arousal_model_v2.json")

    @pytest.mark.asyncio
    async def test_extraction_failure_persists_nothing(self, trainer, model_store, clip_dir):
        clips = make_clips(clip_dir, CHILD, balanced_counts(5))
        clips[7].media_path.unlink()

        with pytest.raises(ClipExtractionError) as exc_info:
            await trainer.train(CHILD, clips)

        assert exc_info.value.clip_id == clips[7].id
        assert isinstance(exc_info.value.cause, MediaNotFoundError)
        assert model_store.get_record(CHILD) is None
        assert model_store.blob_versions(CHILD) == []

    @pytest.mark.asyncio
    async def test_record_failure_discards_blob(self, tmp_path, clip_dir):
        store = ModelStore(FailingRecordStore(), str(tmp_path / "models"))
        trainer = ModelTrainer(make_extractor(), store, rng=np.random.default_rng(0))

        with pytest.raises(ModelExportError):
            await trainer.train(CHILD, make_clips(clip_dir, CHILD, balanced_counts(5)))

        assert store.blob_versions(CHILD) == []
        assert store.get_record(CHILD) is None

    @pytest.mark.asyncio
    async def test_rejects_clips_of_another_child(self, trainer, clip_dir):
        clips = make_clips(clip_dir, CHILD, balanced_counts(5))
        clips += make_clips(clip_dir, "someone-else", {ArousalState.CALM: 1})
        with pytest.raises(ValueError):
            await trainer.train(CHILD, clips)


class TestPreparationAndEvaluation:
    """Tests for the data split and evaluation metrics"""

    def test_prepare_nothing(self, trainer):
        assert trainer.prepare([]) == ([], [])

    @pytest.mark.asyncio
    async def test_split_is_seeded(self, model_store, clip_dir):
        clips = make_clips(clip_dir, CHILD, balanced_counts(5))
        features = await make_extractor().extract_all(clips)

        def split_ids(seed):
            trainer = ModelTrainer(make_extractor(), model_store, rng=np.random.default_rng(seed))
            training, validation = trainer.prepare(features)
            return [e.features.tobytes() for e in training], len(validation)

        first, validation_size = split_ids(7)
        assert len(first) == 20
        assert validation_size == 5
        assert split_ids(7)[0] == first

    def test_evaluate_perfect_model(self):
        examples = [
            LabeledExample(features=np.array([0.0]), label=ArousalState.CALM),
            LabeledExample(features=np.array([10.0]), label=ArousalState.CRISIS),
        ]
        model = build_model(examples, k=1)
        metrics = evaluate_model(model, examples)

        assert metrics.accuracy == 1.0
        assert metrics.validation_size == 2
        assert metrics.confusion[ArousalState.CALM][ArousalState.CALM] == 1
        # labels absent from validation contribute zero to the macro average
        assert metrics.precision == pytest.approx(2 / 5)
        assert metrics.recall == pytest.approx(2 / 5)
        assert metrics.f1_score == pytest.approx(2 / 5)

    def test_evaluate_with_mistakes(self):
        model = build_model([LabeledExample(features=np.array([0.0]), label=ArousalState.CALM)], k=1)
        validation = [
            LabeledExample(features=np.array([0.0]), label=ArousalState.CALM),
            LabeledExample(features=np.array([1.0]), label=ArousalState.CRISIS),
        ]
        metrics = evaluate_model(model, validation)

        assert metrics.accuracy == 0.5
        assert metrics.per_label[ArousalState.CALM].false_positives == 1
        assert metrics.per_label[ArousalState.CRISIS].false_negatives == 1
        assert metrics.confusion[ArousalState.CRISIS][ArousalState.CALM] == 1

    def test_evaluate_empty_validation(self):
        model = build_model([LabeledExample(features=np.array([0.0]), label=ArousalState.CALM)], k=1)
        metrics = evaluate_model(model, [])
        assert metrics.accuracy == 0.0
        assert metrics.validation_size == 0
