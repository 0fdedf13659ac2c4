"""Pytest configuration and fixtures"""

import pytest
from hypothesis import settings, Verbosity

from arousal_training.corpus.manager import TrainingCorpusManager
from arousal_training.storage.record_store import FileRecordStore, InMemoryRecordStore
from arousal_training.training.model_store import ModelStore

# Register Hypothesis profiles
settings.register_profile("ci", max_examples=100, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=20, verbosity=Verbosity.normal)
settings.register_profile("debug", max_examples=10, verbosity=Verbosity.verbose)

# Use CI profile by default
settings.load_profile("ci")


@pytest.fixture
def record_store():
    """In-memory record store"""
    return InMemoryRecordStore()


@pytest.fixture
def file_record_store(tmp_path):
    return FileRecordStore(str(tmp_path / "records"))


@pytest.fixture
def corpus_manager(record_store, tmp_path):
    """Corpus manager storing clip media under tmp_path"""
    return TrainingCorpusManager(record_store, str(tmp_path / "clips"))


@pytest.fixture
def model_store(record_store, tmp_path):
    return ModelStore(record_store, str(tmp_path / "models"))


@pytest.fixture
def incoming_dir(tmp_path):
    """Where freshly 'recorded' media lands before being added to a corpus"""
    path = tmp_path / "incoming"
    path.mkdir()
    return path
