"""Unit tests for the configuration loader"""

import pytest

from arousal_training.config.config_loader import PROJECT_ROOT, Config


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "training:\n"
        "  k: 7\n"
        "  train_split: 0.75\n"
        "audio:\n"
        "  band_method: proxy\n"
    )
    return path


def test_loads_yaml_with_dot_notation(config_file):
    config = Config(str(config_file))
    assert config.get('training.k') == 7
    assert config['audio.band_method'] == 'proxy'
    assert config.get('training.missing', 3) == 3
    assert config.get('training.k.deeper', 'x') == 'x'


def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config(str(tmp_path / "absent.yaml"))


def test_environment_variable_selects_file(config_file, monkeypatch):
    monkeypatch.setenv('AROUSAL_CONFIG', str(config_file))
    assert Config().get('training.train_split') == 0.75


def test_environment_specific_file(tmp_path, monkeypatch):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "config.test.yaml").write_text("training:\n  k: 9\n")
    (tmp_path / "config" / "config.yaml").write_text("training:\n  k: 3\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv('AROUSAL_CONFIG', raising=False)
    monkeypatch.setenv('AROUSAL_ENV', 'test')
    assert Config().get('training.k') == 9


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert Config(str(path)).get('training.k', 5) == 5


def test_validate_accepts_defaults():
    Config.from_dict({}).validate()
    shipped = Config(str(PROJECT_ROOT / "config" / "config.yaml"))
    shipped.validate()
    assert shipped.get('training.min_total_clips') == 25


@pytest.mark.parametrize("values", [
    {"training": {"train_split": 1.0}},
    {"training": {"k": 0}},
    {"training": {"min_clips_per_label": 0}},
    {"extraction": {"max_frames": 0}},
    {"audio": {"band_method": "fft"}},
    {"audio": {"pitch_method": "crepe"}},
])
def test_validate_rejects_bad_values(values):
    with pytest.raises(ValueError):
        Config.from_dict(values).validate()
