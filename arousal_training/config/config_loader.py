"""Configuration loader for the arousal training core"""

import logging
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
import os


logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]

VALID_BAND_METHODS = ("mel", "proxy")
VALID_PITCH_METHODS = ("amplitude", "pyin")


class Config:
    """Configuration manager for the arousal training core

    Resolution order when no explicit path is given:
        1. ``AROUSAL_CONFIG`` environment variable
        2. ``config/config.<AROUSAL_ENV>.yaml``
        3. ``config/config.yaml``

    Relative candidates are tried against the working directory first and
    then against the project root. When none exists the configuration is
    empty and every ``get`` falls back to its caller-supplied default.
    """

    def __init__(self, config_path: Optional[str] = None):
        self._explicit = config_path is not None or bool(os.getenv('AROUSAL_CONFIG'))
        if config_path is None:
            config_path = os.getenv('AROUSAL_CONFIG') or self._find_default()

        self.config_path = Path(config_path) if config_path else None
        self._config = self._load_config()

    @staticmethod
    def _find_default() -> Optional[str]:
        env = os.getenv('AROUSAL_ENV', 'development')
        candidates = [f"config/config.{env}.yaml", "config/config.yaml"]
        for base in (Path.cwd(), PROJECT_ROOT):
            for candidate in candidates:
                path = base / candidate
                if path.exists():
                    return str(path)
        return None

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file"""
        if self.config_path is None:
            logger.debug("No config file found, using built-in defaults")
            return {}

        if not self.config_path.exists():
            if self._explicit:
                raise FileNotFoundError(f"Config file not found: {self.config_path}")
            return {}

        with open(self.config_path, 'r') as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "Config":
        """Build a configuration from an in-memory mapping (used by tests and hosts)"""
        instance = cls.__new__(cls)
        instance._explicit = False
        instance.config_path = None
        instance._config = dict(values)
        return instance

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation

        Args:
            key: Configuration key in dot notation (e.g., 'training.k')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default

    def __getitem__(self, key: str) -> Any:
        """Allow dictionary-style access"""
        return self.get(key)

    def validate(self) -> None:
        """Validate configuration values"""
        split = self.get('training.train_split', 0.8)
        if not 0 < split < 1:
            raise ValueError(f"Invalid train_split: {split}, must be in (0, 1)")

        k = self.get('training.k', 5)
        if not isinstance(k, int) or k < 1:
            raise ValueError(f"Invalid k: {k}, must be a positive integer")

        min_per_label = self.get('training.min_clips_per_label', 5)
        min_total = self.get('training.min_total_clips', 25)
        if min_per_label < 1 or min_total < 1:
            raise ValueError("Minimum clip counts must be positive")

        max_frames = self.get('extraction.max_frames', 30)
        if max_frames < 1:
            raise ValueError(f"Invalid max_frames: {max_frames}, must be positive")

        band_method = self.get('audio.band_method', 'mel')
        if band_method not in VALID_BAND_METHODS:
            raise ValueError(f"Invalid audio.band_method: {band_method}")

        pitch_method = self.get('audio.pitch_method', 'amplitude')
        if pitch_method not in VALID_PITCH_METHODS:
            raise ValueError(f"Invalid audio.pitch_method: {pitch_method}")


# Global config instance
config = Config()
