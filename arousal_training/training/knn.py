"""k-nearest-neighbour arousal classifier

A TrainedModel stores z-score normalized exemplars together with the
per-dimension means and standard deviations used to normalize them.
Prediction normalizes the query the same way, ranks exemplars by
Euclidean distance and takes a majority vote over the k nearest.

Voting ties are broken in favour of the tied label whose exemplar is
nearest to the query. Equal distances keep exemplar order because the
ranking uses a stable sort.
"""

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence, Tuple
import numpy as np

from arousal_training.models.enums import ArousalState
from arousal_training.models.results import LabeledExample
from arousal_training.storage.record_store import write_json_atomic
from arousal_training.training.errors import EmptyTrainingSetError, ModelExportError, ModelLoadError


logger = logging.getLogger(__name__)

DEFAULT_K = 5
STD_FLOOR = 1e-4
MODEL_FORMAT_VERSION = 1


@dataclass(frozen=True, eq=False)
class TrainedModel:
    """Immutable k-NN model

    Attributes:
        exemplars: (n, d) normalized feature matrix
        labels: Label of each exemplar row
        feature_means: (d,) per-dimension means of the training split
        feature_stds: (d,) per-dimension standard deviations (floored)
        k: Neighbours consulted per prediction
    """
    exemplars: np.ndarray
    labels: Tuple[ArousalState, ...]
    feature_means: np.ndarray
    feature_stds: np.ndarray
    k: int = DEFAULT_K

    def __post_init__(self):
        assert self.exemplars.ndim == 2, "Exemplars must be a 2-D matrix"
        assert len(self.labels) == self.exemplars.shape[0], "One label per exemplar"
        assert self.feature_means.shape == self.feature_stds.shape, "Means/stds shape mismatch"
        assert self.k >= 1, "k must be positive"
        for array in (self.exemplars, self.feature_means, self.feature_stds):
            array.setflags(write=False)

    @property
    def dimension(self) -> int:
        return int(self.feature_means.shape[0])

    @property
    def is_empty(self) -> bool:
        return self.exemplars.shape[0] == 0

    def normalize(self, features: np.ndarray) -> np.ndarray:
        features = np.asarray(features, dtype=np.float64)
        if features.shape[-1] != self.dimension:
            raise ValueError(
                f"Feature dimension mismatch: model expects {self.dimension}, got {features.shape[-1]}"
            )
        return (features - self.feature_means) / self.feature_stds

    def neighbours(self, features: np.ndarray) -> List[Tuple[float, ArousalState]]:
        """The k nearest exemplars as (distance, label), nearest first"""
        query = self.normalize(features)
        distances = np.sqrt(np.sum((self.exemplars - query) ** 2, axis=1))
        order = np.argsort(distances, kind='stable')[:self.k]
        return [(float(distances[i]), self.labels[i]) for i in order]

    def predict(self, features: np.ndarray) -> ArousalState:
        """Classify one feature vector.

        Returns:
            Majority label among the k nearest exemplars, or the default
            label (CALM) when the model has no exemplars

        Raises:
            ValueError: If the vector dimension does not match the model
        """
        if self.is_empty:
            return ArousalState.default()

        nearest = self.neighbours(features)
        votes: Dict[ArousalState, int] = {}
        for _, label in nearest:
            votes[label] = votes.get(label, 0) + 1

        best = max(votes.values())
        # nearest is ordered by distance, so the first tied label seen is the closest
        for _, label in nearest:
            if votes[label] == best:
                return label
        return ArousalState.default()


def fit_normalization(matrix: np.ndarray, std_floor: float = STD_FLOOR) -> Tuple[np.ndarray, np.ndarray]:
    """Per-dimension mean and population std; stds below the floor become 1.0"""
    means = matrix.mean(axis=0)
    stds = matrix.std(axis=0)
    stds = np.where(stds < std_floor, 1.0, stds)
    return means, stds


def build_model(
    examples: Sequence[LabeledExample],
    k: int = DEFAULT_K,
    std_floor: float = STD_FLOOR,
) -> TrainedModel:
    """Fit a k-NN model on labeled examples.

    Raises:
        EmptyTrainingSetError: If no examples are given
    """
    if len(examples) == 0:
        raise EmptyTrainingSetError("Cannot train a model on an empty training set")

    matrix = np.vstack([example.features for example in examples]).astype(np.float64)
    means, stds = fit_normalization(matrix, std_floor)
    normalized = (matrix - means) / stds

    logger.debug(f"Built k-NN model: {matrix.shape[0]} exemplars, {matrix.shape[1]} dims, k={k}")
    return TrainedModel(
        exemplars=normalized,
        labels=tuple(example.label for example in examples),
        feature_means=means,
        feature_stds=stds,
        k=k,
    )


def model_to_dict(model: TrainedModel) -> Dict:
    return {
        "format_version": MODEL_FORMAT_VERSION,
        "k": model.k,
        "feature_means": model.feature_means.tolist(),
        "feature_stds": model.feature_stds.tolist(),
        "exemplars": [
            {"features": row.tolist(), "label": label.value}
            for row, label in zip(model.exemplars, model.labels)
        ],
    }


def model_from_dict(data: Dict) -> TrainedModel:
    means = np.asarray(data["feature_means"], dtype=np.float64)
    stds = np.asarray(data["feature_stds"], dtype=np.float64)
    rows = data["exemplars"]
    if rows:
        exemplars = np.asarray([row["features"] for row in rows], dtype=np.float64)
    else:
        exemplars = np.zeros((0, means.shape[0]), dtype=np.float64)
    return TrainedModel(
        exemplars=exemplars,
        labels=tuple(ArousalState(row["label"]) for row in rows),
        feature_means=means,
        feature_stds=stds,
        k=int(data.get("k", DEFAULT_K)),
    )


def save_model(model: TrainedModel, path: Path) -> int:
    """Serialize a model to JSON atomically.

    Python's float repr round-trips exactly, so a reloaded model predicts
    identically.

    Returns:
        Size of the written file in bytes

    Raises:
        ModelExportError: If the file cannot be written
    """
    path = Path(path)
    payload = model_to_dict(model)
    if not all(math.isfinite(v) for v in payload["feature_means"] + payload["feature_stds"]):
        raise ModelExportError("Model contains non-finite normalization values")
    try:
        write_json_atomic(path, payload)
        return path.stat().st_size
    except OSError as e:
        logger.error(f"Failed to write model to {path}: {e}")
        raise ModelExportError(f"Failed to write model to {path}: {e}") from e


def load_model(path: Path) -> TrainedModel:
    """Read a model written by save_model.

    Raises:
        ModelLoadError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    try:
        with open(path, 'r') as f:
            data = json.load(f)
        return model_from_dict(data)
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError, AssertionError) as e:
        logger.error(f"Failed to load model from {path}: {e}")
        raise ModelLoadError(f"Failed to load model from {path}: {e}") from e
