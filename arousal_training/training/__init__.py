"""Model training, storage and inference"""

from arousal_training.training.errors import (
    TrainingError,
    InsufficientDataError,
    InsufficientDataForLabelError,
    EmptyTrainingSetError,
    ModelExportError,
    ModelLoadError,
    TrainingInProgressError,
)
from arousal_training.training.knn import TrainedModel, build_model, save_model, load_model
from arousal_training.training.model_store import ModelStore
from arousal_training.training.trainer import ModelTrainer, evaluate_model

__all__ = [
    'TrainingError',
    'InsufficientDataError',
    'InsufficientDataForLabelError',
    'EmptyTrainingSetError',
    'ModelExportError',
    'ModelLoadError',
    'TrainingInProgressError',
    'TrainedModel',
    'build_model',
    'save_model',
    'load_model',
    'ModelStore',
    'ModelTrainer',
    'evaluate_model',
]
