"""Errors raised while training, storing and loading arousal models"""

from arousal_training.models.enums import ArousalState


class TrainingError(Exception):
    """Base class for training failures"""
    pass


class InsufficientDataError(TrainingError):
    """Fewer clips than the minimum required to train"""

    def __init__(self, have: int, need: int):
        self.have = have
        self.need = need
        super().__init__(
            f"Insufficient training data: {have} clips (minimum {need} required). "
            f"Record {need - have} more."
        )


class InsufficientDataForLabelError(TrainingError):
    """A label has fewer clips than the per-label minimum"""

    def __init__(self, label: ArousalState, have: int, need: int):
        self.label = label
        self.have = have
        self.need = need
        super().__init__(
            f"Insufficient data for {label.display_name}: {have} clips "
            f"(minimum {need} required per state). Record {need - have} more."
        )


class EmptyTrainingSetError(TrainingError):
    """The training split is empty"""
    pass


class ModelExportError(TrainingError):
    """A trained model could not be written or recorded"""
    pass


class ModelLoadError(Exception):
    """A serialized model could not be read"""
    pass


class TrainingInProgressError(TrainingError):
    """A training run for the same child is already running"""

    def __init__(self, child_id: str):
        self.child_id = child_id
        super().__init__(f"Training already in progress for child {child_id}")
