"""Per-child training corpus management"""

from arousal_training.corpus.manager import (
    TrainingCorpusManager,
    CorpusError,
    EmptyMediaError,
    MediaFileNotFoundError,
    ClipNotFoundError,
)

__all__ = [
    'TrainingCorpusManager',
    'CorpusError',
    'EmptyMediaError',
    'MediaFileNotFoundError',
    'ClipNotFoundError',
]
