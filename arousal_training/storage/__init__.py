"""Record storage"""

from arousal_training.storage.record_store import (
    RecordStore,
    InMemoryRecordStore,
    FileRecordStore,
    StorageError,
    record_key,
    write_json_atomic,
    CORPUS_PURPOSE,
    MODEL_RECORD_PURPOSE,
)

__all__ = [
    'RecordStore',
    'InMemoryRecordStore',
    'FileRecordStore',
    'StorageError',
    'record_key',
    'write_json_atomic',
    'CORPUS_PURPOSE',
    'MODEL_RECORD_PURPOSE',
]
