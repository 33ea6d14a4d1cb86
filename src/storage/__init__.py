# Storage モジュール
from src.storage.blob_store import (
    BlobStore,
    InMemoryBlobStore,
    JsonFileBlobStore,
    StorageError,
)
from src.storage.snapshot_writer import SnapshotWriter

__all__ = [
    "BlobStore",
    "InMemoryBlobStore",
    "JsonFileBlobStore",
    "StorageError",
    "SnapshotWriter",
]
