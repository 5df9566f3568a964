"""Persistent storage: blob store, snapshot ledger and the archive that owns them."""

from letovo_archive.storage.archive import Archive
from letovo_archive.storage.blob_store import BlobMeta, BlobStore
from letovo_archive.storage.ledger import SnapshotLedger

__all__ = [
    "Archive",
    "BlobMeta",
    "BlobStore",
    "SnapshotLedger",
]
