"""Ingestion: dedup gate, bounded retry and the pipeline that commits snapshots.

Main entry point:
    from letovo_archive.ingestion import IngestionPipeline

    pipeline = IngestionPipeline(archive)
    stats = await pipeline.ingest(EntityKind.NEWS, items)
"""

from letovo_archive.ingestion.base import BlobPayload, RunStats, SnapshotItem
from letovo_archive.ingestion.dedup import (
    ByteEquality,
    CanonicalStringEquality,
    DedupGate,
    FieldEquality,
    PresenceOnly,
    build_gate,
)
from letovo_archive.ingestion.pipeline import IngestionPipeline
from letovo_archive.ingestion.retry import BoundedRetry

__all__ = [
    "BlobPayload",
    "BoundedRetry",
    "ByteEquality",
    "CanonicalStringEquality",
    "DedupGate",
    "FieldEquality",
    "IngestionPipeline",
    "PresenceOnly",
    "RunStats",
    "SnapshotItem",
    "build_gate",
]
