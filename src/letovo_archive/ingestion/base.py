"""Base types for ingestion."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from letovo_archive.models import EntityKind


@dataclass(frozen=True)
class BlobPayload:
    """Binary payload of an observation, written to the blob store on commit."""

    name: str
    data: bytes


@dataclass(frozen=True)
class SnapshotItem:
    """One normalized observation produced by a source.

    ``payload`` holds the values of the kind's payload columns, already in
    their stored form (JSON payloads are canonical strings). Binary kinds
    carry their bytes in ``blob``; the blob id column is filled in by the
    pipeline after the blob is written.
    """

    key: Any
    payload: dict[str, Any] = field(default_factory=dict)
    blob: BlobPayload | None = None


@dataclass
class RunStats:
    """Counters for one ingestion run of one kind."""

    kind: EntityKind
    committed: int = 0
    skipped: int = 0
    failures: int = 0
    pages: int = 0


# Single-shot producer: returns the full result set
BatchProducer = Callable[[], Awaitable[Sequence[SnapshotItem]]]

# Paginated producer: returns the next page; an empty page ends the run
PageProducer = Callable[[], Awaitable[Sequence[SnapshotItem]]]
