"""Dedup gate: decide whether an observation is a change.

Each kind has one policy (see ``letovo_archive.kinds``):

- ByteEquality: compare the candidate bytes with the blob of the latest row.
- CanonicalStringEquality: compare serialized payloads verbatim. Structurally
  equal JSON with different key order counts as a change.
- PresenceOnly: commit only the first observation of a natural key.
- FieldEquality: compare selected columns of the latest row.

A missing latest row always commits, and so does a latest row whose blob is
gone. Gates are pure decisions; writing blobs and rows is the pipeline's job.
A blob medium that cannot be read raises ``StorageUnavailableError`` and
aborts the run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from letovo_archive.errors import NotFoundError
from letovo_archive.ingestion.base import SnapshotItem
from letovo_archive.kinds import KindSpec
from letovo_archive.models import Decision, DedupPolicy, SnapshotRow

logger = logging.getLogger(__name__)


class DedupGate(Protocol):
    """Protocol for dedup policies."""

    def decide(self, latest: SnapshotRow | None, candidate: SnapshotItem) -> Decision:
        """Return COMMIT if ``candidate`` should be appended after ``latest``."""
        ...


class ByteEquality:
    """Compare candidate bytes against the blob referenced by the latest row."""

    def __init__(self, blob_field: str, read_blob: Callable[[str], bytes]) -> None:
        self._blob_field = blob_field
        self._read_blob = read_blob

    def decide(self, latest: SnapshotRow | None, candidate: SnapshotItem) -> Decision:
        if latest is None:
            return Decision.COMMIT

        blob_id = getattr(latest, self._blob_field)
        try:
            previous = self._read_blob(blob_id)
        except NotFoundError:
            logger.warning(
                "Blob %s of %s row %d is missing; treating observation as a change",
                blob_id, type(latest).__name__, latest.id,
            )
            return Decision.COMMIT

        current = candidate.blob.data if candidate.blob is not None else b""
        return Decision.SKIP if previous == current else Decision.COMMIT


class CanonicalStringEquality:
    """Compare the serialized payload column verbatim."""

    def __init__(self, field: str) -> None:
        self._field = field

    def decide(self, latest: SnapshotRow | None, candidate: SnapshotItem) -> Decision:
        if latest is None:
            return Decision.COMMIT
        if getattr(latest, self._field) == candidate.payload.get(self._field):
            return Decision.SKIP
        return Decision.COMMIT


class PresenceOnly:
    """Commit the first observation of a key; ignore every later one."""

    def decide(self, latest: SnapshotRow | None, candidate: SnapshotItem) -> Decision:
        return Decision.COMMIT if latest is None else Decision.SKIP


class FieldEquality:
    """Compare a fixed set of columns of the latest row."""

    def __init__(self, fields: tuple[str, ...]) -> None:
        self._fields = fields

    def decide(self, latest: SnapshotRow | None, candidate: SnapshotItem) -> Decision:
        if latest is None:
            return Decision.COMMIT
        unchanged = all(
            getattr(latest, name) == candidate.payload.get(name) for name in self._fields
        )
        return Decision.SKIP if unchanged else Decision.COMMIT


def build_gate(spec: KindSpec, read_blob: Callable[[str], bytes]) -> DedupGate:
    """Instantiate the dedup policy configured for a kind."""
    if spec.policy == DedupPolicy.BYTE_EQUALITY:
        if spec.blob_field is None:
            raise ValueError(f"{spec.kind.value} uses byte equality but has no blob column")
        return ByteEquality(spec.blob_field, read_blob)

    if spec.policy == DedupPolicy.CANONICAL_STRING:
        (field,) = spec.compare_fields
        return CanonicalStringEquality(field)

    if spec.policy == DedupPolicy.PRESENCE_ONLY:
        return PresenceOnly()

    if spec.policy == DedupPolicy.FIELD_EQUALITY:
        return FieldEquality(spec.compare_fields)

    raise ValueError(f"Unsupported dedup policy: {spec.policy}")
