"""Ingestion pipeline.

For each observation of a source run:

1. Resolve the natural key and read the latest row from the ledger
2. Ask the kind's dedup gate whether the observation is a change
3. On COMMIT, write the blob first (binary kinds), then append the row
   stamped with the current time in epoch milliseconds
4. On SKIP, do nothing

The blob write always completes before the row that references it is
appended. A crash in between leaves an orphaned blob, never a row pointing at
a blob that was not written.

Failure policy per producer shape:
- Batch producers (``run_batch``): no retry, the first error propagates.
- Paginated producers (``run_paginated``): each fetch-and-commit cycle runs
  under a ``BoundedRetry`` with a cumulative budget (100 by default).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from letovo_archive.ingestion.base import BatchProducer, PageProducer, RunStats, SnapshotItem
from letovo_archive.ingestion.dedup import DedupGate, build_gate
from letovo_archive.ingestion.retry import DEFAULT_MAX_FAILURES, BoundedRetry
from letovo_archive.kinds import KindSpec, get_kind_spec
from letovo_archive.models import Decision, EntityKind
from letovo_archive.storage.archive import Archive
from letovo_archive.utils.serialization import now_ms

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Commit changed observations of a source into the archive.

    Usage:
        pipeline = IngestionPipeline(archive)
        stats = await pipeline.run_batch(EntityKind.NEWS, fetch_news)
        stats = await pipeline.run_paginated(EntityKind.DDG_DOC, fetch_next_page)
    """

    def __init__(
        self,
        archive: Archive,
        *,
        clock: Callable[[], int] = now_ms,
        max_page_failures: int = DEFAULT_MAX_FAILURES,
    ) -> None:
        self._archive = archive
        self._clock = clock
        self._max_page_failures = max_page_failures
        self._gates: dict[EntityKind, DedupGate] = {
            spec.kind: build_gate(spec, archive.blobs.read_data) for spec in archive.kinds
        }

    @property
    def archive(self) -> Archive:
        return self._archive

    async def ingest(self, kind: EntityKind | str, items: Iterable[SnapshotItem]) -> RunStats:
        """Gate and commit a finite sequence of observations of one kind."""
        spec = get_kind_spec(kind)
        stats = RunStats(kind=spec.kind)
        await self._ingest_into(spec, items, stats)
        logger.info(
            "%s: %d committed, %d unchanged", spec.kind.value, stats.committed, stats.skipped
        )
        return stats

    async def run_batch(self, kind: EntityKind | str, produce: BatchProducer) -> RunStats:
        """Run a single-shot producer. Any failure aborts the run."""
        spec = get_kind_spec(kind)
        logger.info("%s: fetching", spec.kind.value)
        items = await produce()
        return await self.ingest(spec.kind, items)

    async def run_paginated(
        self,
        kind: EntityKind | str,
        fetch_page: PageProducer,
        *,
        max_failures: int | None = None,
    ) -> RunStats:
        """Run a paginated producer until it returns an empty page.

        Raises:
            RetryExhaustedError: When the cumulative failure budget is spent.
        """
        spec = get_kind_spec(kind)
        stats = RunStats(kind=spec.kind)
        budget = self._max_page_failures if max_failures is None else max_failures
        retry = BoundedRetry(budget, label=spec.kind.value)

        async def cycle() -> bool:
            page = await fetch_page()
            if not page:
                return False
            await self._ingest_into(spec, page, stats)
            stats.pages += 1
            return True

        try:
            while await retry.call(cycle):
                pass
        finally:
            stats.failures = retry.failures

        logger.info(
            "%s: %d page(s), %d committed, %d unchanged, %d failure(s)",
            spec.kind.value, stats.pages, stats.committed, stats.skipped, stats.failures,
        )
        return stats

    async def _ingest_into(
        self, spec: KindSpec, items: Iterable[SnapshotItem], stats: RunStats
    ) -> None:
        ledger = self._archive.ledger(spec.kind)
        gate = self._gates[spec.kind]

        for item in items:
            if spec.is_binary and item.blob is None:
                raise ValueError(f"{spec.kind.value} observation {item.key!r} has no blob payload")

            key = spec.normalize_key(item.key)
            latest = await ledger.get_latest(key)
            if gate.decide(latest, item) == Decision.SKIP:
                stats.skipped += 1
                continue

            payload = dict(item.payload)
            if spec.blob_field is not None and item.blob is not None:
                payload[spec.blob_field] = self._archive.blobs.write(item.blob.name, item.blob.data)

            row = await ledger.append(key, self._clock(), payload)
            stats.committed += 1
            logger.debug("%s: committed row %d for key %r", spec.kind.value, row.id, item.key)
