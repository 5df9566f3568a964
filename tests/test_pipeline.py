"""Tests for the ingestion pipeline and bounded retry.

Run with: pytest tests/test_pipeline.py -v
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, patch

import pytest

from letovo_archive.errors import RetryExhaustedError, StorageUnavailableError
from letovo_archive.ingestion import BlobPayload, BoundedRetry, IngestionPipeline, SnapshotItem
from letovo_archive.models import EntityKind
from letovo_archive.storage import Archive
from letovo_archive.utils import canonical_json

if TYPE_CHECKING:
    from conftest import FakeClock, MakeBlobItem

pytestmark = pytest.mark.integration


def news(news_id: int, title: str) -> SnapshotItem:
    value = {"id": news_id, "title": title}
    return SnapshotItem(key=news_id, payload={"url": f"/news/{news_id}", "json": canonical_json(value)})


class TestScenarios:
    """End-to-end dedup scenarios against a real ledger."""

    async def test_news_commit_skip_commit(
        self, pipeline: IngestionPipeline, archive: Archive
    ) -> None:
        first = await pipeline.ingest(EntityKind.NEWS, [news(42, "A")])
        assert (first.committed, first.skipped) == (1, 0)
        row_a = await archive.ledger(EntityKind.NEWS).get_latest(42)
        assert row_a is not None
        assert row_a.json == '{"id":42,"title":"A"}'

        second = await pipeline.ingest(EntityKind.NEWS, [news(42, "A")])
        assert (second.committed, second.skipped) == (0, 1)
        assert len(await archive.get_by_key(EntityKind.NEWS, 42)) == 1

        third = await pipeline.ingest(EntityKind.NEWS, [news(42, "B")])
        assert third.committed == 1
        history = await archive.get_by_key(EntityKind.NEWS, 42)
        assert len(history) == 2

        latest = await archive.ledger(EntityKind.NEWS).get_latest(42)
        assert latest is not None
        assert latest.json == '{"id":42,"title":"B"}'

    async def test_vacancy_presence_only(
        self, pipeline: IngestionPipeline, archive: Archive
    ) -> None:
        first = SnapshotItem(key=7, payload={"vacancy": canonical_json({"id": 7, "title": "Teacher"})})
        changed = SnapshotItem(key=7, payload={"vacancy": canonical_json({"id": 7, "title": "Head"})})

        assert (await pipeline.ingest(EntityKind.VACANCY, [first])).committed == 1
        assert (await pipeline.ingest(EntityKind.VACANCY, [changed])).skipped == 1

        rows = await archive.get_by_key(EntityKind.VACANCY, 7)
        assert len(rows) == 1
        assert "Teacher" in rows[0].vacancy

    async def test_reordered_keys_are_committed(
        self, pipeline: IngestionPipeline, archive: Archive
    ) -> None:
        a = SnapshotItem(key="/about", payload={"json": canonical_json({"a": 1, "b": 2})})
        b = SnapshotItem(key="/about", payload={"json": canonical_json({"b": 2, "a": 1})})

        await pipeline.ingest(EntityKind.TEXT, [a])
        stats = await pipeline.ingest(EntityKind.TEXT, [b])

        assert stats.committed == 1
        assert len(await archive.get_by_key(EntityKind.TEXT, "/about")) == 2

    async def test_singleton_dump(self, pipeline: IngestionPipeline, archive: Archive) -> None:
        dump = SnapshotItem(key=None, payload={"json": "[1,2]"})
        await pipeline.ingest(EntityKind.HHRU, [dump])
        await pipeline.ingest(EntityKind.HHRU, [dump])
        await pipeline.ingest(EntityKind.HHRU, [SnapshotItem(key=None, payload={"json": "[1,2,3]"})])

        rows = await archive.get_all(EntityKind.HHRU)
        assert [row.json for row in rows] == ["[1,2,3]", "[1,2]"]

    async def test_duplicate_within_one_run(
        self, pipeline: IngestionPipeline, archive: Archive
    ) -> None:
        stats = await pipeline.ingest(EntityKind.NEWS, [news(1, "A"), news(1, "A"), news(1, "B")])
        assert (stats.committed, stats.skipped) == (2, 1)


class TestBinaryPayloads:
    """Blob-backed kinds write the blob, then the row."""

    async def test_commit_writes_blob_and_row(
        self, pipeline: IngestionPipeline, archive: Archive, make_blob_item: MakeBlobItem
    ) -> None:
        await pipeline.ingest(EntityKind.DOC, [make_blob_item("/docs/rules.pdf", b"%PDF v1")])

        row = await archive.ledger(EntityKind.DOC).get_latest("/docs/rules.pdf")
        assert row is not None
        assert archive.blobs.read_data(row.file) == b"%PDF v1"
        assert archive.blobs.read_meta(row.file).name == "/docs/rules.pdf"

    async def test_identical_bytes_skip_without_new_blob(
        self, pipeline: IngestionPipeline, archive: Archive, make_blob_item: MakeBlobItem
    ) -> None:
        await pipeline.ingest(EntityKind.DOC, [make_blob_item("/d", b"same")])
        blobs_before = set(archive.blobs.root.iterdir())

        stats = await pipeline.ingest(EntityKind.DOC, [make_blob_item("/d", b"same")])

        assert stats.skipped == 1
        assert set(archive.blobs.root.iterdir()) == blobs_before

    async def test_changed_bytes_commit_new_blob(
        self, pipeline: IngestionPipeline, archive: Archive, make_blob_item: MakeBlobItem
    ) -> None:
        await pipeline.ingest(EntityKind.DOC, [make_blob_item("/d", b"v1")])
        await pipeline.ingest(EntityKind.DOC, [make_blob_item("/d", b"v2")])

        history = await archive.get_by_key(EntityKind.DOC, "/d")
        assert [archive.blobs.read_data(row.file) for row in history] == [b"v2", b"v1"]
        assert history[0].file != history[1].file

    async def test_ddg_doc_keeps_name_column(
        self, pipeline: IngestionPipeline, archive: Archive
    ) -> None:
        item = SnapshotItem(
            key="https://x/doc.pdf",
            payload={"name": "doc.pdf"},
            blob=BlobPayload(name="doc.pdf", data=b"1"),
        )
        await pipeline.ingest(EntityKind.DDG_DOC, [item])

        row = await archive.ledger(EntityKind.DDG_DOC).get_latest("https://x/doc.pdf")
        assert row is not None
        assert row.name == "doc.pdf"
        assert archive.blobs.read_meta(row.file).name == "doc.pdf"

    async def test_blob_write_failure_leaves_no_row(
        self, pipeline: IngestionPipeline, archive: Archive, make_blob_item: MakeBlobItem
    ) -> None:
        with patch.object(
            archive.blobs, "write", side_effect=StorageUnavailableError("disk full")
        ):
            with pytest.raises(StorageUnavailableError):
                await pipeline.ingest(EntityKind.DOC, [make_blob_item("/d", b"data")])

        assert await archive.ledger(EntityKind.DOC).count() == 0

    async def test_binary_item_without_blob_is_rejected(
        self, pipeline: IngestionPipeline
    ) -> None:
        with pytest.raises(ValueError, match="no blob payload"):
            await pipeline.ingest(EntityKind.DOC, [SnapshotItem(key="/d")])


class TestStorageFailure:
    async def test_ledger_failure_aborts_batch(
        self, pipeline: IngestionPipeline, archive: Archive
    ) -> None:
        async with archive.engine.begin() as conn:
            await conn.exec_driver_sql("DROP TABLE website_news")
        produce = AsyncMock(return_value=[news(1, "A"), news(2, "B")])

        with pytest.raises(StorageUnavailableError):
            await pipeline.run_batch(EntityKind.NEWS, produce)

        # Recreate the table; nothing from the aborted run may be there
        await archive.init()
        assert await archive.ledger(EntityKind.NEWS).count() == 0

    async def test_ledger_failure_leaves_no_blob(
        self, pipeline: IngestionPipeline, archive: Archive, make_blob_item: MakeBlobItem
    ) -> None:
        async with archive.engine.begin() as conn:
            await conn.exec_driver_sql("DROP TABLE website_docs")

        with pytest.raises(StorageUnavailableError):
            await pipeline.ingest(EntityKind.DOC, [make_blob_item("/d", b"data")])

        assert list(archive.blobs.root.iterdir()) == []


class TestTimestamps:
    async def test_clock_read_once_per_commit(
        self, pipeline: IngestionPipeline, archive: Archive, clock: FakeClock
    ) -> None:
        await pipeline.ingest(EntityKind.NEWS, [news(1, "A"), news(1, "A"), news(2, "A")])

        assert clock.calls == 2
        rows = await archive.get_all(EntityKind.NEWS)
        assert sorted(row.date for row in rows) == [clock.now - 2, clock.now - 1]


class TestBatchPolicy:
    async def test_batch_failure_propagates_without_retry(
        self, pipeline: IngestionPipeline
    ) -> None:
        produce = AsyncMock(side_effect=ConnectionError("upstream down"))
        with pytest.raises(ConnectionError):
            await pipeline.run_batch(EntityKind.CRTSH, produce)
        assert produce.await_count == 1

    async def test_batch_commits_items(
        self, pipeline: IngestionPipeline, archive: Archive
    ) -> None:
        produce = AsyncMock(return_value=[news(5, "x"), news(6, "y")])
        stats = await pipeline.run_batch(EntityKind.NEWS, produce)
        assert stats.committed == 2
        assert await archive.ledger(EntityKind.NEWS).count() == 2


class TestPaginatedPolicy:
    async def test_runs_until_empty_page(
        self, pipeline: IngestionPipeline, archive: Archive, make_blob_item: MakeBlobItem
    ) -> None:
        fetch = AsyncMock(
            side_effect=[
                [make_blob_item("/a", b"a", name="a"), make_blob_item("/b", b"b", name="b")],
                [make_blob_item("/c", b"c", name="c")],
                [],
            ]
        )

        stats = await pipeline.run_paginated(EntityKind.DDG_DOC, fetch)

        assert stats.pages == 2
        assert stats.committed == 3
        assert stats.failures == 0
        assert await archive.ledger(EntityKind.DDG_DOC).count() == 3

    async def test_always_failing_producer_aborts_after_exactly_100(
        self, pipeline: IngestionPipeline
    ) -> None:
        fetch = AsyncMock(side_effect=ConnectionError("flaky"))

        with pytest.raises(RetryExhaustedError) as exc_info:
            await pipeline.run_paginated(EntityKind.DDG_DOC, fetch)

        assert exc_info.value.failures == 100
        assert fetch.await_count == 100
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    async def test_transient_failures_are_tolerated(
        self, pipeline: IngestionPipeline, archive: Archive
    ) -> None:
        item = SnapshotItem(key=None, payload={"json": "{}"})
        fetch = AsyncMock(side_effect=[TimeoutError(), [item], TimeoutError(), []])

        stats = await pipeline.run_paginated(EntityKind.CAPTURE, fetch)

        assert stats.failures == 2
        assert stats.committed == 1

    async def test_failure_budget_is_cumulative(self, pipeline: IngestionPipeline) -> None:
        item = SnapshotItem(key=None, payload={"json": "{}"})
        # Successes between failures do not reset the counter
        fetch = AsyncMock(side_effect=[OSError(), [item], OSError(), [item], OSError()])

        with pytest.raises(RetryExhaustedError) as exc_info:
            await pipeline.run_paginated(EntityKind.CAPTURE, fetch, max_failures=3)

        assert exc_info.value.failures == 3
        assert fetch.await_count == 5

    async def test_zero_budget_is_rejected(self, pipeline: IngestionPipeline) -> None:
        fetch = AsyncMock(return_value=[])
        with pytest.raises(ValueError, match="at least 1"):
            await pipeline.run_paginated(EntityKind.CAPTURE, fetch, max_failures=0)
        assert fetch.await_count == 0

    async def test_explicit_budget_overrides_default(self, archive: Archive) -> None:
        pipeline = IngestionPipeline(archive, max_page_failures=50)
        fetch = AsyncMock(side_effect=ConnectionError("down"))
        with pytest.raises(RetryExhaustedError):
            await pipeline.run_paginated(EntityKind.CAPTURE, fetch, max_failures=2)
        assert fetch.await_count == 2


class TestBoundedRetry:
    async def test_returns_first_success(self) -> None:
        step = AsyncMock(side_effect=[ValueError(), "ok"])
        retry = BoundedRetry(5)
        assert await retry.call(step) == "ok"
        assert retry.failures == 1

    async def test_single_attempt_budget(self) -> None:
        retry = BoundedRetry(1)
        with pytest.raises(RetryExhaustedError):
            await retry.call(AsyncMock(side_effect=RuntimeError("boom")))
        assert retry.failures == 1

    def test_rejects_empty_budget(self) -> None:
        with pytest.raises(ValueError):
            BoundedRetry(0)
