"""Shared pytest fixtures for Letovo Archive tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest

from letovo_archive.ingestion import BlobPayload, IngestionPipeline, SnapshotItem
from letovo_archive.storage import Archive, BlobStore


class FakeClock:
    """Deterministic millisecond clock: each call advances by ``step``."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1) -> None:
        self.now = start
        self.step = step
        self.calls = 0

    def __call__(self) -> int:
        self.calls += 1
        value = self.now
        self.now += self.step
        return value


@pytest.fixture
def blob_store(tmp_path: Path) -> BlobStore:
    """A blob store rooted in a per-test temporary directory."""
    store = BlobStore(tmp_path / "files")
    store.ensure_root()
    return store


@pytest.fixture
async def archive(tmp_path: Path) -> AsyncGenerator[Archive, None]:
    """An isolated archive: SQLite file plus blob directory under tmp_path."""
    store = Archive.open(f"sqlite+aiosqlite:///{tmp_path / 'archive.db'}", tmp_path / "files")
    await store.init()
    yield store
    await store.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def pipeline(archive: Archive, clock: FakeClock) -> IngestionPipeline:
    return IngestionPipeline(archive, clock=clock)


# Type aliases for factory fixtures
MakeBlobItem = Callable[..., SnapshotItem]


@pytest.fixture
def make_blob_item() -> MakeBlobItem:
    """Factory fixture for binary observations."""

    def _make(key: str, data: bytes, *, name: str | None = None, **payload) -> SnapshotItem:
        return SnapshotItem(
            key=key,
            payload=payload,
            blob=BlobPayload(name=name or key, data=data),
        )

    return _make
