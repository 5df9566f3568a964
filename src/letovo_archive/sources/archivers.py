"""Per-source archive runs.

Each ``archive_*`` function turns one producer's output into snapshot items
and hands them to the pipeline with the failure policy of that source. The
search-engine document crawl is open-ended and runs under the bounded retry;
every other source is a single batch.

``archive_all`` is the orchestration boundary: each source runs in isolation,
so one failing source is logged and the remaining sources still run.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from letovo_archive.config import Settings
from letovo_archive.ingestion.base import BlobPayload, RunStats, SnapshotItem
from letovo_archive.ingestion.pipeline import IngestionPipeline
from letovo_archive.models import EntityKind
from letovo_archive.sources.producers import (
    CrtShProducer,
    DocsSearchProducer,
    HHProducer,
    LibraryProducer,
    PageCaptureProducer,
    ProducerSet,
    WebsiteProducer,
)
from letovo_archive.sources.records import (
    BookRecord,
    DDGDocRecord,
    GalleryAlbum,
    NewsRecord,
    TextPageRecord,
    VacancyRecord,
    WebsiteDocRecord,
)
from letovo_archive.utils.serialization import canonical_json

logger = logging.getLogger(__name__)

_Fetch = Callable[[], Awaitable[Sequence[Any]]]
_ToItems = Callable[[Iterable[Mapping[str, Any]]], list[SnapshotItem]]


# ── Record → item mapping ────────────────────────────────────────────────────


def ddg_doc_items(records: Iterable[Mapping[str, Any]]) -> list[SnapshotItem]:
    items = []
    for raw in records:
        doc = DDGDocRecord.model_validate(raw)
        items.append(
            SnapshotItem(
                key=doc.original_url,
                payload={"name": doc.name},
                blob=BlobPayload(name=doc.name, data=doc.contents),
            )
        )
    return items


def website_doc_items(records: Iterable[Mapping[str, Any]]) -> list[SnapshotItem]:
    items = []
    for raw in records:
        doc = WebsiteDocRecord.model_validate(raw)
        # Website documents have no display name; the blob is named by its URL
        items.append(SnapshotItem(key=doc.url, blob=BlobPayload(name=doc.url, data=doc.data)))
    return items


def news_items(records: Iterable[Mapping[str, Any]]) -> list[SnapshotItem]:
    items = []
    for raw in records:
        news = NewsRecord.model_validate(raw)
        items.append(
            SnapshotItem(key=news.id, payload={"url": news.url, "json": canonical_json(raw)})
        )
    return items


def vacancy_items(records: Iterable[Mapping[str, Any]]) -> list[SnapshotItem]:
    items = []
    for raw in records:
        vacancy = VacancyRecord.model_validate(raw)
        items.append(SnapshotItem(key=vacancy.id, payload={"vacancy": canonical_json(raw)}))
    return items


def text_page_items(records: Iterable[Mapping[str, Any]]) -> list[SnapshotItem]:
    items = []
    for raw in records:
        page = TextPageRecord.model_validate(raw)
        items.append(SnapshotItem(key=page.url, payload={"json": canonical_json(raw["json"])}))
    return items


def gallery_items(albums: Iterable[Mapping[str, Any]]) -> list[SnapshotItem]:
    """Flatten albums into one item per photo, tagged with its album."""
    items = []
    for raw in albums:
        album = GalleryAlbum.model_validate(raw)
        for photo in album.media:
            items.append(
                SnapshotItem(
                    key=photo.id,
                    payload={
                        "url": photo.original_url,
                        "album_id": album.id,
                        "album_name": album.title,
                    },
                )
            )
    return items


def book_items(records: Iterable[Mapping[str, Any]]) -> list[SnapshotItem]:
    items = []
    for raw in records:
        book = BookRecord.model_validate(raw)
        items.append(
            SnapshotItem(
                key=book.link,
                payload={"title": book.title, "identifier": book.identifier},
            )
        )
    return items


def dump_item(result: Any) -> SnapshotItem:
    """A whole producer result as one snapshot of a singleton stream."""
    return SnapshotItem(key=None, payload={"json": canonical_json(result)})


# ── Source runs ──────────────────────────────────────────────────────────────


async def archive_ddg_docs(pipeline: IngestionPipeline, producer: DocsSearchProducer) -> RunStats:
    """Archive documents found through the search engine (paginated)."""

    async def fetch_page() -> list[SnapshotItem]:
        return ddg_doc_items(await producer.archive_docs())

    return await pipeline.run_paginated(EntityKind.DDG_DOC, fetch_page)


async def archive_hhru(pipeline: IngestionPipeline, producer: HHProducer) -> RunStats:
    """Archive the HH.ru listing dump."""

    async def produce() -> list[SnapshotItem]:
        return [dump_item(await producer.archive_vacancies())]

    return await pipeline.run_batch(EntityKind.HHRU, produce)


async def archive_crtsh(pipeline: IngestionPipeline, producer: CrtShProducer) -> RunStats:
    """Archive certificate-transparency records."""

    async def produce() -> list[SnapshotItem]:
        return [dump_item(await producer.archive_domains())]

    return await pipeline.run_batch(EntityKind.CRTSH, produce)


async def archive_capture(pipeline: IngestionPipeline, producer: PageCaptureProducer) -> RunStats:
    """Archive a single-page web capture."""

    async def produce() -> list[SnapshotItem]:
        return [dump_item(await producer.capture_page())]

    return await pipeline.run_batch(EntityKind.CAPTURE, produce)


async def archive_website(
    pipeline: IngestionPipeline, producer: WebsiteProducer
) -> list[RunStats]:
    """Archive everything on the school website.

    Sections run in order: documents, news, vacancies, text pages, gallery.
    A failure in any section aborts the remaining ones.
    """
    sections: list[tuple[EntityKind, _Fetch, _ToItems]] = [
        (EntityKind.DOC, producer.archive_docs, website_doc_items),
        (EntityKind.NEWS, producer.archive_news, news_items),
        (EntityKind.VACANCY, producer.archive_vacancies, vacancy_items),
        (EntityKind.TEXT, producer.archive_text_pages, text_page_items),
        (EntityKind.PHOTO, producer.archive_gallery, gallery_items),
    ]

    results = []
    for kind, fetch, to_items in sections:

        async def produce(
            fetch: _Fetch = fetch,
            to_items: _ToItems = to_items,
        ) -> list[SnapshotItem]:
            return to_items(await fetch())

        results.append(await pipeline.run_batch(kind, produce))
    return results


async def archive_library(pipeline: IngestionPipeline, producer: LibraryProducer) -> RunStats:
    """Archive the library catalog."""

    async def produce() -> list[SnapshotItem]:
        return book_items(await producer.archive_library())

    return await pipeline.run_batch(EntityKind.BOOK, produce)


# ── Orchestration boundary ───────────────────────────────────────────────────


@dataclass
class SourceOutcome:
    """Result of one isolated source run."""

    source: str
    ok: bool
    result: Any = None
    error: BaseException | None = None


async def run_isolated(source: str, run: Callable[[], Awaitable[Any]]) -> SourceOutcome:
    """Run one source, logging and containing any failure."""
    try:
        result = await run()
    except Exception as e:
        logger.exception("Source %s failed", source)
        return SourceOutcome(source=source, ok=False, error=e)
    return SourceOutcome(source=source, ok=True, result=result)


async def archive_all(
    pipeline: IngestionPipeline, producers: ProducerSet, settings: Settings
) -> dict[str, SourceOutcome]:
    """Run every configured source, each isolated from the others.

    HH.ru runs only with ``hh_email`` set and the library only with both
    library credentials; otherwise they are skipped like missing producers.
    The library catalog is the slowest source and runs last.
    """
    runs: list[tuple[str, Callable[[], Awaitable[Any]]]] = []
    if producers.ddg is not None:
        runs.append(("ddg", lambda p=producers.ddg: archive_ddg_docs(pipeline, p)))
    if producers.hh is not None and not settings.hh_email:
        logger.info("Skipping hh: hh_email is not set")
    elif producers.hh is not None:
        runs.append(("hh", lambda p=producers.hh: archive_hhru(pipeline, p)))
    if producers.crtsh is not None:
        runs.append(("crtsh", lambda p=producers.crtsh: archive_crtsh(pipeline, p)))
    if producers.capture is not None:
        runs.append(("capture", lambda p=producers.capture: archive_capture(pipeline, p)))
    if producers.website is not None:
        runs.append(("website", lambda p=producers.website: archive_website(pipeline, p)))
    if producers.library is not None and not (settings.lib_username and settings.lib_password):
        logger.info("Skipping library: lib_username and lib_password are not both set")
    elif producers.library is not None:
        runs.append(("library", lambda p=producers.library: archive_library(pipeline, p)))

    outcomes: dict[str, SourceOutcome] = {}
    for source, run in runs:
        outcomes[source] = await run_isolated(source, run)

    failed = [name for name, outcome in outcomes.items() if not outcome.ok]
    if failed:
        logger.warning("Archive run finished with failed sources: %s", ", ".join(failed))
    else:
        logger.info("Archive run finished: %d source(s) ok", len(outcomes))
    return outcomes
