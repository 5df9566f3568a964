"""Producer protocols.

Producers are the external scrapers: each fetches one source and returns
normalized records. They are supplied by the deployment, loaded from the
``producers`` setting as a ``module:attribute`` factory that takes the
settings and returns a ``ProducerSet``.
"""

from __future__ import annotations

import importlib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from letovo_archive.config import Settings


class DocsSearchProducer(Protocol):
    """Paginated crawl of documents found through a search engine."""

    async def archive_docs(self) -> Sequence[Mapping[str, Any]]:
        """Return the next page of documents; an empty page means done."""
        ...


class HHProducer(Protocol):
    """The employer's listings on HH.ru."""

    async def archive_vacancies(self) -> Any:
        ...


class CrtShProducer(Protocol):
    """Certificate-transparency records for the school domains."""

    async def archive_domains(self) -> Any:
        ...


class PageCaptureProducer(Protocol):
    """Capture of a single web page."""

    async def capture_page(self) -> Any:
        ...


class WebsiteProducer(Protocol):
    """The school website."""

    async def archive_docs(self) -> Sequence[Mapping[str, Any]]:
        ...

    async def archive_news(self) -> Sequence[Mapping[str, Any]]:
        ...

    async def archive_vacancies(self) -> Sequence[Mapping[str, Any]]:
        ...

    async def archive_text_pages(self) -> Sequence[Mapping[str, Any]]:
        ...

    async def archive_gallery(self) -> Sequence[Mapping[str, Any]]:
        """Return albums, each with a ``media`` list of photos."""
        ...


class LibraryProducer(Protocol):
    """The school library catalog."""

    async def archive_library(self) -> Sequence[Mapping[str, Any]]:
        ...


@dataclass
class ProducerSet:
    """The producers available to a scheduled run. Missing ones are skipped."""

    ddg: DocsSearchProducer | None = None
    hh: HHProducer | None = None
    crtsh: CrtShProducer | None = None
    capture: PageCaptureProducer | None = None
    website: WebsiteProducer | None = None
    library: LibraryProducer | None = None


def load_producers(settings: Settings) -> ProducerSet:
    """Import the producer factory named by ``settings.producers`` and call it.

    Raises:
        ValueError: If no factory is configured or the path is malformed.
        TypeError: If the factory does not return a ProducerSet.
    """
    if not settings.producers:
        raise ValueError("No producers configured (set LETOVO_ARCHIVE_PRODUCERS=module:factory)")

    module_name, sep, attribute = settings.producers.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Producers path must look like 'module:factory', got {settings.producers!r}")

    factory = getattr(importlib.import_module(module_name), attribute)
    producers = factory(settings)
    if not isinstance(producers, ProducerSet):
        raise TypeError(f"{settings.producers} returned {type(producers).__name__}, not ProducerSet")
    return producers
