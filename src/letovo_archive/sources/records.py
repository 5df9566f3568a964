"""Pydantic schemas for producer output.

Producers return plain mappings; these models check that each record carries
its natural key and payload before anything reaches the ledger. JSON payloads
are serialized from the producer's original mapping, not from the model, so
key order is preserved exactly as produced.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class DDGDocRecord(BaseModel):
    """A document found by the search-engine crawl."""

    original_url: str = Field(validation_alias=AliasChoices("original_url", "originalURL"))
    name: str
    contents: bytes


class WebsiteDocRecord(BaseModel):
    """A document linked from the school website."""

    url: str
    data: bytes


class NewsRecord(BaseModel):
    """A news item. Only the id and url are inspected; the rest is archived as is."""

    model_config = ConfigDict(extra="allow")

    id: int
    url: str | None = None


class VacancyRecord(BaseModel):
    """A vacancy listing."""

    model_config = ConfigDict(extra="allow")

    id: int


class TextPageRecord(BaseModel):
    """A crawled text/HTML page and its parsed content."""

    url: str
    content: Any = Field(alias="json")


class GalleryMedia(BaseModel):
    """A photo inside a gallery album."""

    model_config = ConfigDict(extra="allow")

    id: int
    original_url: str | None = None


class GalleryAlbum(BaseModel):
    """A gallery album with its photos."""

    model_config = ConfigDict(extra="allow")

    id: int
    title: str | None = None
    media: list[GalleryMedia] = Field(default_factory=list)


class BookRecord(BaseModel):
    """A library catalog entry."""

    link: str
    title: str | None = None
    identifier: str | None = None
