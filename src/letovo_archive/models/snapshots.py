"""Snapshot tables, one per entity kind.

Column names follow the archive's on-disk schema so existing databases open
unchanged: natural key column(s), ``date`` and the payload columns. Blob
references are stored as the 36-character blob id string.
"""

from __future__ import annotations

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from letovo_archive.models.base import Base, SnapshotRow


class WebsiteDoc(SnapshotRow, Base):
    """A document linked from the school website, stored as a blob."""

    __tablename__ = "website_docs"

    url: Mapped[str] = mapped_column(String(2048), index=True)
    file: Mapped[str] = mapped_column(String(36))


class DDGDoc(SnapshotRow, Base):
    """A document discovered by the search-engine crawl, stored as a blob."""

    __tablename__ = "ddg_docs"

    url: Mapped[str] = mapped_column(String(2048), index=True)
    name: Mapped[str | None] = mapped_column(String(1024))
    file: Mapped[str] = mapped_column(String(36))


class WebsiteNews(SnapshotRow, Base):
    """A news item; ``json`` is the serialized item as produced."""

    __tablename__ = "website_news"

    news_id: Mapped[int] = mapped_column(Integer, index=True)
    url: Mapped[str | None] = mapped_column(String(2048))
    json: Mapped[str] = mapped_column(Text)


class WebsiteVacancy(SnapshotRow, Base):
    """A vacancy listing. Only the first observation of an id is kept."""

    __tablename__ = "website_vacancies"

    vacancy_id: Mapped[int] = mapped_column(Integer, index=True)
    vacancy: Mapped[str] = mapped_column(Text)


class WebsiteText(SnapshotRow, Base):
    """A crawled text/HTML page."""

    __tablename__ = "website_texts"

    url: Mapped[str] = mapped_column(String(2048), index=True)
    json: Mapped[str] = mapped_column(Text)


class WebsiteGalleryPhoto(SnapshotRow, Base):
    """A gallery photo and the album it was seen in."""

    __tablename__ = "website_gallery"

    photo_id: Mapped[int] = mapped_column(Integer, index=True)
    url: Mapped[str | None] = mapped_column(String(2048))
    album_id: Mapped[int | None] = mapped_column(Integer)
    album_name: Mapped[str | None] = mapped_column(String(1024))


class HHRuDump(SnapshotRow, Base):
    """Full dump of the employer's HH.ru listings (singleton stream)."""

    __tablename__ = "hhru"

    json: Mapped[str] = mapped_column(Text)


class CRTShDump(SnapshotRow, Base):
    """Certificate-transparency records for the school domains (singleton stream)."""

    __tablename__ = "crtsh"

    json: Mapped[str] = mapped_column(Text)


class WebCapture(SnapshotRow, Base):
    """Capture of a single web page (singleton stream)."""

    __tablename__ = "web_captures"

    json: Mapped[str] = mapped_column(Text)


class LibraryBook(SnapshotRow, Base):
    """A library catalog entry keyed by its catalog link."""

    __tablename__ = "library_books"

    link: Mapped[str] = mapped_column(String(2048), index=True)
    title: Mapped[str | None] = mapped_column(String(2048))
    identifier: Mapped[str | None] = mapped_column(String(512))
