"""Database models for Letovo Archive."""

from letovo_archive.models.base import Base, SnapshotRow
from letovo_archive.models.enums import Decision, DedupPolicy, EntityKind
from letovo_archive.models.snapshots import (
    CRTShDump,
    DDGDoc,
    HHRuDump,
    LibraryBook,
    WebCapture,
    WebsiteDoc,
    WebsiteGalleryPhoto,
    WebsiteNews,
    WebsiteText,
    WebsiteVacancy,
)

__all__ = [
    "Base",
    "CRTShDump",
    "DDGDoc",
    "Decision",
    "DedupPolicy",
    "EntityKind",
    "HHRuDump",
    "LibraryBook",
    "SnapshotRow",
    "WebCapture",
    "WebsiteDoc",
    "WebsiteGalleryPhoto",
    "WebsiteNews",
    "WebsiteText",
    "WebsiteVacancy",
]
