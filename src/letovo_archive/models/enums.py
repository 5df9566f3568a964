"""Enumerations for the Letovo Archive data model."""

from enum import Enum


class EntityKind(str, Enum):
    """One category of archived source data. Each kind has its own table."""

    DOC = "doc"  # Document linked from the school website
    DDG_DOC = "ddg_doc"  # Document found by the search-engine crawl
    NEWS = "news"
    VACANCY = "vacancy"
    TEXT = "text"  # Text/HTML page
    PHOTO = "photo"  # Gallery photo
    HHRU = "hhru"  # Recruiting-site listing dump
    CRTSH = "crtsh"  # Certificate-transparency dump
    CAPTURE = "capture"  # Single-page web capture
    BOOK = "book"  # Library catalog entry


class DedupPolicy(str, Enum):
    """How a fresh observation is compared against the latest row."""

    BYTE_EQUALITY = "byte_equality"  # Compare blob bytes
    CANONICAL_STRING = "canonical_string"  # Compare serialized JSON verbatim
    PRESENCE_ONLY = "presence_only"  # Any prior row suppresses the commit
    FIELD_EQUALITY = "field_equality"  # Compare selected columns


class Decision(str, Enum):
    """Outcome of the dedup gate for one observation."""

    COMMIT = "commit"
    SKIP = "skip"
