"""Utility modules for Letovo Archive."""

from letovo_archive.utils.serialization import canonical_json, now_ms

__all__ = [
    "canonical_json",
    "now_ms",
]
