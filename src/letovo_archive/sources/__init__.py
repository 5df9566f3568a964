"""Source runs: map producer output to snapshot items and archive it.

Main entry point:
    from letovo_archive.sources import archive_all

    outcomes = await archive_all(pipeline, producers, settings)
"""

from letovo_archive.sources.archivers import (
    SourceOutcome,
    archive_all,
    archive_capture,
    archive_crtsh,
    archive_ddg_docs,
    archive_hhru,
    archive_library,
    archive_website,
    run_isolated,
)
from letovo_archive.sources.producers import ProducerSet, load_producers

__all__ = [
    "ProducerSet",
    "SourceOutcome",
    "archive_all",
    "archive_capture",
    "archive_crtsh",
    "archive_ddg_docs",
    "archive_hhru",
    "archive_library",
    "archive_website",
    "load_producers",
    "run_isolated",
]
