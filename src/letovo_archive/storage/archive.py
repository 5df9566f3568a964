"""The archive store: ledger database plus blob store.

An ``Archive`` is constructed explicitly and passed to whoever needs it, so
tests and concurrent tools can each hold an isolated instance. Lifecycle:

    archive = Archive.open("sqlite+aiosqlite:///data.db", "files")
    await archive.init()      # create blob root and tables
    ...                       # ingest / read
    await archive.close()     # dispose the engine

``async with Archive.open(...) as archive`` runs init and close for you.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from types import TracebackType
from typing import Any

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine

from letovo_archive.config import Settings
from letovo_archive.db import create_engine, create_session_factory, init_db
from letovo_archive.errors import StorageUnavailableError
from letovo_archive.kinds import KIND_SPECS, KindSpec, get_kind_spec
from letovo_archive.models import EntityKind, SnapshotRow
from letovo_archive.storage.blob_store import BlobStore
from letovo_archive.storage.ledger import SnapshotLedger

logger = logging.getLogger(__name__)


class Archive:
    """Owner of the database engine, the blob store and one ledger per kind."""

    def __init__(self, engine: AsyncEngine, blobs: BlobStore) -> None:
        self._engine = engine
        self._blobs = blobs
        session_factory = create_session_factory(engine)
        self._ledgers = {
            kind: SnapshotLedger(spec, session_factory) for kind, spec in KIND_SPECS.items()
        }

    @classmethod
    def open(
        cls,
        database_url: str,
        blob_root: Path | str,
        *,
        echo: bool = False,
    ) -> Archive:
        """Build an archive for the given database URL and blob directory."""
        return cls(create_engine(database_url, echo=echo), BlobStore(blob_root))

    @classmethod
    def from_settings(cls, settings: Settings) -> Archive:
        return cls.open(settings.database_url, settings.blob_root, echo=settings.database_echo)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def blobs(self) -> BlobStore:
        return self._blobs

    @property
    def kinds(self) -> list[KindSpec]:
        return list(KIND_SPECS.values())

    async def init(self) -> None:
        """Create the blob root and any missing ledger tables."""
        self._blobs.ensure_root()
        try:
            await init_db(self._engine)
        except OperationalError as e:
            raise StorageUnavailableError(f"Cannot initialize ledger database: {e}") from e
        logger.debug("Archive ready (blobs at %s)", self._blobs.root)

    async def close(self) -> None:
        await self._engine.dispose()

    async def __aenter__(self) -> Archive:
        await self.init()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def ledger(self, kind: EntityKind | str) -> SnapshotLedger:
        """Return the ledger of a kind.

        Raises:
            UnknownKindError: If the kind is not registered.
        """
        return self._ledgers[get_kind_spec(kind).kind]

    # ── Read API (presentation contract) ─────────────────────────────────────

    async def get_latest_n(self, kind: EntityKind | str, n: int = 10) -> Sequence[SnapshotRow]:
        return await self.ledger(kind).get_latest_n(n)

    async def get_all(self, kind: EntityKind | str) -> Sequence[SnapshotRow]:
        return await self.ledger(kind).get_all()

    async def get_by_key(self, kind: EntityKind | str, key: Any) -> Sequence[SnapshotRow]:
        return await self.ledger(kind).get_by_key(key)

    async def get_by_id(self, kind: EntityKind | str, row_id: int) -> SnapshotRow:
        return await self.ledger(kind).get_by_id(row_id)
