"""Generic append-only snapshot ledger.

One ``SnapshotLedger`` serves every entity kind; the ``KindSpec`` supplies
the table, the natural key columns and the payload columns. The ledger only
inserts and reads. It has no update or delete operations.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from letovo_archive.errors import RowNotFoundError, StorageUnavailableError
from letovo_archive.kinds import KindSpec
from letovo_archive.models import SnapshotRow

logger = logging.getLogger(__name__)


class SnapshotLedger:
    """Append-only history of one entity kind.

    Usage:
        ledger = SnapshotLedger(KIND_SPECS[EntityKind.NEWS], session_factory)
        row = await ledger.append(42, now_ms(), {"url": url, "json": payload})
        latest = await ledger.get_latest(42)
    """

    def __init__(
        self,
        spec: KindSpec,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._spec = spec
        self._model = spec.model
        self._session_factory = session_factory

    @property
    def spec(self) -> KindSpec:
        return self._spec

    async def append(self, key: Any, date: int, payload: Mapping[str, Any]) -> SnapshotRow:
        """Insert a new row and return it with its assigned id.

        Args:
            key: Natural key (scalar, tuple, or None for singleton streams).
            date: Commit time in epoch milliseconds.
            payload: Values for the kind's payload columns (and blob column).

        Raises:
            ValueError: If the key arity or payload columns do not match the kind.
            StorageUnavailableError: If the database is unavailable.
        """
        values = self._key_values(key)

        allowed = set(self._spec.payload_fields)
        if self._spec.blob_field:
            allowed.add(self._spec.blob_field)
        unknown = set(payload) - allowed
        if unknown:
            raise ValueError(
                f"Unknown payload column(s) for {self._spec.kind.value}: {', '.join(sorted(unknown))}"
            )

        row = self._model(**values, date=date, **payload)
        async with self._session() as session:
            session.add(row)
            await session.commit()

        logger.debug("Appended %s row %d key=%r", self._spec.kind.value, row.id, key)
        return row

    async def get_latest(self, key: Any = None) -> SnapshotRow | None:
        """Return the row with the greatest id for ``key``, or None if there is none."""
        stmt = self._where_key(select(self._model), key).order_by(self._model.id.desc()).limit(1)
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def get_all(self, key: Any = None) -> Sequence[SnapshotRow]:
        """Return rows newest first.

        For keyed kinds, ``key=None`` returns every row of the kind.
        """
        stmt = select(self._model)
        if key is not None or self._spec.is_singleton:
            stmt = self._where_key(stmt, key)
        stmt = stmt.order_by(self._model.id.desc())
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalars().all()

    async def get_by_key(self, key: Any) -> Sequence[SnapshotRow]:
        """Return the full history of one natural key, newest first."""
        return await self.get_all(self._spec.normalize_key(key))

    async def get_latest_n(self, n: int) -> Sequence[SnapshotRow]:
        """Return the ``n`` most recently appended rows of the kind.

        Raises:
            ValueError: If ``n`` is less than 1.
        """
        if n < 1:
            raise ValueError(f"n must be at least 1, got {n}")
        stmt = select(self._model).order_by(self._model.id.desc()).limit(n)
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalars().all()

    async def get_by_id(self, row_id: int) -> SnapshotRow:
        """Return one row by its id.

        Raises:
            RowNotFoundError: If the kind has no row with this id.
        """
        async with self._session() as session:
            row = await session.get(self._model, row_id)
        if row is None:
            raise RowNotFoundError(self._spec.kind.value, row_id)
        return row

    async def count(self) -> int:
        async with self._session() as session:
            result = await session.execute(select(func.count()).select_from(self._model))
            return result.scalar_one()

    def _key_values(self, key: Any) -> dict[str, Any]:
        values = self._spec.normalize_key(key)
        return dict(zip(self._spec.key_fields, values))

    def _where_key(self, stmt: Select[Any], key: Any) -> Select[Any]:
        for field_name, value in self._key_values(key).items():
            stmt = stmt.where(getattr(self._model, field_name) == value)
        return stmt

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except OperationalError as e:
            raise StorageUnavailableError(
                f"Ledger storage unavailable for {self._spec.kind.value}: {e}"
            ) from e
