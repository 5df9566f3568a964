"""Declarative base and the columns shared by every snapshot table."""

from __future__ import annotations

from typing import Any

from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base class."""


class SnapshotRow:
    """Mixin for append-only snapshot tables.

    ``id`` is assigned by the database in insertion order and never reused
    (``sqlite_autoincrement``); ``date`` holds the commit time in epoch
    milliseconds. The row with the greatest id for a natural key is the
    latest snapshot of that entity.
    """

    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[int] = mapped_column(BigInteger)

    def to_dict(self) -> dict[str, Any]:
        """Return the row as a plain column -> value mapping."""
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}  # type: ignore[attr-defined]

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} date={self.date}>"
