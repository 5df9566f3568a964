"""Entity kind registry.

One table per kind, one generic ledger for all of them. Each ``KindSpec``
names the model, the natural key column(s), the payload columns and the dedup
policy the ingestion pipeline applies to the kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final

from letovo_archive.errors import UnknownKindError
from letovo_archive.models import (
    CRTShDump,
    DDGDoc,
    DedupPolicy,
    EntityKind,
    HHRuDump,
    LibraryBook,
    SnapshotRow,
    WebCapture,
    WebsiteDoc,
    WebsiteGalleryPhoto,
    WebsiteNews,
    WebsiteText,
    WebsiteVacancy,
)

NaturalKey = tuple[Any, ...]


@dataclass(frozen=True)
class KindSpec:
    """Configuration of one entity kind.

    Attributes:
        kind: The entity kind.
        model: Mapped snapshot table.
        key_fields: Natural key columns. Empty for singleton streams.
        payload_fields: Columns written from the observation payload.
        policy: Dedup policy deciding whether an observation is a change.
        compare_fields: Columns compared by CANONICAL_STRING / FIELD_EQUALITY.
        blob_field: Column holding the blob id for binary kinds.
    """

    kind: EntityKind
    model: type[SnapshotRow]
    key_fields: tuple[str, ...]
    payload_fields: tuple[str, ...]
    policy: DedupPolicy
    compare_fields: tuple[str, ...] = ()
    blob_field: str | None = None

    @property
    def is_singleton(self) -> bool:
        return not self.key_fields

    @property
    def is_binary(self) -> bool:
        return self.blob_field is not None

    @property
    def table_name(self) -> str:
        return self.model.__tablename__  # type: ignore[attr-defined]

    def normalize_key(self, key: Any) -> NaturalKey:
        """Turn a scalar, tuple or None into a key tuple matching ``key_fields``.

        Raises:
            ValueError: If the key arity does not match the kind.
        """
        if key is None:
            values: NaturalKey = ()
        elif isinstance(key, tuple):
            values = key
        else:
            values = (key,)

        if len(values) != len(self.key_fields):
            if self.is_singleton:
                raise ValueError(f"{self.kind.value} is a singleton stream and takes no key")
            raise ValueError(
                f"{self.kind.value} key needs {len(self.key_fields)} value(s) "
                f"({', '.join(self.key_fields)}), got {len(values)}"
            )
        return values

    def coerce_key(self, raw: str | None) -> NaturalKey:
        """Parse a textual key (CLI argument, query string) into column types."""
        if self.is_singleton:
            return self.normalize_key(None)
        if raw is None:
            raise ValueError(f"{self.kind.value} requires a key ({', '.join(self.key_fields)})")

        parts = tuple(raw.split(",")) if len(self.key_fields) > 1 else (raw,)
        self.normalize_key(parts)
        values = []
        for field_name, part in zip(self.key_fields, parts):
            python_type = self.model.__table__.c[field_name].type.python_type  # type: ignore[attr-defined]
            values.append(python_type(part))
        return self.normalize_key(tuple(values))


KIND_SPECS: Final[dict[EntityKind, KindSpec]] = {
    EntityKind.DOC: KindSpec(
        kind=EntityKind.DOC,
        model=WebsiteDoc,
        key_fields=("url",),
        payload_fields=(),
        policy=DedupPolicy.BYTE_EQUALITY,
        blob_field="file",
    ),
    EntityKind.DDG_DOC: KindSpec(
        kind=EntityKind.DDG_DOC,
        model=DDGDoc,
        key_fields=("url",),
        payload_fields=("name",),
        policy=DedupPolicy.BYTE_EQUALITY,
        blob_field="file",
    ),
    EntityKind.NEWS: KindSpec(
        kind=EntityKind.NEWS,
        model=WebsiteNews,
        key_fields=("news_id",),
        payload_fields=("url", "json"),
        policy=DedupPolicy.CANONICAL_STRING,
        compare_fields=("json",),
    ),
    EntityKind.VACANCY: KindSpec(
        kind=EntityKind.VACANCY,
        model=WebsiteVacancy,
        key_fields=("vacancy_id",),
        payload_fields=("vacancy",),
        policy=DedupPolicy.PRESENCE_ONLY,
    ),
    EntityKind.TEXT: KindSpec(
        kind=EntityKind.TEXT,
        model=WebsiteText,
        key_fields=("url",),
        payload_fields=("json",),
        policy=DedupPolicy.CANONICAL_STRING,
        compare_fields=("json",),
    ),
    EntityKind.PHOTO: KindSpec(
        kind=EntityKind.PHOTO,
        model=WebsiteGalleryPhoto,
        key_fields=("photo_id",),
        payload_fields=("url", "album_id", "album_name"),
        policy=DedupPolicy.PRESENCE_ONLY,
    ),
    EntityKind.HHRU: KindSpec(
        kind=EntityKind.HHRU,
        model=HHRuDump,
        key_fields=(),
        payload_fields=("json",),
        policy=DedupPolicy.CANONICAL_STRING,
        compare_fields=("json",),
    ),
    EntityKind.CRTSH: KindSpec(
        kind=EntityKind.CRTSH,
        model=CRTShDump,
        key_fields=(),
        payload_fields=("json",),
        policy=DedupPolicy.CANONICAL_STRING,
        compare_fields=("json",),
    ),
    EntityKind.CAPTURE: KindSpec(
        kind=EntityKind.CAPTURE,
        model=WebCapture,
        key_fields=(),
        payload_fields=("json",),
        policy=DedupPolicy.CANONICAL_STRING,
        compare_fields=("json",),
    ),
    EntityKind.BOOK: KindSpec(
        kind=EntityKind.BOOK,
        model=LibraryBook,
        key_fields=("link",),
        payload_fields=("title", "identifier"),
        policy=DedupPolicy.FIELD_EQUALITY,
        compare_fields=("title", "identifier"),
    ),
}


def get_kind_spec(kind: EntityKind | str) -> KindSpec:
    """Look up a kind by enum member or name.

    Raises:
        UnknownKindError: If the name is not a registered kind.
    """
    try:
        return KIND_SPECS[EntityKind(kind)]
    except ValueError:
        raise UnknownKindError(str(kind)) from None
