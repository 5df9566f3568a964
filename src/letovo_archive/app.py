"""FastAPI read API for Letovo Archive.

Read-only JSON access to the ledger and raw access to blobs. Missing rows,
blobs and kinds are 404 responses.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from letovo_archive import __version__
from letovo_archive.config import settings
from letovo_archive.errors import NotFoundError
from letovo_archive.kinds import get_kind_spec
from letovo_archive.storage import Archive, BlobMeta

router = APIRouter()


class KindInfo(BaseModel):
    """Description of one entity kind."""

    kind: str
    table: str
    key_fields: list[str]
    policy: str
    rows: int


def get_archive(request: Request) -> Archive:
    return request.app.state.archive


@router.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@router.get("/kinds")
async def list_kinds(archive: Archive = Depends(get_archive)) -> list[KindInfo]:
    """List entity kinds with their row counts."""
    return [
        KindInfo(
            kind=spec.kind.value,
            table=spec.table_name,
            key_fields=list(spec.key_fields),
            policy=spec.policy.value,
            rows=await archive.ledger(spec.kind).count(),
        )
        for spec in archive.kinds
    ]


@router.get("/kinds/{kind}/latest")
async def latest_rows(
    kind: str,
    n: int = Query(10, ge=1, le=1000),
    archive: Archive = Depends(get_archive),
) -> list[dict[str, Any]]:
    """The ``n`` most recent snapshots of a kind."""
    return [row.to_dict() for row in await archive.get_latest_n(kind, n)]


@router.get("/kinds/{kind}/rows")
async def all_rows(kind: str, archive: Archive = Depends(get_archive)) -> list[dict[str, Any]]:
    """Every snapshot of a kind, newest first."""
    return [row.to_dict() for row in await archive.get_all(kind)]


@router.get("/kinds/{kind}/rows/{row_id}")
async def row_by_id(
    kind: str, row_id: int, archive: Archive = Depends(get_archive)
) -> dict[str, Any]:
    """One snapshot by its row id."""
    row = await archive.get_by_id(kind, row_id)
    return row.to_dict()


@router.get("/kinds/{kind}/history")
async def history(
    kind: str,
    key: str | None = None,
    archive: Archive = Depends(get_archive),
) -> list[dict[str, Any]]:
    """All snapshots of one natural key, newest first.

    Composite keys are comma-separated; singleton streams take no key.
    """
    natural_key = get_kind_spec(kind).coerce_key(key)
    return [row.to_dict() for row in await archive.get_by_key(kind, natural_key)]


@router.get("/blobs/{blob_id}/meta")
async def blob_meta(blob_id: str, archive: Archive = Depends(get_archive)) -> BlobMeta:
    """Metadata of a blob."""
    return archive.blobs.read_meta(blob_id)


@router.get("/blobs/{blob_id}")
async def blob_data(blob_id: str, archive: Archive = Depends(get_archive)) -> Response:
    """Raw bytes of a blob, served as an attachment named after its metadata."""
    meta = archive.blobs.read_meta(blob_id)
    data = archive.blobs.read_data(blob_id)
    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(meta.name, safe='')}"},
    )


async def _not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _bad_request(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def create_app(archive: Archive | None = None) -> FastAPI:
    """Build the API app.

    With no ``archive``, one is opened from settings for the app's lifetime.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan handler."""
        if archive is not None:
            yield
            return
        owned = Archive.from_settings(settings)
        await owned.init()
        app.state.archive = owned
        try:
            yield
        finally:
            await owned.close()

    app = FastAPI(
        title="Letovo Archive",
        description="Append-only history of archived school data sources",
        version=__version__,
        lifespan=lifespan,
    )
    if archive is not None:
        app.state.archive = archive
    app.include_router(router)
    app.add_exception_handler(NotFoundError, _not_found)
    app.add_exception_handler(ValueError, _bad_request)
    return app


app = create_app()
