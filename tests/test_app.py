"""Tests for the FastAPI read API."""

from collections.abc import AsyncGenerator
from urllib.parse import quote

import pytest
from httpx import ASGITransport, AsyncClient

from letovo_archive import __version__
from letovo_archive.app import create_app
from letovo_archive.ingestion import BlobPayload, IngestionPipeline, SnapshotItem
from letovo_archive.models import EntityKind
from letovo_archive.storage import Archive


@pytest.fixture
async def client(archive: Archive) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(archive)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}


async def test_kinds_lists_every_kind(client: AsyncClient, archive: Archive) -> None:
    await archive.ledger(EntityKind.NEWS).append(1, 10, {"json": "{}"})

    response = await client.get("/kinds")

    assert response.status_code == 200
    kinds = {info["kind"]: info for info in response.json()}
    assert set(kinds) == {kind.value for kind in EntityKind}
    assert kinds["news"]["rows"] == 1
    assert kinds["news"]["table"] == "website_news"
    assert kinds["news"]["key_fields"] == ["news_id"]
    assert kinds["hhru"]["key_fields"] == []


async def test_latest_is_newest_first(client: AsyncClient, archive: Archive) -> None:
    ledger = archive.ledger(EntityKind.VACANCY)
    for i in range(5):
        await ledger.append(i, 100 + i, {"vacancy": str(i)})

    response = await client.get("/kinds/vacancy/latest", params={"n": 3})

    assert response.status_code == 200
    assert [row["vacancy_id"] for row in response.json()] == [4, 3, 2]


async def test_latest_rejects_bad_limit(client: AsyncClient) -> None:
    response = await client.get("/kinds/news/latest", params={"n": 0})
    assert response.status_code == 422


async def test_rows_and_row_by_id(client: AsyncClient, archive: Archive) -> None:
    row = await archive.ledger(EntityKind.TEXT).append("/about", 5, {"json": '{"h1":"About"}'})

    rows = await client.get("/kinds/text/rows")
    single = await client.get(f"/kinds/text/rows/{row.id}")

    assert [r["id"] for r in rows.json()] == [row.id]
    assert single.status_code == 200
    assert single.json() == {"id": row.id, "date": 5, "url": "/about", "json": '{"h1":"About"}'}


async def test_missing_row_is_404(client: AsyncClient) -> None:
    response = await client.get("/kinds/news/rows/999")
    assert response.status_code == 404


async def test_unknown_kind_is_404(client: AsyncClient) -> None:
    response = await client.get("/kinds/podcasts/rows")
    assert response.status_code == 404
    assert "podcasts" in response.json()["detail"]


async def test_history_by_key(client: AsyncClient, archive: Archive) -> None:
    ledger = archive.ledger(EntityKind.NEWS)
    await ledger.append(42, 1, {"json": "a"})
    await ledger.append(7, 2, {"json": "other"})
    await ledger.append(42, 3, {"json": "b"})

    response = await client.get("/kinds/news/history", params={"key": "42"})

    assert response.status_code == 200
    assert [row["json"] for row in response.json()] == ["b", "a"]


async def test_history_of_singleton(client: AsyncClient, archive: Archive) -> None:
    ledger = archive.ledger(EntityKind.CRTSH)
    await ledger.append(None, 1, {"json": "[1]"})
    await ledger.append(None, 2, {"json": "[1,2]"})

    response = await client.get("/kinds/crtsh/history")

    assert [row["json"] for row in response.json()] == ["[1,2]", "[1]"]


async def test_history_bad_key_is_400(client: AsyncClient) -> None:
    response = await client.get("/kinds/news/history", params={"key": "forty-two"})
    assert response.status_code == 400


async def test_blob_meta_and_data(client: AsyncClient, archive: Archive) -> None:
    pipeline = IngestionPipeline(archive)
    item = SnapshotItem(
        key="https://letovo.ru/docs/Положение.pdf",
        blob=BlobPayload(name="Положение.pdf", data=b"%PDF-1.7"),
    )
    await pipeline.ingest(EntityKind.DOC, [item])
    row = await archive.ledger(EntityKind.DOC).get_latest(item.key)
    assert row is not None

    meta = await client.get(f"/blobs/{row.file}/meta")
    data = await client.get(f"/blobs/{row.file}")

    assert meta.json() == {"name": "Положение.pdf"}
    assert data.status_code == 200
    assert data.content == b"%PDF-1.7"
    assert data.headers["content-type"] == "application/octet-stream"
    assert quote("Положение.pdf") in data.headers["content-disposition"]


@pytest.mark.parametrize("blob_id", ["8d4c3a1e-0000-4000-8000-000000000000", "not-a-uuid"])
async def test_missing_blob_is_404(client: AsyncClient, blob_id: str) -> None:
    assert (await client.get(f"/blobs/{blob_id}")).status_code == 404
    assert (await client.get(f"/blobs/{blob_id}/meta")).status_code == 404
