import json

import pytest


@pytest.mark.asyncio
async def test_upload_wraps_backend_result(client, store, backend):
    response = await client.post(
        "/upload",
        files={"file": ("report.pdf", b"%PDF", "application/pdf")},
        data={"filename": "report.pdf"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "documentId": "doc-1", "chunks": 3}
    stored_url = "https://store.test/report.pdf-1"
    assert json.loads(backend.requests[0].content)["url"] == stored_url
    assert store.delete_calls == [[stored_url]]


@pytest.mark.asyncio
async def test_non_object_result_is_nested(client, backend):
    backend.payload = ["a", "b"]

    response = await client.post("/upload", files={"file": ("a.txt", b"x", "text/plain")})

    assert response.json() == {"success": True, "result": ["a", "b"]}


@pytest.mark.asyncio
async def test_missing_file(client, store):
    response = await client.post("/upload", data={"filename": "a.pdf"})

    assert response.status_code == 400
    assert response.json() == {"error": "No file provided"}
    assert store.store_calls == []


@pytest.mark.asyncio
async def test_backend_failure_reports_upload_failed(client, store, backend):
    backend.status_code = 500
    backend.payload = {"detail": "parser crashed"}

    response = await client.post("/upload", files={"file": ("a.pdf", b"x", "application/pdf")})

    assert response.status_code == 500
    assert response.json() == {"error": "Upload failed", "detail": "parser crashed"}
    assert len(store.delete_calls) == 1


@pytest.mark.asyncio
async def test_store_failure_reports_upload_failed(client, store, backend):
    store.fail_store = True

    response = await client.post("/upload", files={"file": ("a.pdf", b"x", "application/pdf")})

    assert response.status_code == 500
    assert response.json() == {"error": "Upload failed", "detail": "store unavailable"}
    assert backend.requests == []
