from __future__ import annotations

import httpx
import pytest

from apps.api.main import app


@pytest.mark.anyio
async def test_meta_returns_capabilities_and_request_id() -> None:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/v1/meta")

    assert response.status_code == 200
    assert response.headers["X-Ftlmap-Request-Id"]

    payload = response.json()
    assert payload["version"]
    assert [item["id"] for item in payload["transformations"]] == [
        "direct",
        "concatenate",
        "conditional",
        "custom",
    ]
    labels = {item["id"]: item["label"] for item in payload["transformations"]}
    assert labels["concatenate"] == "Concatenate (Chain)"
    assert ".ftl" in payload["template_suffixes"]
    assert payload["export_filename"] == "transform-v2.ftl"
    assert payload["export_media_type"] == "text/plain"
    assert payload["max_upload_bytes"] == 5 * 1024 * 1024


@pytest.mark.anyio
async def test_meta_reports_upload_limit_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FTLMAP_MAX_UPLOAD_BYTES", "1024")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/v1/meta")

    assert response.json()["max_upload_bytes"] == 1024


@pytest.mark.anyio
async def test_meta_disabled_returns_404_with_request_id(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("FTLMAP_ENABLE_META", "0")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.get("/v1/meta")

    assert response.status_code == 404
    request_id = response.headers["X-Ftlmap-Request-Id"]
    payload = response.json()
    assert payload["error_code"] == "NOT_FOUND"
    assert payload["detail"]["request_id"] == request_id
