import base64
import io
import json

import httpx
import pytest
from fastapi.responses import JSONResponse
from PIL import Image
from starlette.requests import Request

from visiongate.adapters.openai_compat import router as openai_router
from visiongate.config.settings import settings
from visiongate.core import gateway
from visiongate.vision.extractor import TextExtractor
from visiongate.vision.ocr_engine import OcrEngine, TextRegion


def _build_request(
    path: str,
    *,
    method: str = "POST",
    headers: dict[str, str] | None = None,
    body: bytes = b"{}",
) -> Request:
    raw_headers = [(b"content-type", b"application/json")]
    for k, v in (headers or {}).items():
        raw_headers.append((k.lower().encode("latin-1"), v.encode("latin-1")))
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("latin-1"),
        "query_string": b"",
        "headers": raw_headers,
        "client": ("127.0.0.1", 50000),
        "server": ("127.0.0.1", 18090),
    }

    sent = False

    async def receive() -> dict:
        nonlocal sent
        if sent:
            return {"type": "http.request", "body": b"", "more_body": False}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


async def _allow_next(_request: Request):
    return JSONResponse(status_code=200, content={"ok": True})


class _StaticEngine(OcrEngine):
    def recognize(self, image, callback) -> None:
        callback([TextRegion(candidates=("HELLO",))], None)


@pytest.mark.asyncio
async def test_boundary_rejects_declared_oversize_body(monkeypatch):
    monkeypatch.setattr(settings, "max_request_body_bytes", 100)
    request = _build_request("/api/v1/vision/ocr", headers={"content-length": "101"})
    response = await gateway.request_boundary_middleware(request, _allow_next)

    assert response.status_code == 413
    body = json.loads(response.body.decode("utf-8"))
    assert body["error"]["code"] == "request_body_too_large"


@pytest.mark.asyncio
async def test_boundary_rejects_actual_oversize_body_without_length(monkeypatch):
    monkeypatch.setattr(settings, "max_request_body_bytes", 8)
    request = _build_request("/api/v1/vision/ocr", body=b'{"image": "aGVsbG8gd29ybGQ="}')
    response = await gateway.request_boundary_middleware(request, _allow_next)

    assert response.status_code == 413


@pytest.mark.asyncio
async def test_boundary_rejects_invalid_content_length():
    request = _build_request("/api/v1/chat/completions", headers={"content-length": "abc"})
    response = await gateway.request_boundary_middleware(request, _allow_next)

    assert response.status_code == 400
    body = json.loads(response.body.decode("utf-8"))
    assert body["error"]["code"] == "invalid_content_length"


@pytest.mark.asyncio
async def test_boundary_passes_normal_requests():
    request = _build_request("/api/v1/vision/analyze", headers={"content-length": "2"})
    response = await gateway.request_boundary_middleware(request, _allow_next)

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_boundary_converts_unhandled_errors():
    async def _explode(_request: Request):
        raise ValueError("boom")

    request = _build_request("/api/v1/vision/analyze", headers={"content-length": "2"})
    response = await gateway.request_boundary_middleware(request, _explode)

    assert response.status_code == 500
    body = json.loads(response.body.decode("utf-8"))
    assert body["error"]["code"] == "gateway_internal_error"
    assert "boom" in body["error"]["message"]


def test_health():
    assert gateway.health() == {"status": "ok"}


@pytest.mark.asyncio
async def test_app_serves_models_and_rejects_non_object_bodies():
    transport = httpx.ASGITransport(app=gateway.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        models = await client.get("/api/v1/models")
        rejected = await client.post("/api/v1/vision/ocr", json=["not", "an", "object"])

    assert models.status_code == 200
    assert [item["id"] for item in models.json()["data"]] == ["base", "permissive", "vision-base", "vision-permissive"]
    assert rejected.status_code == 400
    assert rejected.json()["error"]["code"] == "invalid_request"


@pytest.mark.asyncio
async def test_app_runs_vision_ocr_end_to_end(monkeypatch):
    monkeypatch.setattr(openai_router, "_extractor", TextExtractor(engine=_StaticEngine()))
    buffer = io.BytesIO()
    Image.new("RGB", (2, 2)).save(buffer, format="PNG")
    image = base64.b64encode(buffer.getvalue()).decode("ascii")

    transport = httpx.ASGITransport(app=gateway.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.post("/api/v1/vision/ocr", json={"image": f"data:image/png;base64,{image}"})

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"id", "object", "created", "text"}
    assert body["text"] == "HELLO"
