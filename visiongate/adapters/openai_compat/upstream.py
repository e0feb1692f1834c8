"""
Generation backend client: forwards chat requests to the OpenAI-compatible upstream.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncGenerator, Mapping

import httpx
from starlette.responses import Response

from visiongate.adapters.openai_compat.stream_utils import (
    _build_streaming_response,
    _stream_done_sse_chunk,
    _stream_error_sse_chunk,
)
from visiongate.config.settings import settings
from visiongate.util.logger import logger

CHAT_COMPLETIONS_PATH = "/chat/completions"

_HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
}

_upstream_async_client: httpx.AsyncClient | None = None
_upstream_client_lock: Any = None


def _upstream_http_limits() -> httpx.Limits:
    return httpx.Limits(
        max_connections=max(10, int(settings.upstream_max_connections)),
        max_keepalive_connections=max(5, int(settings.upstream_max_keepalive_connections)),
    )


def _upstream_http_timeout() -> httpx.Timeout:
    timeout = float(settings.upstream_timeout_seconds)
    return httpx.Timeout(connect=timeout, read=timeout, write=timeout, pool=timeout)


async def _get_upstream_async_client() -> httpx.AsyncClient:
    global _upstream_async_client, _upstream_client_lock
    if _upstream_async_client is not None:
        return _upstream_async_client
    if _upstream_client_lock is None:
        _upstream_client_lock = asyncio.Lock()
    async with _upstream_client_lock:
        if _upstream_async_client is None:
            _upstream_async_client = httpx.AsyncClient(
                http2=False,
                timeout=_upstream_http_timeout(),
                limits=_upstream_http_limits(),
            )
    return _upstream_async_client


async def close_upstream_async_client() -> None:
    global _upstream_async_client
    if _upstream_async_client is not None:
        await _upstream_async_client.aclose()
        _upstream_async_client = None


def _build_upstream_url(route_path: str, upstream_base: str | None = None) -> str:
    base = (upstream_base if upstream_base is not None else settings.upstream_base_url).strip().rstrip("/")
    path = route_path or "/"
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{base}{path}"


def _build_forward_headers(headers: Mapping[str, str]) -> dict[str, str]:
    forwarded: dict[str, str] = {}
    excluded = {"host", "content-length", "accept-encoding", *_HOP_BY_HOP_HEADERS}
    for key, value in headers.items():
        if key.lower() in excluded:
            continue
        forwarded[key] = value

    if not any(name.lower() == "content-type" for name in forwarded):
        forwarded["Content-Type"] = "application/json"
    return forwarded


def _response_headers(resp: httpx.Response) -> dict[str, str]:
    """Backend response headers worth relaying; body framing is recomputed for the caller."""
    excluded = {"content-length", "content-encoding", *_HOP_BY_HOP_HEADERS}
    return {key: value for key, value in resp.headers.items() if key.lower() not in excluded}


def _passthrough_response(resp: httpx.Response) -> Response:
    # status, bytes and content type exactly as the backend sent them
    return Response(content=resp.content, status_code=resp.status_code, headers=_response_headers(resp))


def _should_stream(payload: Mapping[str, Any]) -> bool:
    return bool(payload.get("stream") is True)


async def _forward_json(url: str, payload: dict[str, Any], headers: Mapping[str, str]) -> httpx.Response:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    logger.debug("forward_json start url=%s payload_bytes=%d", url, len(body))
    client = await _get_upstream_async_client()
    try:
        response = await client.post(url=url, content=body, headers=dict(headers))
    except httpx.HTTPError as exc:
        detail = (str(exc) or "").strip() or "connection_failed_or_timeout"
        logger.warning("forward_json http_error url=%s error=%s", url, detail)
        raise RuntimeError(f"upstream_unreachable: {detail}") from exc
    logger.debug("forward_json done url=%s status=%s", url, response.status_code)
    return response


async def _open_stream(url: str, payload: dict[str, Any], headers: Mapping[str, str]) -> httpx.Response:
    """Send the request and return once headers arrive; the caller owns closing the response."""
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    logger.debug("forward_stream start url=%s payload_bytes=%d", url, len(body))
    client = await _get_upstream_async_client()
    try:
        request = client.build_request("POST", url, content=body, headers=dict(headers))
        resp = await client.send(request, stream=True)
    except httpx.HTTPError as exc:
        detail = (str(exc) or "").strip() or "connection_failed_or_timeout"
        logger.warning("forward_stream http_error url=%s error=%s", url, detail)
        raise RuntimeError(f"upstream_unreachable: {detail}") from exc
    logger.debug("forward_stream connected url=%s status=%s", url, resp.status_code)
    return resp


async def _relay_stream_lines(resp: httpx.Response, url: str) -> AsyncGenerator[bytes, None]:
    try:
        async for line in resp.aiter_lines():
            yield f"{line}\n".encode("utf-8")
    except (httpx.HTTPError, httpx.StreamError) as exc:
        detail = (str(exc) or "").strip() or exc.__class__.__name__
        logger.error("forward_stream interrupted url=%s error=%s", url, detail)
        yield _stream_error_sse_chunk(f"upstream_unreachable: {detail}", code="upstream_unreachable")
        yield _stream_done_sse_chunk()
    finally:
        await resp.aclose()


async def forward_generation(payload: dict[str, Any], headers: Mapping[str, str]) -> Response:
    """Forward one chat request to the generation backend and proxy its answer.

    Raises ``RuntimeError("upstream_unreachable: ...")`` when no response is
    obtained. Any response the backend does produce, error statuses included,
    reaches the caller with its own status, content type and body bytes.
    """
    url = _build_upstream_url(CHAT_COMPLETIONS_PATH)
    forward_headers = _build_forward_headers(headers)

    if not _should_stream(payload):
        return _passthrough_response(await _forward_json(url, payload, forward_headers))

    resp = await _open_stream(url, payload, forward_headers)
    if resp.status_code >= 400:
        try:
            await resp.aread()
        finally:
            await resp.aclose()
        logger.warning("forward_stream upstream_http_error url=%s status=%s", url, resp.status_code)
        return _passthrough_response(resp)

    relayed = _response_headers(resp)
    media_type = relayed.pop("content-type", None) or "text/event-stream"
    return _build_streaming_response(_relay_stream_lines(resp, url), media_type=media_type, headers=relayed)
