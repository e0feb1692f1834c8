"""Resolve an inbound image reference into raw image bytes."""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
from urllib.parse import urlparse

import httpx

from visiongate.config.settings import settings
from visiongate.core.errors import InvalidImageDataError
from visiongate.core.routing import ImageSource, ImageSourceKind
from visiongate.util.logger import logger


_DATA_URL_PREFIX_RE = re.compile(r"^data:image/[^;,]+;base64,", re.IGNORECASE)

_fetch_client: httpx.AsyncClient | None = None
_fetch_client_lock: asyncio.Lock | None = None


def strip_data_url_prefix(payload: str) -> str:
    return _DATA_URL_PREFIX_RE.sub("", payload.strip(), count=1)


def decode_inline_image(payload: str) -> bytes:
    cleaned = strip_data_url_prefix(payload)
    try:
        data = base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageDataError(f"image is not valid base64: {exc}") from exc
    if not data:
        raise InvalidImageDataError("image payload is empty")
    return data


def _fetch_timeout() -> httpx.Timeout:
    timeout = float(settings.image_fetch_timeout_seconds)
    return httpx.Timeout(connect=timeout, read=timeout, write=timeout, pool=timeout)


async def _get_fetch_client() -> httpx.AsyncClient:
    global _fetch_client, _fetch_client_lock
    if _fetch_client is not None:
        return _fetch_client
    if _fetch_client_lock is None:
        _fetch_client_lock = asyncio.Lock()
    async with _fetch_client_lock:
        if _fetch_client is None:
            _fetch_client = httpx.AsyncClient(
                timeout=_fetch_timeout(),
                follow_redirects=settings.image_fetch_follow_redirects,
            )
    return _fetch_client


async def close_fetch_client() -> None:
    global _fetch_client
    if _fetch_client is not None:
        await _fetch_client.aclose()
        _fetch_client = None


def _validate_image_url(url: str) -> str:
    candidate = url.strip()
    parsed = urlparse(candidate)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidImageDataError(f"unsupported image_url: {candidate[:200]}")
    return candidate


async def fetch_image(url: str) -> bytes:
    """Single fetch attempt, no retry. The body is capped at image_fetch_max_bytes."""
    target = _validate_image_url(url)
    limit = int(settings.image_fetch_max_bytes)
    client = await _get_fetch_client()
    logger.debug("image fetch start url=%s", target)
    try:
        async with client.stream("GET", target) as resp:
            if resp.status_code >= 400:
                raise InvalidImageDataError(f"image fetch failed with HTTP {resp.status_code}")
            declared = resp.headers.get("content-length", "").strip()
            if limit > 0 and declared.isdigit() and int(declared) > limit:
                raise InvalidImageDataError(f"image exceeds {limit} bytes")
            chunks: list[bytes] = []
            received = 0
            async for chunk in resp.aiter_bytes():
                received += len(chunk)
                if limit > 0 and received > limit:
                    raise InvalidImageDataError(f"image exceeds {limit} bytes")
                chunks.append(chunk)
    except httpx.HTTPError as exc:
        detail = (str(exc) or "").strip() or exc.__class__.__name__
        logger.warning("image fetch http_error url=%s error=%s", target, detail)
        raise InvalidImageDataError(f"image fetch failed: {detail}") from exc

    data = b"".join(chunks)
    if not data:
        raise InvalidImageDataError("fetched image is empty")
    logger.debug("image fetch done url=%s bytes=%d", target, len(data))
    return data


async def acquire(source: ImageSource) -> bytes:
    if source.kind is ImageSourceKind.INLINE:
        return decode_inline_image(source.value)
    return await fetch_image(source.value)
