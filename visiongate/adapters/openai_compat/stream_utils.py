"""
SSE framing for relayed generation streams.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterable, Iterable, Mapping

from fastapi.responses import StreamingResponse

SSE_DONE = b"data: [DONE]\n\n"
_STREAM_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
_STREAM_HEADER_NAMES = frozenset(name.lower() for name in _STREAM_HEADERS)


def _sse_data(payload: Any) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


def _stream_error_sse_chunk(message: str, code: str | None = None) -> bytes:
    """Terminal error event for a stream that broke after headers were sent."""
    return _sse_data(
        {
            "type": "error",
            "error": {
                "message": (message or "").strip() or "upstream_error",
                "type": "visiongate_error",
                "code": (code or "").strip() or "upstream_error",
            },
        }
    )


def _stream_done_sse_chunk() -> bytes:
    return SSE_DONE


def _build_streaming_response(
    chunks: Iterable[bytes] | AsyncIterable[bytes],
    media_type: str = "text/event-stream",
    headers: Mapping[str, str] | None = None,
) -> StreamingResponse:
    merged = {key: value for key, value in (headers or {}).items() if key.lower() not in _STREAM_HEADER_NAMES}
    merged.update(_STREAM_HEADERS)
    return StreamingResponse(chunks, media_type=media_type, headers=merged)
