"""OpenAI-compatible and vision routes."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from visiongate.adapters.openai_compat.shaper import shape
from visiongate.adapters.openai_compat.upstream import forward_generation
from visiongate.config.settings import settings
from visiongate.core.context import RequestContext, new_request_id
from visiongate.core.errors import VisionGateError
from visiongate.core.models import list_models
from visiongate.core.pipeline import Pipeline
from visiongate.core.routing import Endpoint, plan_request
from visiongate.util.logger import logger
from visiongate.vision.acquire import acquire
from visiongate.vision.extractor import TextExtractor


router = APIRouter()
_extractor = TextExtractor()
_API_PREFIX = "/api/v1"

# keep debug logs readable when the body carries a base64 image
_DEBUG_REQUEST_BODY_MAX_CHARS = 32000
_DEBUG_HEADERS_REDACT = frozenset({"authorization", "proxy-authorization", "cookie"})
_INLINE_IMAGE_LOG_FIELDS = frozenset({"image"})


def _build_pipeline() -> Pipeline:
    return Pipeline(acquire_image=acquire, extractor=_extractor, generate=forward_generation)


def _sanitize_payload_for_log(payload: dict[str, Any]) -> dict[str, Any]:
    sanitized: dict[str, Any] = {}
    for key, value in payload.items():
        if key in _INLINE_IMAGE_LOG_FIELDS and isinstance(value, str):
            sanitized[key] = f"[IMAGE_CONTENT {len(value)} chars]"
        else:
            sanitized[key] = value
    return sanitized


def _log_request_if_debug(request: Request, payload: dict[str, Any], route: str) -> None:
    """At debug level log method/path/headers and body size; the body itself only with log_full_request_body."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    headers_safe = {}
    for k, v in request.headers.items():
        key_lower = k.lower()
        if key_lower in _DEBUG_HEADERS_REDACT or "key" in key_lower or "secret" in key_lower or "token" in key_lower:
            headers_safe[k] = "***"
        else:
            headers_safe[k] = v
    try:
        body_str = json.dumps(_sanitize_payload_for_log(payload), ensure_ascii=False, indent=2)
    except (TypeError, ValueError):
        body_str = str(payload)
    total_len = len(body_str)
    logger.debug(
        "incoming request method=%s path=%s route=%s headers=%s body_size=%d",
        request.method,
        request.url.path,
        route,
        headers_safe,
        total_len,
    )
    if not settings.log_full_request_body:
        return
    if total_len > _DEBUG_REQUEST_BODY_MAX_CHARS:
        body_str = f"{body_str[:_DEBUG_REQUEST_BODY_MAX_CHARS]} [TRUNCATED]"
    logger.debug("incoming request body (%d chars):\n%s", total_len, body_str)


def _error_response(status_code: int, reason: str, detail: str, ctx: RequestContext) -> JSONResponse:
    detail_str = (detail or "").strip() or reason
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "message": detail_str,
                "type": "visiongate_error",
                "code": reason,
            },
            "detail": detail_str,
            "request_id": ctx.request_id,
        },
    )


def _upstream_runtime_reason(error_detail: str) -> str | None:
    if error_detail.startswith("upstream_unreachable"):
        return "upstream_unreachable"
    return None


async def _execute_once(endpoint: Endpoint, payload: dict[str, Any], request: Request) -> Response:
    route = f"{_API_PREFIX}/{endpoint.value}"
    _log_request_if_debug(request, payload, route)
    ctx = RequestContext(request_id=new_request_id(), route=route)
    try:
        plan = plan_request(endpoint, payload)
        ctx.model = plan.model
        outcome = await _build_pipeline().run(plan, ctx, dict(request.headers))
    except VisionGateError as exc:
        logger.warning(
            "request failed request_id=%s route=%s code=%s detail=%s",
            ctx.request_id,
            route,
            exc.code,
            exc,
        )
        return _error_response(exc.status_code, exc.code, str(exc), ctx)
    except RuntimeError as exc:
        reason = _upstream_runtime_reason(str(exc))
        if reason is None:
            raise
        logger.error("generation backend unreachable request_id=%s error=%s", ctx.request_id, exc)
        return _error_response(502, reason, str(exc), ctx)

    logger.info(
        "request completed request_id=%s route=%s steps=%s elapsed_ms=%s",
        ctx.request_id,
        route,
        ",".join(ctx.steps_done),
        ctx.elapsed_ms(),
    )
    return shape(outcome)


@router.post("/chat/completions")
async def chat_completions(payload: dict, request: Request):
    return await _execute_once(Endpoint.CHAT_COMPLETIONS, payload, request)


@router.get("/models")
async def models() -> dict:
    return list_models().model_dump()


@router.post("/vision/ocr")
async def vision_ocr(payload: dict, request: Request):
    return await _execute_once(Endpoint.VISION_OCR, payload, request)


@router.post("/vision/analyze")
async def vision_analyze(payload: dict, request: Request):
    return await _execute_once(Endpoint.VISION_ANALYZE, payload, request)
