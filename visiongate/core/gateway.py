"""FastAPI app entry."""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from visiongate.adapters.openai_compat.router import router as openai_router
from visiongate.adapters.openai_compat.upstream import close_upstream_async_client
from visiongate.config.settings import settings
from visiongate.util.logger import logger
from visiongate.vision.acquire import close_fetch_client
from visiongate.vision.ocr_engine import shutdown_default_engine

app = FastAPI(title=settings.app_name)
app.include_router(openai_router, prefix="/api/v1")


def _blocked_response(status_code: int, reason: str, detail: str | None = None) -> JSONResponse:
    detail_text = (detail or reason).strip() or reason
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "message": detail_text,
                "type": "visiongate_error",
                "code": reason,
            },
            "detail": detail_text,
        },
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("request body rejected path=%s errors=%s", request.url.path, exc.errors())
    return _blocked_response(status_code=400, reason="invalid_request", detail="request body must be a JSON object")


@app.middleware("http")
async def request_boundary_middleware(request: Request, call_next):
    if request.url.path == "/health":
        return await call_next(request)

    max_bytes = settings.max_request_body_bytes
    content_length_header = request.headers.get("content-length", "").strip()
    if max_bytes > 0 and request.method.upper() in {"POST", "PUT", "PATCH"}:
        if content_length_header:
            try:
                content_length = int(content_length_header)
            except ValueError:
                logger.warning("boundary reject invalid content-length path=%s", request.url.path)
                return _blocked_response(status_code=400, reason="invalid_content_length")
            if content_length > max_bytes:
                logger.warning(
                    "boundary reject oversize request content_length=%s max=%s path=%s",
                    content_length,
                    max_bytes,
                    request.url.path,
                )
                return _blocked_response(status_code=413, reason="request_body_too_large")
        else:
            cached_body = await request.body()
            if len(cached_body) > max_bytes:
                logger.warning(
                    "boundary reject oversize request actual_size=%s max=%s path=%s",
                    len(cached_body),
                    max_bytes,
                    request.url.path,
                )
                return _blocked_response(status_code=413, reason="request_body_too_large")

    try:
        response = await call_next(request)
    except Exception as exc:  # pragma: no cover - fail-safe
        logger.exception("gateway unhandled exception path=%s", request.url.path)
        return _blocked_response(
            status_code=500,
            reason="gateway_internal_error",
            detail=f"gateway internal error: {exc}",
        )
    logger.debug("boundary pass method=%s path=%s status=%s", request.method, request.url.path, response.status_code)
    return response


@app.get("/health")
def health() -> dict:
    logger.info("health check")
    return {"status": "ok"}


@app.on_event("shutdown")
async def shutdown_cleanup() -> None:
    await close_upstream_async_client()
    await close_fetch_client()
    shutdown_default_engine()


if __name__ == "__main__":
    uvicorn.run("visiongate.core.gateway:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
