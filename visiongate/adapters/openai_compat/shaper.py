"""Pipeline outcome -> protocol response."""

from __future__ import annotations

import time
import uuid

from fastapi.responses import JSONResponse
from starlette.responses import Response

from visiongate.core.models import OCRResponse, VisionChoice, VisionMessage, VisionResponse
from visiongate.core.pipeline import OcrOnly, Outcome, ProxiedGeneration, WrappedVision


def _now() -> int:
    return int(time.time())


def build_ocr_response(text: str) -> OCRResponse:
    return OCRResponse(id=f"ocr-{uuid.uuid4()}", created=_now(), text=text)


def build_vision_response(text: str, model: str) -> VisionResponse:
    return VisionResponse(
        id=f"vision-{uuid.uuid4()}",
        created=_now(),
        model=model,
        extracted_text=text,
        choices=[VisionChoice(message=VisionMessage(content=text), finish_reason="stop")],
    )


def shape(outcome: Outcome) -> Response:
    if isinstance(outcome, OcrOnly):
        return JSONResponse(content=build_ocr_response(outcome.text).model_dump(exclude_none=True))
    if isinstance(outcome, WrappedVision):
        body = build_vision_response(outcome.text, outcome.model)
        return JSONResponse(content=body.model_dump(exclude_none=True))
    if isinstance(outcome, ProxiedGeneration):
        # generation backend owns the chat-completion shape
        return outcome.response
    raise TypeError(f"unsupported pipeline outcome: {type(outcome).__name__}")
