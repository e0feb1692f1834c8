"""Route-plan executor.

Steps run strictly in plan order inside the calling task; each await is a
cancellation point, so a dropped connection abandons the remaining steps.
Any error from image acquisition or text extraction propagates unchanged and
ends the request, there is no partial fallback.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, TypeVar, Union

from starlette.responses import Response

from visiongate.core.context import RequestContext
from visiongate.core.routing import Endpoint, ImageSource, RoutePlan, Step
from visiongate.observability.logging import log_event
from visiongate.util.logger import logger
from visiongate.vision.extractor import TextExtractor
from visiongate.vision.prompt import compose, to_upstream_payload


@dataclass(frozen=True, slots=True)
class OcrOnly:
    text: str


@dataclass(frozen=True, slots=True)
class WrappedVision:
    text: str
    model: str


@dataclass(frozen=True, slots=True)
class ProxiedGeneration:
    response: Response


T = TypeVar("T")

Outcome = Union[OcrOnly, WrappedVision, ProxiedGeneration]

AcquireFunc = Callable[[ImageSource], Awaitable[bytes]]
GenerateFunc = Callable[[dict[str, Any], Mapping[str, str]], Awaitable[Response]]


def _require(value: T | None, name: str) -> T:
    if value is None:
        raise RuntimeError(f"route plan is missing {name}")
    return value


class Pipeline:
    def __init__(self, *, acquire_image: AcquireFunc, extractor: TextExtractor, generate: GenerateFunc) -> None:
        self.acquire_image = acquire_image
        self.extractor = extractor
        self.generate = generate

    async def run(self, plan: RoutePlan, ctx: RequestContext, headers: Mapping[str, str]) -> Outcome:
        log_event(
            "pipeline_planned",
            request_id=ctx.request_id,
            endpoint=plan.endpoint.value,
            steps=[step.value for step in plan.steps],
            model=plan.model,
        )
        image_bytes = b""
        text = ""
        chat_payload = plan.chat_payload

        for step in plan.steps:
            if step is Step.ACQUIRE_IMAGE:
                image_bytes = await self.acquire_image(_require(plan.image_source, "image_source"))
                logger.debug("image acquired request_id=%s bytes=%d", ctx.request_id, len(image_bytes))
            elif step is Step.EXTRACT_TEXT:
                text = await self.extractor.extract(image_bytes)
                ctx.extracted_chars = len(text)
            elif step is Step.COMPOSE_PROMPT:
                chat = compose(text, _require(plan.instruction, "instruction"), _require(plan.vision_request, "vision_request"))
                chat_payload = to_upstream_payload(chat)
            elif step is Step.GENERATE:
                response = await self.generate(_require(chat_payload, "chat_payload"), headers)
                ctx.mark(step.value)
                self._completed(ctx, plan)
                return ProxiedGeneration(response=response)
            ctx.mark(step.value)

        self._completed(ctx, plan)
        if plan.endpoint is Endpoint.VISION_OCR:
            return OcrOnly(text=text)
        return WrappedVision(text=text, model=plan.model)

    @staticmethod
    def _completed(ctx: RequestContext, plan: RoutePlan) -> None:
        log_event(
            "pipeline_completed",
            request_id=ctx.request_id,
            endpoint=plan.endpoint.value,
            steps=ctx.steps_done,
            extracted_chars=ctx.extracted_chars,
            elapsed_ms=ctx.elapsed_ms(),
        )
