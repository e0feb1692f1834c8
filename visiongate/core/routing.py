"""Request routing: decide which backend calls satisfy one inbound request.

The router never performs a call itself. It validates the request shape and
returns a ``RoutePlan`` listing the steps, in order, that
``visiongate.core.pipeline`` will execute:

=================  ==============  ===============================================
endpoint           instruction     steps
=================  ==============  ===============================================
chat/completions   n/a             generate
vision/ocr         ignored         acquire_image, extract_text
vision/analyze     absent / ""     acquire_image, extract_text
vision/analyze     non-empty       acquire_image, extract_text, compose_prompt,
                                   generate
=================  ==============  ===============================================

Image-source validation happens here, before any backend is touched. The
model identifier is not checked against ``MODEL_IDS``: an unknown id does
not invalidate an OCR-only request and the generation backend owns that
decision otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from visiongate.core.errors import InvalidRequestError
from visiongate.core.models import DEFAULT_MODEL, ChatCompletionRequest, VisionRequest


IMAGE_SOURCE_REQUIRED = "Exactly one of 'image' (base64) or 'image_url' must be provided"


class Endpoint(str, Enum):
    CHAT_COMPLETIONS = "chat/completions"
    VISION_OCR = "vision/ocr"
    VISION_ANALYZE = "vision/analyze"


class Step(str, Enum):
    ACQUIRE_IMAGE = "acquire_image"
    EXTRACT_TEXT = "extract_text"
    COMPOSE_PROMPT = "compose_prompt"
    GENERATE = "generate"


class ImageSourceKind(str, Enum):
    INLINE = "inline"
    URL = "url"


@dataclass(frozen=True, slots=True)
class ImageSource:
    kind: ImageSourceKind
    value: str


@dataclass(frozen=True, slots=True)
class RoutePlan:
    endpoint: Endpoint
    steps: tuple[Step, ...]
    model: str
    image_source: ImageSource | None = None
    instruction: str | None = None
    vision_request: VisionRequest | None = None
    chat_payload: dict[str, Any] | None = None


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for item in exc.errors():
        location = ".".join(str(loc) for loc in item.get("loc", ())) or "body"
        parts.append(f"{location}: {item.get('msg', 'invalid')}")
    return "; ".join(parts) or "invalid request body"


def parse_chat_request(payload: dict[str, Any]) -> ChatCompletionRequest:
    try:
        return ChatCompletionRequest.model_validate(payload)
    except ValidationError as exc:
        raise InvalidRequestError(_format_validation_error(exc)) from exc


def parse_vision_request(payload: dict[str, Any]) -> VisionRequest:
    try:
        return VisionRequest.model_validate(payload)
    except ValidationError as exc:
        raise InvalidRequestError(_format_validation_error(exc)) from exc


def resolve_image_source(request: VisionRequest) -> ImageSource:
    has_inline = request.image is not None
    has_url = request.image_url is not None
    if has_inline == has_url:
        raise InvalidRequestError(IMAGE_SOURCE_REQUIRED)
    if has_inline:
        return ImageSource(kind=ImageSourceKind.INLINE, value=request.image or "")
    return ImageSource(kind=ImageSourceKind.URL, value=request.image_url or "")


def normalize_instruction(raw: str | None) -> str | None:
    # "" and absent are the same request
    if raw is None or raw == "":
        return None
    return raw


def plan_request(endpoint: Endpoint, payload: dict[str, Any]) -> RoutePlan:
    if endpoint is Endpoint.CHAT_COMPLETIONS:
        chat = parse_chat_request(payload)
        return RoutePlan(
            endpoint=endpoint,
            steps=(Step.GENERATE,),
            model=chat.model or DEFAULT_MODEL,
            chat_payload=payload,
        )

    vision = parse_vision_request(payload)
    source = resolve_image_source(vision)
    model = vision.model or DEFAULT_MODEL

    if endpoint is Endpoint.VISION_OCR:
        return RoutePlan(
            endpoint=endpoint,
            steps=(Step.ACQUIRE_IMAGE, Step.EXTRACT_TEXT),
            model=model,
            image_source=source,
            vision_request=vision,
        )

    instruction = normalize_instruction(vision.prompt)
    if instruction is None:
        steps: tuple[Step, ...] = (Step.ACQUIRE_IMAGE, Step.EXTRACT_TEXT)
    else:
        steps = (Step.ACQUIRE_IMAGE, Step.EXTRACT_TEXT, Step.COMPOSE_PROMPT, Step.GENERATE)
    return RoutePlan(
        endpoint=endpoint,
        steps=steps,
        model=model,
        image_source=source,
        instruction=instruction,
        vision_request=vision,
    )
