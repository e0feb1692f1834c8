"""OpenAI-compatible and vision transport models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_MODEL = "base"
# Closed set, listed in this order by /models. Not used to validate requests.
MODEL_IDS: tuple[str, ...] = ("base", "permissive", "vision-base", "vision-permissive")


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str
    content: Any


class ChatCompletionRequest(BaseModel):
    # Unknown OpenAI fields (top_p, stop, ...) are forwarded untouched.
    model_config = ConfigDict(extra="allow")

    messages: list[ChatMessage] = Field(min_length=1)
    model: str | None = None
    stream: bool | None = None
    max_tokens: int | None = None
    temperature: float | None = None


class VisionRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    image: str | None = None
    image_url: str | None = None
    prompt: str | None = None
    model: str | None = None
    stream: bool | None = None
    max_tokens: int | None = None
    temperature: float | None = None


class OCRResponse(BaseModel):
    id: str
    object: Literal["vision.ocr"] = "vision.ocr"
    created: int
    text: str


class VisionMessage(BaseModel):
    role: str = "assistant"
    content: str


class VisionChoice(BaseModel):
    index: int = 0
    message: VisionMessage
    finish_reason: str


class VisionResponse(BaseModel):
    id: str
    object: Literal["vision.analysis"] = "vision.analysis"
    created: int
    model: str
    extracted_text: str
    analysis: str | None = None
    choices: list[VisionChoice] | None = None


class ModelCard(BaseModel):
    id: str
    object: Literal["model"] = "model"
    created: int = 0
    owned_by: str = "visiongate"


class ModelsResponse(BaseModel):
    object: Literal["list"] = "list"
    data: list[ModelCard] = Field(default_factory=list)


def list_models() -> ModelsResponse:
    return ModelsResponse(data=[ModelCard(id=model_id) for model_id in MODEL_IDS])
