"""Build the generation request for OCR-then-analyze."""

from __future__ import annotations

from typing import Any

from visiongate.core.models import ChatCompletionRequest, ChatMessage, VisionRequest


OCR_TEXT_DELIMITER = "---"
OCR_PREAMBLE = "The following text was extracted from an image using OCR:"
INSTRUCTION_LABEL = "User request:"


def build_combined_prompt(extracted_text: str, instruction: str) -> str:
    return (
        f"{OCR_PREAMBLE}\n"
        "\n"
        f"{OCR_TEXT_DELIMITER}\n"
        f"{extracted_text}\n"
        f"{OCR_TEXT_DELIMITER}\n"
        "\n"
        f"{INSTRUCTION_LABEL} {instruction}"
    )


def compose(extracted_text: str, instruction: str, request: VisionRequest) -> ChatCompletionRequest:
    """One user message; model/stream/max_tokens/temperature copied as given."""
    return ChatCompletionRequest(
        messages=[ChatMessage(role="user", content=build_combined_prompt(extracted_text, instruction))],
        model=request.model,
        stream=request.stream,
        max_tokens=request.max_tokens,
        temperature=request.temperature,
    )


def to_upstream_payload(chat: ChatCompletionRequest) -> dict[str, Any]:
    return chat.model_dump(exclude_none=True)
