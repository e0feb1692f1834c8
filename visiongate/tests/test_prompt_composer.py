from visiongate.core.models import VisionRequest
from visiongate.vision.prompt import (
    OCR_PREAMBLE,
    OCR_TEXT_DELIMITER,
    build_combined_prompt,
    compose,
    to_upstream_payload,
)


def test_compose_builds_single_user_message():
    request = VisionRequest(image="aGVsbG8=", prompt="Summarize", model="vision-permissive", stream=True, max_tokens=256, temperature=0.2)
    chat = compose("Line one\nLine two", "Summarize", request)

    assert len(chat.messages) == 1
    message = chat.messages[0]
    assert message.role == "user"
    assert message.content.startswith(OCR_PREAMBLE)
    assert f"{OCR_TEXT_DELIMITER}\nLine one\nLine two\n{OCR_TEXT_DELIMITER}" in message.content
    assert message.content.endswith("Summarize")


def test_compose_passes_generation_settings_through():
    request = VisionRequest(image_url="https://example.com/a.png", model="permissive", stream=False, max_tokens=64, temperature=0.0)
    chat = compose("text", "Translate to French", request)

    assert chat.model == "permissive"
    assert chat.stream is False
    assert chat.max_tokens == 64
    assert chat.temperature == 0.0


def test_compose_does_not_invent_defaults():
    chat = compose("text", "Explain", VisionRequest(image="aGVsbG8="))
    payload = to_upstream_payload(chat)

    assert set(payload) == {"messages"}
    assert payload["messages"] == [{"role": "user", "content": build_combined_prompt("text", "Explain")}]


def test_extracted_text_and_instruction_are_verbatim():
    extracted = "  spaced ---  \n\tTabbed"
    instruction = "  keep   my spacing  "
    prompt = build_combined_prompt(extracted, instruction)

    assert f"\n{OCR_TEXT_DELIMITER}\n{extracted}\n{OCR_TEXT_DELIMITER}\n" in prompt
    assert prompt.endswith(instruction)


def test_empty_extracted_text_keeps_delimiters():
    prompt = build_combined_prompt("", "Describe")
    assert f"{OCR_TEXT_DELIMITER}\n\n{OCR_TEXT_DELIMITER}" in prompt
