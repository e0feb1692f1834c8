"""Callback-style OCR engines."""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable

import pytesseract
from PIL import Image

from visiongate.config.settings import settings
from visiongate.util.logger import logger


# LSTM engine, automatic page segmentation, dictionary correction on.
ACCURATE_TESSERACT_CONFIG = "--oem 1 --psm 3 -c load_system_dawg=1 -c load_freq_dawg=1"


@dataclass(frozen=True, slots=True)
class TextRegion:
    candidates: tuple[str, ...] = field(default_factory=tuple)

    def top_candidate(self) -> str | None:
        return self.candidates[0] if self.candidates else None


RecognizeCallback = Callable[[list[TextRegion] | None, BaseException | None], None]


class OcrEngine:
    """Engines call ``callback(regions, None)`` or ``callback(None, error)`` once, from any thread."""

    name = "base"

    def recognize(self, image: Image.Image, callback: RecognizeCallback) -> None:
        raise NotImplementedError

    def shutdown(self) -> None:
        return None


def regions_from_tesseract_data(data: dict[str, list[Any]]) -> list[TextRegion]:
    """Group tesseract word boxes into lines, in the order tesseract reports them."""
    lines: dict[tuple[int, int, int, int], list[str]] = {}
    texts = data.get("text") or []
    for index, raw_text in enumerate(texts):
        word = str(raw_text or "").strip()
        if not word:
            continue
        key = (
            int(data["page_num"][index]),
            int(data["block_num"][index]),
            int(data["par_num"][index]),
            int(data["line_num"][index]),
        )
        lines.setdefault(key, []).append(word)
    return [TextRegion(candidates=(" ".join(words),)) for words in lines.values()]


class TesseractEngine(OcrEngine):
    name = "tesseract"

    def __init__(
        self,
        *,
        languages: str | None = None,
        max_workers: int | None = None,
        tesseract_cmd: str | None = None,
    ) -> None:
        self.languages = (languages or settings.ocr_languages).strip() or "eng"
        workers = max(1, int(max_workers or settings.ocr_max_workers))
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="visiongate-ocr")
        cmd = (tesseract_cmd if tesseract_cmd is not None else settings.tesseract_cmd).strip()
        if cmd:
            pytesseract.pytesseract.tesseract_cmd = cmd

    def _run(self, image: Image.Image, callback: RecognizeCallback) -> None:
        try:
            data = pytesseract.image_to_data(
                image,
                lang=self.languages,
                config=ACCURATE_TESSERACT_CONFIG,
                output_type=pytesseract.Output.DICT,
            )
            regions = regions_from_tesseract_data(data)
        except Exception as exc:  # reported to the awaiting request through the callback
            logger.warning("tesseract recognition failed lang=%s error=%s", self.languages, exc)
            callback(None, exc)
            return
        callback(regions, None)

    def recognize(self, image: Image.Image, callback: RecognizeCallback) -> None:
        delivered = threading.Event()

        def deliver(regions: list[TextRegion] | None, error: BaseException | None) -> None:
            delivered.set()
            callback(regions, error)

        future = self._executor.submit(self._run, image, deliver)
        future.add_done_callback(lambda done: self._on_job_done(done, delivered, callback))

    def _on_job_done(self, future: Future, delivered: threading.Event, callback: RecognizeCallback) -> None:
        # a job cancelled by shutdown, or one that died before delivering, must still settle its caller
        if future.cancelled():
            if not delivered.is_set():
                callback(None, RuntimeError("ocr job cancelled before it ran"))
            return
        exc = future.exception()
        if exc is None:
            return
        if delivered.is_set():
            logger.error("ocr result callback raised lang=%s error=%r", self.languages, exc)
            return
        callback(None, exc)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


_default_engine: OcrEngine | None = None
_default_engine_lock = threading.Lock()


def get_default_engine() -> OcrEngine:
    global _default_engine
    if _default_engine is not None:
        return _default_engine
    with _default_engine_lock:
        if _default_engine is None:
            _default_engine = TesseractEngine()
            logger.info("ocr engine initialized name=%s", _default_engine.name)
    return _default_engine


def shutdown_default_engine() -> None:
    global _default_engine
    with _default_engine_lock:
        if _default_engine is not None:
            _default_engine.shutdown()
            _default_engine = None
