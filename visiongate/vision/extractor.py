"""Text extraction: image bytes -> recognized text."""

from __future__ import annotations

import asyncio
import io

from PIL import Image

from visiongate.config.settings import settings
from visiongate.core.errors import InvalidImageDataError, OcrFailedError
from visiongate.util.logger import logger
from visiongate.vision.ocr_engine import OcrEngine, TextRegion, get_default_engine
from visiongate.vision.single_shot import SingleShot


def decode_image(image_bytes: bytes) -> Image.Image:
    try:
        with Image.open(io.BytesIO(image_bytes)) as opened:
            opened.load()
            image = opened.copy()
    except Exception as exc:  # Pillow raises assorted types (OSError, SyntaxError, struct.error) on corrupt input
        raise InvalidImageDataError(f"image could not be decoded: {exc}") from exc
    if image.mode in ("RGBA", "LA", "P"):
        image = image.convert("RGB")
    return image


def join_regions(regions: list[TextRegion]) -> str:
    lines = []
    for region in regions:
        top = region.top_candidate()
        if top:
            lines.append(top)
    return "\n".join(lines)


class TextExtractor:
    def __init__(self, engine: OcrEngine | None = None, timeout_seconds: float | None = None) -> None:
        self._engine = engine
        self._timeout_seconds = timeout_seconds

    @property
    def engine(self) -> OcrEngine:
        return self._engine or get_default_engine()

    @property
    def timeout_seconds(self) -> float | None:
        timeout = self._timeout_seconds if self._timeout_seconds is not None else settings.ocr_timeout_seconds
        return timeout if timeout > 0 else None

    async def _recognize(self, image: Image.Image) -> list[TextRegion]:
        shot: SingleShot[list[TextRegion]] = SingleShot()

        def on_complete(regions: list[TextRegion] | None, error: BaseException | None) -> None:
            if error is not None:
                shot.reject(OcrFailedError(str(error) or error.__class__.__name__))
            else:
                shot.resolve(list(regions or []))

        try:
            self.engine.recognize(image, on_complete)
        except Exception as exc:
            if shot.settled:
                raise
            raise OcrFailedError(str(exc) or exc.__class__.__name__) from exc

        timeout = self.timeout_seconds
        try:
            return await asyncio.wait_for(shot.wait(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            # a callback arriving after this point is dropped by the single shot
            logger.warning("ocr engine did not answer timeout_s=%s engine=%s", timeout, self.engine.name)
            raise OcrFailedError(f"ocr engine did not answer within {timeout} seconds") from exc

    async def extract(self, image_bytes: bytes) -> str:
        image = decode_image(image_bytes)
        regions = await self._recognize(image)
        text = join_regions(regions)
        logger.debug("text extracted regions=%d chars=%d", len(regions), len(text))
        return text
