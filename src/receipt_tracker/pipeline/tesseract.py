"""Local OCR with Tesseract."""

from __future__ import annotations

import time

import pytesseract
from PIL import Image, UnidentifiedImageError
from pytesseract import Output

from ..logging import get_logger
from ..paths import expand_abs
from .ocr import OcrResult

LOG = get_logger("ocr-tesseract")

MAX_DIMENSION = 3000
# --psm 4: single column of variable-size text, which suits till rolls.
DEFAULT_CONFIG = "--oem 3 --psm 4"


def downscale(img: Image.Image, max_dimension: int = MAX_DIMENSION) -> Image.Image:
    """Shrink by an integer factor until neither side exceeds max_dimension."""
    w, h = img.size
    scale = max(1, -(-max(w, h) // max_dimension))
    if scale == 1:
        return img
    return img.resize((max(1, w // scale), max(1, h // scale)), Image.Resampling.LANCZOS)


class TesseractOcrProvider:
    def __init__(self, *, max_dimension: int = MAX_DIMENSION, lang: str = "eng", config: str = DEFAULT_CONFIG) -> None:
        self.max_dimension = max_dimension
        self.lang = lang
        self.config = config

    def recognize(self, image_path: str) -> OcrResult:
        started = time.perf_counter()
        path = expand_abs(image_path)
        try:
            with Image.open(path) as raw:
                img = downscale(raw.convert("RGB"), self.max_dimension)
            LOG.debug(f"Image size for OCR: {img.size[0]}x{img.size[1]}")
            text = pytesseract.image_to_string(img, lang=self.lang, config=self.config)
            data = pytesseract.image_to_data(img, lang=self.lang, config=self.config, output_type=Output.DICT)
        except (OSError, UnidentifiedImageError, pytesseract.TesseractError) as exc:
            LOG.error(f"Tesseract OCR failed for {path}: {exc}")
            return OcrResult.empty(int((time.perf_counter() - started) * 1000))

        blocks = {b for b, word in zip(data.get("block_num", []), data.get("text", [])) if str(word).strip()}
        elapsed = int((time.perf_counter() - started) * 1000)
        LOG.info(f"OCR complete: {len(text)} chars, {len(blocks)} blocks in {elapsed}ms")
        return OcrResult(text=text.strip(), block_count=len(blocks), processing_time_ms=elapsed)
