"""OCR provider boundary: image path in, plain text out."""

from __future__ import annotations

import base64
import json
import os
import time
from dataclasses import dataclass
from typing import Optional, Protocol

import requests

from ..logging import get_logger
from ..paths import expand_abs

LOG = get_logger("ocr")


DEFAULT_INSTRUCTION = (
    "Transcribe this receipt EXACTLY (spacing, order). Output plain text only, "
    "one receipt line per line. When finished, print <eot> on a new line."
)


@dataclass(frozen=True)
class OcrResult:
    text: str
    block_count: int
    processing_time_ms: int

    @classmethod
    def empty(cls, processing_time_ms: int = 0) -> "OcrResult":
        return cls(text="", block_count=0, processing_time_ms=processing_time_ms)


class OcrProvider(Protocol):
    def recognize(self, image_path: str) -> OcrResult: ...


def _read_file_bytes_with_retries(path: str, *, attempts: int = 3, sleep_seconds: float = 0.5) -> Optional[bytes]:
    """Read file contents, retrying briefly while a scanner may still be writing it."""
    p = expand_abs(path)
    last_exc: Optional[Exception] = None
    for i in range(attempts):
        try:
            with open(p, "rb") as f:
                return f.read()
        except FileNotFoundError:
            LOG.error(f"Image not found: {p}")
            return None
        except OSError as exc:
            last_exc = exc
            LOG.warning(f"Read attempt {i+1}/{attempts} failed for {p}: {exc}")
            time.sleep(sleep_seconds)
    LOG.error(f"Failed to read file after {attempts} attempts: {p} ({last_exc})")
    return None


def count_blocks(text: str) -> int:
    """Count paragraphs separated by blank lines."""
    blocks = 0
    in_block = False
    for line in text.splitlines():
        if line.strip():
            if not in_block:
                blocks += 1
            in_block = True
        else:
            in_block = False
    return blocks


class OllamaOcrProvider:
    """Transcribe receipt images with a vision model served by Ollama.

    Streams from the /api/chat endpoint and concatenates the content deltas.
    Failures are logged and reported as an empty result.
    """

    def __init__(self, url: str, model: str, *, timeout: int = 300, instruction: str = DEFAULT_INSTRUCTION) -> None:
        self.url = url if url.endswith("/api/chat") else url.rstrip("/") + "/api/chat"
        self.model = model
        self.timeout = timeout
        self.instruction = instruction

    def _payload(self, img_b64: str) -> dict:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": self.instruction, "images": [img_b64]}],
            "stream": True,
            "options": {"temperature": 0, "stop": ["<eot>"]},
        }

    def recognize(self, image_path: str) -> OcrResult:
        started = time.perf_counter()
        LOG.info(f"Transcribing {os.path.basename(image_path)} via Ollama ({self.model})")
        data = _read_file_bytes_with_retries(image_path)
        if data is None:
            return OcrResult.empty()

        try:
            response = requests.post(
                self.url,
                json=self._payload(base64.b64encode(data).decode("utf-8")),
                timeout=self.timeout,
                stream=True,
            )
            response.raise_for_status()
            text = self._collect(response)
        except requests.RequestException as exc:
            LOG.error(f"Ollama transcription failed: {exc}")
            text = None

        elapsed = int((time.perf_counter() - started) * 1000)
        if not text:
            return OcrResult.empty(elapsed)
        LOG.info(f"Received transcript with {len(text)} characters in {elapsed}ms")
        return OcrResult(text=text, block_count=count_blocks(text), processing_time_ms=elapsed)

    def _collect(self, response: requests.Response) -> Optional[str]:
        chunks: list[str] = []
        for raw_line in response.iter_lines(decode_unicode=False):
            if not raw_line:
                continue
            if isinstance(raw_line, bytes):
                line = raw_line.decode(response.encoding or "utf-8", errors="ignore")
            else:
                line = str(raw_line)
            line = line.strip()
            if line.startswith("data:"):
                line = line[5:].strip()
            try:
                obj = json.loads(line)
            except ValueError:
                chunks.append(line)
                continue

            if obj.get("error"):
                LOG.error(f"Ollama error: {obj['error']}")
                return None
            if obj.get("done") is True:
                break

            msg = obj.get("message") or {}
            delta = msg.get("content") if isinstance(msg, dict) else ""
            if not delta:
                # /api/generate-style events
                delta = obj.get("response") or ""
            if delta:
                chunks.append(delta)

        text = "".join(chunks).strip()
        if "<eot>" in text:
            text = text.split("<eot>", 1)[0].strip()
        if not text:
            LOG.error("Ollama returned empty content")
            return None
        return text


def build_ocr_provider(dotenv_dir: str, backend: Optional[str] = None) -> OcrProvider:
    """Return the OCR provider selected by argument or RECEIPT_OCR_BACKEND."""
    from ..config import load_ocr_backend, load_ollama

    choice = backend or load_ocr_backend(dotenv_dir)
    if choice == "tesseract":
        from .tesseract import TesseractOcrProvider

        return TesseractOcrProvider()
    url, model = load_ollama(dotenv_dir)
    return OllamaOcrProvider(url, model)
