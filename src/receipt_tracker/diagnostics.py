"""Optional observation of the most recent OCR and parse results.

Nothing here is required for parsing; a recorder is injected where
debugging output is wanted (CLI --debug, the /api/debug endpoints).
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

from .domain.models import ParsedReceipt

if TYPE_CHECKING:
    from .pipeline.ocr import OcrResult


class ParseObserver(Protocol):
    def record_parse(self, text: str, receipt: ParsedReceipt, elapsed_ms: float) -> None: ...

    def record_ocr(self, result: "OcrResult") -> None: ...


class LastParseRecorder:
    """Keeps the last OCR result and the last parsed receipt."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ocr: Optional["OcrResult"] = None
        self._text: Optional[str] = None
        self._receipt: Optional[ParsedReceipt] = None
        self._elapsed_ms: Optional[float] = None

    def record_parse(self, text: str, receipt: ParsedReceipt, elapsed_ms: float) -> None:
        with self._lock:
            self._text = text
            self._receipt = receipt
            self._elapsed_ms = elapsed_ms

    def record_ocr(self, result: "OcrResult") -> None:
        with self._lock:
            self._ocr = result

    @property
    def last_receipt(self) -> Optional[ParsedReceipt]:
        with self._lock:
            return self._receipt

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            ocr, text, receipt, elapsed = self._ocr, self._text, self._receipt, self._elapsed_ms
        return {
            "ocr": None if ocr is None else {
                "text": ocr.text,
                "block_count": ocr.block_count,
                "processing_time_ms": ocr.processing_time_ms,
            },
            "parse": None if receipt is None else {
                "text_length": len(text or ""),
                "elapsed_ms": elapsed,
                "receipt": receipt.to_dict(),
            },
        }

    def clear(self) -> None:
        with self._lock:
            self._ocr = self._text = self._receipt = self._elapsed_ms = None
