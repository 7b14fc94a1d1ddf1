"""OCR boundary, receipt service and HTTP surface."""

from .ocr import OcrProvider, OcrResult, OllamaOcrProvider, build_ocr_provider
from .service import ReceiptService

__all__ = [
    "OcrProvider",
    "OcrResult",
    "OllamaOcrProvider",
    "build_ocr_provider",
    "ReceiptService",
]
