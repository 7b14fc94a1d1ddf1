from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..diagnostics import ParseObserver
from ..domain.categorizer import Categorizer
from ..domain.models import ParsedReceipt
from ..domain.parser import ReceiptParser
from ..domain.review import ReviewDraft, build_review_draft
from ..errors import EmptyOcrResult
from ..logging import get_logger
from ..settings import DEFAULT_CURRENCY, SettingsStore
from .ocr import OcrProvider


LOG = get_logger("service")


class ReceiptService:
    """Coordinates OCR, parsing and the optional diagnostics recorder."""

    def __init__(
        self,
        store: Optional[SettingsStore] = None,
        *,
        ocr: Optional[OcrProvider] = None,
        observer: Optional[ParseObserver] = None,
    ) -> None:
        self.store = store
        self.ocr = ocr
        self.observer = observer
        self.categorizer = Categorizer(store)
        self.parser = ReceiptParser(self.categorizer, observer=observer)

    def parse_text(self, text: str) -> ParsedReceipt:
        return self.parser.parse(text)

    def categorize(self, item_name: str) -> str:
        return self.categorizer.categorize(item_name)

    def currency(self) -> str:
        return self.store.currency() if self.store is not None else DEFAULT_CURRENCY

    def review_draft(self, receipt: ParsedReceipt, *, now: Optional[datetime] = None) -> ReviewDraft:
        """Fill the gaps of a parsed receipt for review, in the configured currency."""
        return build_review_draft(receipt, currency=self.currency(), now=now)

    def process_image(self, image_path: str) -> ParsedReceipt:
        """OCR the image then parse it.

        Raises EmptyOcrResult when OCR yields no text; the parser itself
        never fails.
        """
        if self.ocr is None:
            raise ValueError("No OCR provider configured")
        LOG.info(f"Starting OCR for {image_path}")
        result = self.ocr.recognize(image_path)
        if self.observer is not None:
            self.observer.record_ocr(result)
        if not result.text.strip():
            raise EmptyOcrResult("No text found in image")
        LOG.debug("Parsing OCR result")
        receipt = self.parser.parse(result.text)
        LOG.info(f"Parsed {len(receipt.items)} item(s) from {image_path}")
        return receipt
