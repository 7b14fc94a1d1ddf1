"""
Receipt tracker – turns OCR text from photographed receipts into typed records.

The core lives in ``receipt_tracker.domain`` (parser, categorizer, price and
date normalization). OCR providers, the HTTP API and the CLI sit on top.
"""

from .domain.categorizer import BUILT_IN_RULES, Categorizer
from .domain.models import KeywordRule, ParsedLineItem, ParsedReceipt
from .domain.parser import ReceiptParser

__all__ = [
    "BUILT_IN_RULES",
    "Categorizer",
    "KeywordRule",
    "ParsedLineItem",
    "ParsedReceipt",
    "ReceiptParser",
]
