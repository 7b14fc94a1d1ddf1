class ReceiptTrackerError(Exception):
    pass


class SettingsError(ReceiptTrackerError):
    pass


class OcrError(ReceiptTrackerError):
    pass


class EmptyOcrResult(OcrError):
    """OCR finished but recognized no text."""
