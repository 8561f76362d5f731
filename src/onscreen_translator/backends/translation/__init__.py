"""Translation backend implementations."""

from .browser import BrowserTranslator
from .ocr_only import OCROnlyTranslator
from .opus_mt import OpusMTTranslator

__all__ = [
    "OpusMTTranslator",
    "BrowserTranslator",
    "OCROnlyTranslator",
]
