"""OCR backend implementations."""

from .easyocr import EasyOCRRecognizer
from .tesseract import TesseractRecognizer

__all__ = [
    "EasyOCRRecognizer",
    "TesseractRecognizer",
]
