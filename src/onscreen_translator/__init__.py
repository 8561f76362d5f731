"""Onscreen Translator - select a screen region, recognize and translate its text.

A session is driven by an explicit state machine that sequences screen
capture, OCR (EasyOCR or Tesseract) and translation (offline OPUS-MT, the
web browser, or OCR only).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
