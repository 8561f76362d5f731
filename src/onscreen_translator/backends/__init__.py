"""Pluggable backends for OCR and translation."""

from .base import (
    RecognitionLanguage,
    RecognitionProviderType,
    RecognitionResult,
    TextRecognizer,
    TranslationLanguage,
    TranslationProvider,
    TranslationProviderType,
    TranslationResult,
    Translator,
)
from .model_manager import ModelManager, ModelStatus
from .registry import ProviderRegistry

__all__ = [
    "RecognitionLanguage",
    "RecognitionProviderType",
    "RecognitionResult",
    "TextRecognizer",
    "TranslationLanguage",
    "TranslationProvider",
    "TranslationProviderType",
    "TranslationResult",
    "Translator",
    "ProviderRegistry",
    "ModelManager",
    "ModelStatus",
]
