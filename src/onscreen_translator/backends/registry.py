"""Registry for available OCR and translation backends."""

from typing import Callable

from .. import log
from ..config import Preferences
from .base import RecognitionProviderType, TextRecognizer, TranslationProviderType, Translator

logger = log.get_logger("registry")


class ProviderRegistry:
    """Enum-keyed registry of OCR and translation backends.

    Backends are registered as factories and instantiated on first lookup;
    the instance is then reused for the lifetime of the registry. The
    selected backend of each kind is resolved from the preferences.
    """

    def __init__(self, preferences: Preferences):
        self._preferences = preferences
        self._recognizer_factories: dict[RecognitionProviderType, Callable[[], TextRecognizer]] = {}
        self._translator_factories: dict[TranslationProviderType, Callable[[], Translator]] = {}
        self._recognizers: dict[RecognitionProviderType, TextRecognizer] = {}
        self._translators: dict[TranslationProviderType, Translator] = {}

    def register_recognizer(
        self, provider_type: RecognitionProviderType, factory: Callable[[], TextRecognizer]
    ) -> None:
        self._recognizer_factories[provider_type] = factory
        self._recognizers.pop(provider_type, None)

    def register_translator(
        self, provider_type: TranslationProviderType, factory: Callable[[], Translator]
    ) -> None:
        self._translator_factories[provider_type] = factory
        self._translators.pop(provider_type, None)

    @property
    def recognizer_types(self) -> list[RecognitionProviderType]:
        return list(self._recognizer_factories)

    @property
    def translator_types(self) -> list[TranslationProviderType]:
        """Registered translation providers, ordered by index."""
        return sorted(self._translator_factories, key=lambda t: t.index)

    def recognizer(self, provider_type: RecognitionProviderType) -> TextRecognizer:
        """Get the recognizer for ``provider_type``.

        Raises:
            KeyError: If no recognizer is registered for the type.
        """
        recognizer = self._recognizers.get(provider_type)
        if recognizer is None:
            logger.debug("creating recognizer", provider=provider_type.key)
            recognizer = self._recognizer_factories[provider_type]()
            self._recognizers[provider_type] = recognizer
        return recognizer

    def translator(self, provider_type: TranslationProviderType) -> Translator:
        """Get the translator for ``provider_type``.

        Raises:
            KeyError: If no translator is registered for the type.
        """
        translator = self._translators.get(provider_type)
        if translator is None:
            logger.debug("creating translator", provider=provider_type.key)
            translator = self._translator_factories[provider_type]()
            self._translators[provider_type] = translator
        return translator

    def selected_recognizer_type(self) -> RecognitionProviderType:
        provider_type = RecognitionProviderType.from_key(self._preferences.selected_ocr_provider)
        if provider_type not in self._recognizer_factories:
            return next(iter(self._recognizer_factories))
        return provider_type

    def selected_translator_type(self) -> TranslationProviderType:
        provider_type = TranslationProviderType.from_key(self._preferences.selected_translation_provider)
        if provider_type not in self._translator_factories:
            return self.translator_types[0]
        return provider_type

    def selected_recognizer(self) -> TextRecognizer:
        return self.recognizer(self.selected_recognizer_type())

    def selected_translator(self) -> Translator:
        return self.translator(self.selected_translator_type())

    def close(self) -> None:
        """Release resources held by the instantiated translators."""
        for translator in self._translators.values():
            translator.close()
        self._translators.clear()
        self._recognizers.clear()
