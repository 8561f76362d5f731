"""Language catalog: provider languages combined with the persisted selection."""

from . import log, messages
from .backends.base import (
    ModelDownloader,
    RecognitionLanguage,
    RecognitionProviderType,
    TranslationLanguage,
    TranslationProvider,
    TranslationProviderType,
)
from .backends.registry import ProviderRegistry
from .config import DEFAULT_OCR_LANG, Preferences

logger = log.get_logger("catalog")


class LanguageCatalog:
    """Lists and selects OCR and translation languages.

    The OCR language list is cached until ``invalidate`` is called, which
    happens on provider change, download completion and settings change.
    """

    def __init__(self, registry: ProviderRegistry, preferences: Preferences):
        self._registry = registry
        self._preferences = preferences
        self._ocr_languages: list[RecognitionLanguage] | None = None

    def invalidate(self) -> None:
        self._ocr_languages = None

    def ocr_languages(self) -> list[RecognitionLanguage]:
        """Languages of the selected OCR provider, the persisted one marked selected."""
        if self._ocr_languages is None:
            recognizer = self._registry.selected_recognizer()
            selected = self._preferences.selected_ocr_lang
            self._ocr_languages = [
                RecognitionLanguage(
                    code=lang.code,
                    display_name=lang.display_name,
                    selected=lang.code == selected,
                    downloaded=lang.downloaded,
                    provider=lang.provider,
                    inner_code=lang.inner_code,
                )
                for lang in recognizer.supported_languages()
            ]
        return self._ocr_languages

    def selected_ocr_language(self) -> RecognitionLanguage | None:
        """The selected OCR language, falling back to the default one."""
        languages = self.ocr_languages()
        for candidates in (
            [lang for lang in languages if lang.selected],
            [lang for lang in languages if lang.code == DEFAULT_OCR_LANG],
            languages,
        ):
            if candidates:
                return candidates[0]
        return None

    def select_ocr_language(self, code: str, provider_type: RecognitionProviderType) -> None:
        logger.info("ocr language selected", provider=provider_type.key, lang=code)
        self._preferences.selected_ocr_provider = provider_type.key
        self._preferences.selected_ocr_lang = code
        self.invalidate()

    async def download_ocr_model(self, language: RecognitionLanguage) -> bool:
        """Download the model for ``language`` if its provider needs one.

        Raises:
            ModelDownloadError: If the download fails or is cancelled.
        """
        recognizer = self._registry.recognizer(language.provider)
        if not isinstance(recognizer, ModelDownloader):
            return True
        try:
            return await recognizer.download_model(language.inner_code)
        finally:
            self.invalidate()

    def cancel_download(self) -> None:
        for provider_type in self._registry.recognizer_types:
            recognizer = self._registry.recognizer(provider_type)
            if isinstance(recognizer, ModelDownloader):
                recognizer.cancel_download()

    def translation_providers(self) -> list[TranslationProvider]:
        selected = self._registry.selected_translator_type()
        return [
            TranslationProvider.from_type(provider_type, selected=provider_type == selected)
            for provider_type in self._registry.translator_types
        ]

    def selected_translation_provider(self) -> TranslationProvider:
        return TranslationProvider.from_type(self._registry.selected_translator_type(), selected=True)

    def select_translation_provider(self, key: str) -> None:
        provider_type = TranslationProviderType.from_key(key)
        logger.info("translation provider selected", provider=provider_type.key)
        self._preferences.selected_translation_provider = provider_type.key

    def translation_languages(self, key: str) -> list[TranslationLanguage]:
        return self._registry.translator(TranslationProviderType.from_key(key)).supported_languages()

    def select_translation_language(self, code: str) -> None:
        logger.info("translation language selected", lang=code)
        self._preferences.selected_translation_lang = code

    def translation_hint(self, key: str) -> str | None:
        return self._registry.translator(TranslationProviderType.from_key(key)).translation_hint

    def translation_panel(self, key: str) -> tuple[list[TranslationLanguage], str | None]:
        """Languages and hint to show for provider ``key``.

        When the provider cannot translate the selected OCR language the list
        is empty and the hint says so.
        """
        translator = self._registry.translator(TranslationProviderType.from_key(key))
        if not translator.is_language_supported():
            return [], messages.MSG_PROVIDER_DOES_NOT_SUPPORT_OCR_LANG
        return translator.supported_languages(), translator.translation_hint

    def language_label(self) -> str:
        """Main bar label, e.g. ``ja>en``."""
        recognizer = self._registry.selected_recognizer()
        ocr = recognizer.display_lang_code(self._preferences.selected_ocr_lang)
        provider_type = self._registry.selected_translator_type()
        if provider_type == TranslationProviderType.BROWSER:
            return f"{ocr}>"
        if provider_type == TranslationProviderType.OCR_ONLY:
            return f" {ocr} "
        return f"{ocr}>{self._preferences.selected_translation_lang}"
