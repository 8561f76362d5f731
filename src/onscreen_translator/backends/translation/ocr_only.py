"""Provider that skips translation entirely."""

from ... import messages
from ..base import OCROnlyPassthrough, TranslationProviderType, TranslationResult, Translator


class OCROnlyTranslator(Translator):
    provider_type = TranslationProviderType.OCR_ONLY

    @property
    def translation_hint(self) -> str | None:
        return messages.MSG_OCR_ONLY_MODE_HINT

    def is_language_supported(self) -> bool:
        return True

    async def _translate(self, text: str, source_lang_code: str) -> TranslationResult:
        return OCROnlyPassthrough()
