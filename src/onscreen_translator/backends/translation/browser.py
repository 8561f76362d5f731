"""Hands recognized text to Google Translate in the system web browser."""

import asyncio
import webbrowser
from urllib.parse import urlencode

from ... import log, messages
from ...config import Preferences
from ...interfaces import OverlaySurface
from ..base import (
    OuterAppLaunched,
    TranslationFailed,
    TranslationProviderType,
    TranslationResult,
    Translator,
)

logger = log.get_logger("browser")

TRANSLATE_URL = "https://translate.google.com/"


def translate_url(text: str, target_lang_code: str) -> str:
    query = urlencode({"sl": "auto", "tl": target_lang_code, "text": text, "op": "translate"})
    return f"{TRANSLATE_URL}?{query}"


class BrowserTranslator(Translator):
    """Opens the translation page instead of translating in-process.

    The target language is chosen in the browser, so no language list is
    offered and every OCR language is accepted.
    """

    provider_type = TranslationProviderType.BROWSER

    def __init__(self, preferences: Preferences, surface: OverlaySurface):
        super().__init__(preferences)
        self._surface = surface

    @property
    def translation_hint(self) -> str | None:
        return messages.MSG_BROWSER_TRANSLATION_HINT

    def is_language_supported(self) -> bool:
        return True

    async def check_environment(self) -> bool:
        try:
            webbrowser.get()
        except webbrowser.Error:
            logger.warning("no web browser available")
            self._surface.show_message(messages.TITLE_FAILED_TO_CHECK_RESOURCES, messages.MSG_NO_BROWSER_AVAILABLE)
            return False
        return True

    async def _translate(self, text: str, source_lang_code: str) -> TranslationResult:
        url = translate_url(text, self._preferences.selected_translation_lang)
        opened = await asyncio.to_thread(webbrowser.open, url)
        if not opened:
            return TranslationFailed(RuntimeError(messages.MSG_NO_BROWSER_AVAILABLE))

        logger.info("opened translation page", source=source_lang_code, chars=len(text))
        return OuterAppLaunched()
