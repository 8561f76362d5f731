"""Tests for the provider contracts and the registry."""

import asyncio

import pytest
from PIL import Image

from onscreen_translator.backends.base import (
    RecognitionProviderType,
    Translated,
    TranslationFailed,
    TranslationProvider,
    TranslationProviderType,
    primary_subtag,
)
from onscreen_translator.backends.registry import ProviderRegistry
from onscreen_translator.errors import RecognitionError, RecognitionErrorReason

from conftest import FakeRecognizer, FakeTranslator


class TestPrimarySubtag:
    @pytest.mark.parametrize(
        "code, expected",
        [("en", "en"), ("en-US", "en"), ("zh-Hant", "zh"), ("zh-Hant-TW", "zh"), ("", "")],
    )
    def test_primary_subtag(self, code, expected):
        assert primary_subtag(code) == expected


class TestProviderTypes:
    def test_translation_provider_attributes(self):
        assert TranslationProviderType.OPUS_MT.index == 1
        assert TranslationProviderType.BROWSER.key == "google_translate_web"
        assert TranslationProviderType.BROWSER.non_translation
        assert TranslationProviderType.OCR_ONLY.non_translation
        assert not TranslationProviderType.OPUS_MT.non_translation

    def test_from_key_falls_back_to_default(self):
        assert TranslationProviderType.from_key("ocr_only") == TranslationProviderType.OCR_ONLY
        assert TranslationProviderType.from_key("nope") == TranslationProviderType.OPUS_MT
        assert RecognitionProviderType.from_key("tesseract") == RecognitionProviderType.TESSERACT
        assert RecognitionProviderType.from_key("nope") == RecognitionProviderType.EASYOCR

    def test_catalog_entry_from_type(self):
        provider = TranslationProvider.from_type(TranslationProviderType.BROWSER, selected=True)

        assert provider.key == "google_translate_web"
        assert provider.non_translation
        assert provider.selected


class TestTextRecognizer:
    def test_rejects_small_images(self):
        recognizer = FakeRecognizer()
        language = recognizer.get_language("en")

        with pytest.raises(RecognitionError) as exc_info:
            asyncio.run(recognizer.recognize(language, Image.new("RGB", (31, 100))))

        assert exc_info.value.reason == RecognitionErrorReason.IMAGE_TOO_SMALL
        assert recognizer.calls == []

    def test_wraps_backend_errors(self):
        recognizer = FakeRecognizer()
        recognizer.error = KeyError("weights")

        with pytest.raises(RecognitionError) as exc_info:
            asyncio.run(recognizer.recognize(recognizer.get_language("en"), Image.new("RGB", (64, 64))))

        assert exc_info.value.reason == RecognitionErrorReason.BACKEND
        assert isinstance(exc_info.value.cause, KeyError)

    def test_get_language(self):
        recognizer = FakeRecognizer()

        assert recognizer.get_language("ja").code == "ja"
        assert recognizer.get_language("xx") is None

    def test_display_lang_code_default_is_identity(self):
        assert FakeRecognizer().display_lang_code("zh-Hant") == "zh-Hant"


class TestTranslator:
    @pytest.mark.parametrize(
        "ocr_lang, supported",
        [("zh-Hant", True), ("zh", True), ("ja", False), ("en-US", False)],
    )
    def test_language_support_compares_primary_subtag(self, preferences, ocr_lang, supported):
        """zh-Hant matches a zh entry; ja does not."""
        translator = FakeTranslator(preferences, codes=("zh", "de"))
        preferences.selected_ocr_lang = ocr_lang

        assert translator.is_language_supported() == supported

    def test_supported_entry_with_region(self, preferences):
        translator = FakeTranslator(preferences, codes=("zh-CN",))
        preferences.selected_ocr_lang = "zh-Hant"

        assert translator.is_language_supported()

    def test_selected_lang_code_resets_unsupported(self, preferences):
        preferences.selected_translation_lang = "ko"
        translator = FakeTranslator(preferences, codes=("en", "de"))

        assert translator.selected_lang_code(["en", "de"]) == "en"
        assert preferences.selected_translation_lang == "en"

    def test_selected_lang_code_keeps_supported(self, preferences):
        preferences.selected_translation_lang = "de"
        translator = FakeTranslator(preferences, codes=("en", "de"))

        assert translator.selected_lang_code(["en", "de"]) == "de"

    def test_supported_languages_marks_selection(self, preferences):
        preferences.selected_translation_lang = "de"
        translator = FakeTranslator(preferences, codes=("en", "de"))

        selected = [lang.code for lang in translator.supported_languages() if lang.selected]

        assert selected == ["de"]

    def test_translate_never_raises(self, preferences):
        translator = FakeTranslator(preferences)
        translator.error = RuntimeError("boom")

        result = asyncio.run(translator.translate("text", "en"))

        assert isinstance(result, TranslationFailed)
        assert str(result.error) == "boom"

    def test_translate(self, preferences):
        result = asyncio.run(FakeTranslator(preferences).translate("hi", "en"))

        assert result == Translated("translated:hi", TranslationProviderType.OPUS_MT)


class TestProviderRegistry:
    def test_instances_are_created_once(self, preferences):
        registry = ProviderRegistry(preferences)
        created = []

        def factory():
            created.append(FakeRecognizer())
            return created[-1]

        registry.register_recognizer(RecognitionProviderType.EASYOCR, factory)

        first = registry.recognizer(RecognitionProviderType.EASYOCR)
        second = registry.recognizer(RecognitionProviderType.EASYOCR)

        assert first is second
        assert len(created) == 1

    def test_selected_from_preferences(self, preferences):
        registry = ProviderRegistry(preferences)
        opus = FakeTranslator(preferences)
        ocr_only = FakeTranslator(preferences, provider_type=TranslationProviderType.OCR_ONLY)
        registry.register_translator(TranslationProviderType.OCR_ONLY, lambda: ocr_only)
        registry.register_translator(TranslationProviderType.OPUS_MT, lambda: opus)

        assert registry.selected_translator() is opus
        preferences.selected_translation_provider = "ocr_only"
        assert registry.selected_translator() is ocr_only

    def test_translator_types_sorted_by_index(self, preferences):
        registry = ProviderRegistry(preferences)
        for provider_type in reversed(list(TranslationProviderType)):
            registry.register_translator(provider_type, lambda: None)

        assert registry.translator_types == list(TranslationProviderType)

    def test_unregistered_selection_falls_back(self, preferences):
        registry = ProviderRegistry(preferences)
        recognizer = FakeRecognizer()
        registry.register_recognizer(RecognitionProviderType.EASYOCR, lambda: recognizer)
        preferences.selected_ocr_provider = "tesseract"

        assert registry.selected_recognizer() is recognizer

    def test_unknown_type_raises(self, preferences):
        with pytest.raises(KeyError):
            ProviderRegistry(preferences).translator(TranslationProviderType.BROWSER)

    def test_close_releases_translators(self, preferences):
        registry = ProviderRegistry(preferences)
        translator = FakeTranslator(preferences)
        closed = []
        translator.close = lambda: closed.append(True)
        registry.register_translator(TranslationProviderType.OPUS_MT, lambda: translator)
        registry.translator(TranslationProviderType.OPUS_MT)

        registry.close()

        assert closed == [True]
