"""Tests for the OPUS-MT translation backend."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from onscreen_translator import messages
from onscreen_translator.backends.base import SourceLangNotSupported, Translated, TranslationFailed
from onscreen_translator.backends.translation.opus_mt import (
    OPUS_MT_MODELS,
    OpusMTModel,
    OpusMTTranslator,
    _get_short_path,
)
from onscreen_translator.errors import ModelDownloadError

from conftest import FakeSurface

MODULE = "onscreen_translator.backends.translation.opus_mt"


@pytest.fixture
def surface():
    return FakeSurface(confirm_answer=True)


@pytest.fixture
def model_manager():
    manager = MagicMock()
    manager.missing.return_value = []
    manager.get_model_path.return_value = Path("/models/opus")
    return manager


@pytest.fixture
def translator(preferences, model_manager, surface, tmp_path):
    preferences.selected_ocr_lang = "ja"
    preferences.selected_translation_lang = "en"
    return OpusMTTranslator(preferences, model_manager, surface, models_dir=tmp_path / "ct2")


def _fake_model(repo_id, model_path, ct2_path):
    return MagicMock(repo_id=repo_id, translate=MagicMock(return_value=f"from {repo_id}"))


class TestGetShortPath:
    """Tests for _get_short_path function."""

    def test_non_windows_returns_original_path(self):
        test_path = Path("/home/user/models/test.bin")

        with patch(f"{MODULE}.sys.platform", "linux"):
            result = _get_short_path(test_path)

        assert result == str(test_path)

    def test_non_windows_darwin_returns_original_path(self):
        test_path = Path("/Users/Álvaro/models/test.bin")

        with patch(f"{MODULE}.sys.platform", "darwin"):
            result = _get_short_path(test_path)

        assert result == str(test_path)

    @pytest.mark.skipif(sys.platform != "win32", reason="Windows-specific test")
    def test_windows_successful_conversion(self):
        test_path = Path(r"C:\Users\Álvaro\models\test.bin")
        short_path = r"C:\Users\LVARO~1\models\test.bin"

        mock_ctypes = MagicMock()
        mock_buffer = MagicMock()
        mock_buffer.value = short_path
        mock_ctypes.create_unicode_buffer.return_value = mock_buffer
        mock_ctypes.windll.kernel32.GetShortPathNameW.return_value = len(short_path)

        with (
            patch.dict("sys.modules", {"ctypes": mock_ctypes}),
            patch(f"{MODULE}.sys.platform", "win32"),
        ):
            result = _get_short_path(test_path)

        assert result == short_path

    @pytest.mark.skipif(sys.platform != "win32", reason="Windows-specific test")
    def test_windows_fallback_on_failure(self):
        test_path = Path(r"C:\Users\Álvaro\models\test.bin")

        mock_ctypes = MagicMock()
        mock_ctypes.windll.kernel32.GetShortPathNameW.return_value = 0

        with (
            patch.dict("sys.modules", {"ctypes": mock_ctypes}),
            patch(f"{MODULE}.sys.platform", "win32"),
        ):
            result = _get_short_path(test_path)

        assert result == str(test_path)


class TestOpusMTModel:
    def test_converts_once_and_loads_vocabularies(self, tmp_path):
        ctranslate2 = MagicMock()
        sentencepiece = MagicMock()
        model_path = tmp_path / "hf"
        ct2_path = tmp_path / "ct2" / "Helsinki-NLP--opus-mt-ja-en"

        with patch.dict("sys.modules", {"ctranslate2": ctranslate2, "sentencepiece": sentencepiece}):
            OpusMTModel("Helsinki-NLP/opus-mt-ja-en", model_path, ct2_path)

        converter = ctranslate2.converters.TransformersConverter
        converter.assert_called_once_with(str(model_path))
        converter.return_value.convert.assert_called_once_with(str(ct2_path), quantization="int8", force=True)
        ctranslate2.Translator.assert_called_once_with(str(ct2_path), device="auto")
        loaded = [call.args[0] for call in sentencepiece.SentencePieceProcessor.return_value.Load.call_args_list]
        assert loaded == [str(model_path / "source.spm"), str(model_path / "target.spm")]

    def test_skips_conversion_when_present(self, tmp_path):
        ctranslate2 = MagicMock()
        ct2_path = tmp_path / "ct2"
        ct2_path.mkdir()
        (ct2_path / "model.bin").write_bytes(b"")

        with patch.dict("sys.modules", {"ctranslate2": ctranslate2, "sentencepiece": MagicMock()}):
            OpusMTModel("repo", tmp_path / "hf", ct2_path)

        ctranslate2.converters.TransformersConverter.assert_not_called()

    def test_translate_keeps_line_layout(self):
        """Blank lines are kept and each non-empty line is translated separately."""
        model = OpusMTModel.__new__(OpusMTModel)
        model._source_spm = MagicMock()
        model._source_spm.EncodeAsPieces.side_effect = list
        model._target_spm = MagicMock()
        model._target_spm.DecodePieces.side_effect = lambda pieces: "".join(pieces).upper()
        model._translator = MagicMock()
        model._translator.translate_batch.side_effect = lambda batch, **kwargs: [
            MagicMock(hypotheses=[tokens[:-1]]) for tokens in batch
        ]

        assert model.translate("ab\n\ncd") == "AB\n\nCD"
        batch = model._translator.translate_batch.call_args.args[0]
        assert batch == [["a", "b", "</s>"], ["c", "d", "</s>"]]

    def test_translate_blank_text(self):
        model = OpusMTModel.__new__(OpusMTModel)
        model._source_spm = MagicMock()
        model._translator = MagicMock()

        assert model.translate(" \n ") == ""
        model._translator.translate_batch.assert_not_called()


class TestLanguages:
    def test_language_codes_cover_every_pair(self):
        codes = OpusMTTranslator.language_codes()

        assert codes == sorted(codes)
        assert {code for pair in OPUS_MT_MODELS for code in pair} == set(codes)

    def test_supported_languages_marks_target(self, translator, preferences):
        preferences.selected_translation_lang = "fr"

        selected = [lang for lang in translator.supported_languages() if lang.selected]

        assert [(lang.code, lang.display_name) for lang in selected] == [("fr", "French")]

    def test_repo_for_uses_primary_subtag(self, translator):
        assert translator.repo_for("zh-Hant", "en") == "Helsinki-NLP/opus-mt-zh-en"
        assert translator.repo_for("ja", "ko") is None

    def test_is_language_supported(self, translator, preferences):
        assert translator.is_language_supported()
        preferences.selected_ocr_lang = "ar"
        assert not translator.is_language_supported()


class TestCheckEnvironment:
    def test_ready_when_installed(self, translator, model_manager):
        assert asyncio.run(translator.check_environment())

        model_manager.missing.assert_called_once_with(["Helsinki-NLP/opus-mt-ja-en"])

    def test_ready_for_unsupported_pair(self, translator, preferences, model_manager):
        preferences.selected_ocr_lang = "ar"

        assert asyncio.run(translator.check_environment())
        model_manager.missing.assert_not_called()

    def test_missing_model_starts_acquisition(self, translator, model_manager, surface):
        model_manager.missing.return_value = ["Helsinki-NLP/opus-mt-ja-en"]

        async def run():
            ready = await translator.check_environment()
            return ready, await translator.acquisition

        ready, acquired = asyncio.run(run())

        assert not ready
        assert acquired
        model_manager.install.assert_called_once_with(["Helsinki-NLP/opus-mt-ja-en"])
        assert "Helsinki-NLP/opus-mt-ja-en" in surface.confirms[0][1]
        assert [title for title, _ in surface.messages] == [
            messages.TITLE_RESOURCES_DOWNLOADING,
            messages.TITLE_RESOURCES_DOWNLOADED,
        ]

    def test_declined_download(self, translator, model_manager, surface):
        model_manager.missing.return_value = ["Helsinki-NLP/opus-mt-ja-en"]
        surface.confirm_answer = False

        async def run():
            await translator.check_environment()
            return await translator.acquisition

        assert not asyncio.run(run())
        model_manager.install.assert_not_called()
        assert surface.messages == []

    def test_failed_download(self, translator, model_manager, surface):
        model_manager.missing.return_value = ["Helsinki-NLP/opus-mt-ja-en"]
        model_manager.install.side_effect = ModelDownloadError("disk full")

        async def run():
            await translator.check_environment()
            return await translator.acquisition

        assert not asyncio.run(run())
        assert surface.messages[-1] == (messages.TITLE_DOWNLOADING_RESOURCES_FAILED, "disk full")

    def test_not_ready_while_acquiring(self, translator, model_manager, surface):
        """A second check during a download only asks the user to wait."""
        model_manager.missing.return_value = ["Helsinki-NLP/opus-mt-ja-en"]

        async def run():
            gate = asyncio.Event()

            async def confirm(title, message):
                await gate.wait()
                return False

            surface.confirm = confirm
            first = await translator.check_environment()
            second = await translator.check_environment()
            gate.set()
            await translator.acquisition
            return first, second

        assert asyncio.run(run()) == (False, False)
        assert surface.messages == [
            (messages.TITLE_RESOURCES_DOWNLOADING, messages.MSG_WAIT_FOR_RESOURCES_DOWNLOADING)
        ]
        assert model_manager.missing.call_count == 1

    def test_check_failure(self, translator, model_manager, surface):
        model_manager.missing.side_effect = OSError("cache unreadable")

        assert not asyncio.run(translator.check_environment())
        assert surface.messages == [(messages.TITLE_FAILED_TO_CHECK_RESOURCES, "cache unreadable")]


class TestTranslate:
    def test_same_language_passthrough(self, translator, preferences):
        preferences.selected_translation_lang = "ja"

        result = asyncio.run(translator.translate("こんにちは", "ja"))

        assert result == Translated("こんにちは", translator.provider_type)

    def test_unsupported_pair(self, translator):
        result = asyncio.run(translator.translate("مرحبا", "ar"))

        assert result == SourceLangNotSupported(translator.provider_type)

    def test_model_cached_per_pair(self, translator, preferences):
        with patch(f"{MODULE}.OpusMTModel", side_effect=_fake_model) as model_cls:
            first = asyncio.run(translator.translate("一", "ja"))
            second = asyncio.run(translator.translate("二", "ja"))
            first_model = translator._model

            preferences.selected_translation_lang = "fr"
            third = asyncio.run(translator.translate("三", "ja"))

        assert first == second == Translated("from Helsinki-NLP/opus-mt-ja-en", translator.provider_type)
        assert third.text == "from Helsinki-NLP/opus-mt-ja-fr"
        assert model_cls.call_count == 2
        first_model.close.assert_called_once()

    def test_model_not_downloaded(self, translator, model_manager):
        model_manager.get_model_path.return_value = None

        result = asyncio.run(translator.translate("一", "ja"))

        assert isinstance(result, TranslationFailed)
        assert isinstance(result.error, ModelDownloadError)

    def test_close_unloads_model(self, translator):
        with patch(f"{MODULE}.OpusMTModel", side_effect=_fake_model):
            asyncio.run(translator.translate("一", "ja"))
        model = translator._model

        translator.close()
        translator.close()

        model.close.assert_called_once()
