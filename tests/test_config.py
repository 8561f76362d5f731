"""Tests for settings and preferences."""

from unittest.mock import patch

import yaml

from onscreen_translator.config import (
    DEFAULT_OCR_LANG,
    DEFAULT_OCR_PROVIDER,
    DEFAULT_TRANSLATION_LANG,
    DEFAULT_TRANSLATION_PROVIDER,
    Preferences,
    Settings,
    TextBlockJoiner,
)
from onscreen_translator.geometry import Rect


class TestTextBlockJoiner:
    def test_joiners(self):
        assert TextBlockJoiner.NEWLINE.joiner == "\n"
        assert TextBlockJoiner.SPACE.joiner == " "
        assert TextBlockJoiner.NONE.joiner == ""

    def test_parse_is_case_insensitive(self):
        assert TextBlockJoiner.parse("NewLine") == TextBlockJoiner.NEWLINE

    def test_parse_unknown_falls_back_to_space(self):
        assert TextBlockJoiner.parse("tab") == TextBlockJoiner.SPACE


class TestSettings:
    def test_defaults(self):
        settings = Settings()

        assert settings.capture_timeout_seconds == 5
        assert settings.text_block_joiner == TextBlockJoiner.SPACE
        assert settings.fade_out_opacity == 0.2
        assert settings.remember_last_selection
        assert not settings.auto_copy_result
        assert settings.min_crop_size == 32

    def test_values_are_clamped(self):
        settings = Settings(fade_out_opacity=3, capture_timeout_seconds=0, fade_out_delay_seconds=-2)

        assert settings.fade_out_opacity == 1.0
        assert settings.capture_timeout_seconds == 1
        assert settings.fade_out_delay_seconds == 1

    def test_load_from_file(self, tmp_path):
        config_path = tmp_path / "config.yml"
        config_path.write_text(
            "capture_timeout_seconds: 10\n"
            "text_block_joiner: newline\n"
            "auto_copy_result: true\n"
            "unknown_key: 1\n",
            encoding="utf-8",
        )

        settings = Settings.load(str(config_path))

        assert settings.capture_timeout_seconds == 10
        assert settings.text_block_joiner == TextBlockJoiner.NEWLINE
        assert settings.auto_copy_result

    def test_load_empty_file(self, tmp_path):
        config_path = tmp_path / "config.yml"
        config_path.write_text("", encoding="utf-8")

        settings = Settings.load(str(config_path))

        assert settings.capture_timeout_seconds == 5

    def test_missing_file_creates_default_config(self, tmp_path, monkeypatch):
        """Without any config file a commented default is written to the config dir."""
        monkeypatch.chdir(tmp_path)
        config_dir = tmp_path / "home"

        with patch("onscreen_translator.config.CONFIG_DIR", config_dir):
            settings = Settings.load()

        created = config_dir / "config.yml"
        assert created.exists()
        data = yaml.safe_load(created.read_text(encoding="utf-8"))
        assert data["text_block_joiner"] == "space"
        assert Settings.from_dict(data).capture_timeout_seconds == settings.capture_timeout_seconds


class TestPreferences:
    def test_defaults(self, preferences):
        assert preferences.selected_ocr_provider == DEFAULT_OCR_PROVIDER
        assert preferences.selected_ocr_lang == DEFAULT_OCR_LANG
        assert preferences.selected_translation_provider == DEFAULT_TRANSLATION_PROVIDER
        assert preferences.selected_translation_lang == DEFAULT_TRANSLATION_LANG
        assert preferences.last_selection_area is None
        assert preferences.last_bar_position == (0, 0)

    def test_values_persist_across_instances(self, tmp_path):
        path = tmp_path / "preferences.yml"
        first = Preferences(path)
        first.selected_ocr_lang = "ja"
        first.last_selection_area = Rect(1, 2, 3, 4)
        first.last_bar_position = (10, 20)

        second = Preferences(path)

        assert second.selected_ocr_lang == "ja"
        assert second.last_selection_area == Rect(1, 2, 3, 4)
        assert second.last_bar_position == (10, 20)

    def test_clear_selection_area(self, preferences):
        preferences.last_selection_area = Rect(1, 2, 3, 4)
        preferences.last_selection_area = None

        assert preferences.last_selection_area is None
        assert preferences.get("last_selection_area") is None

    def test_invalid_selection_area(self, preferences):
        preferences.set("last_selection_area", {"left": 1})

        assert preferences.last_selection_area is None

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "preferences.yml"
        path.write_text("{ not yaml: [", encoding="utf-8")

        assert Preferences(path).selected_ocr_lang == DEFAULT_OCR_LANG

    def test_check_and_mark_shown(self, preferences):
        """A flag is reported as shown only once per version."""
        assert not preferences.check_and_mark_shown("tesseract_hint", "1.0")
        assert preferences.check_and_mark_shown("tesseract_hint", "1.0")
        assert not preferences.check_and_mark_shown("tesseract_hint", "1.1")
        assert not preferences.check_and_mark_shown("other", "1.1")
