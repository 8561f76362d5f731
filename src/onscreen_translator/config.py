"""Configuration management for Onscreen Translator.

Two stores live here:

- ``Settings``: user options read from ``config.yml``. The core only reads them.
- ``Preferences``: small key/value state the app writes back (selected
  providers and languages, last selection, "already shown" flags).
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from . import log
from .geometry import Rect

logger = log.get_logger("config")

CONFIG_DIR = Path.home() / ".onscreen_translator"
CONFIG_FILE_NAME = "config.yml"
PREFERENCES_FILE_NAME = "preferences.yml"

DEFAULT_OCR_PROVIDER = "easyocr"
DEFAULT_OCR_LANG = "en"
DEFAULT_TRANSLATION_PROVIDER = "opus_mt"
DEFAULT_TRANSLATION_LANG = "en"

DEFAULT_CAPTURE_TIMEOUT_SECONDS = 5
DEFAULT_FADE_OUT_DELAY_SECONDS = 5
DEFAULT_FADE_OUT_OPACITY = 0.2


class TextBlockJoiner(Enum):
    """How recognized text blocks are glued together."""

    NEWLINE = "newline"
    SPACE = "space"
    NONE = "none"

    @property
    def joiner(self) -> str:
        return {
            TextBlockJoiner.NEWLINE: "\n",
            TextBlockJoiner.SPACE: " ",
            TextBlockJoiner.NONE: "",
        }[self]

    @classmethod
    def parse(cls, value: Any) -> "TextBlockJoiner":
        """Parse a config value, falling back to SPACE on unknown input."""
        try:
            return cls(str(value).lower())
        except ValueError:
            logger.warning("unknown text block joiner", value=value)
            return cls.SPACE


class Settings:
    """Application settings."""

    def __init__(
        self,
        restore_last_position: bool = True,
        fade_out_enabled: bool = True,
        fade_out_delay_seconds: int = DEFAULT_FADE_OUT_DELAY_SECONDS,
        fade_out_opacity: float = DEFAULT_FADE_OUT_OPACITY,
        capture_timeout_seconds: int = DEFAULT_CAPTURE_TIMEOUT_SECONDS,
        text_block_joiner: TextBlockJoiner = TextBlockJoiner.SPACE,
        auto_copy_result: bool = False,
        hide_recognized_after_translate: bool = False,
        remember_last_selection: bool = True,
        min_crop_size: int = 32,
    ):
        self.restore_last_position = restore_last_position
        self.fade_out_enabled = fade_out_enabled
        self.fade_out_delay_seconds = max(1, int(fade_out_delay_seconds))
        self.fade_out_opacity = min(1.0, max(0.0, float(fade_out_opacity)))
        self.capture_timeout_seconds = max(1, int(capture_timeout_seconds))
        self.text_block_joiner = text_block_joiner
        self.auto_copy_result = auto_copy_result
        self.hide_recognized_after_translate = hide_recognized_after_translate
        self.remember_last_selection = remember_last_selection
        self.min_crop_size = max(1, int(min_crop_size))

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Build settings from a parsed YAML mapping, ignoring unknown keys."""
        return cls(
            restore_last_position=bool(data.get("restore_last_position", True)),
            fade_out_enabled=bool(data.get("fade_out_enabled", True)),
            fade_out_delay_seconds=int(data.get("fade_out_delay_seconds", DEFAULT_FADE_OUT_DELAY_SECONDS)),
            fade_out_opacity=float(data.get("fade_out_opacity", DEFAULT_FADE_OUT_OPACITY)),
            capture_timeout_seconds=int(data.get("capture_timeout_seconds", DEFAULT_CAPTURE_TIMEOUT_SECONDS)),
            text_block_joiner=TextBlockJoiner.parse(data.get("text_block_joiner", "space")),
            auto_copy_result=bool(data.get("auto_copy_result", False)),
            hide_recognized_after_translate=bool(data.get("hide_recognized_after_translate", False)),
            remember_last_selection=bool(data.get("remember_last_selection", True)),
            min_crop_size=int(data.get("min_crop_size", 32)),
        )

    @classmethod
    def load(cls, config_path: str | None = None) -> "Settings":
        """Load settings from YAML file.

        Args:
            config_path: Path to config file. If None, looks for config.yml
                        in common locations.

        Returns:
            Settings instance with loaded values.
        """
        if config_path is None:
            search_paths = [
                Path(CONFIG_FILE_NAME),
                CONFIG_DIR / CONFIG_FILE_NAME,
            ]
            for path in search_paths:
                if path.exists():
                    config_path = str(path)
                    break

        if config_path and os.path.exists(config_path):
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            logger.debug("settings loaded", path=config_path)
            return cls.from_dict(data)

        settings = cls()
        settings._create_default_config()
        return settings

    def _create_default_config(self) -> None:
        """Create a default config file in the user's home directory."""
        config_path = CONFIG_DIR / CONFIG_FILE_NAME
        if config_path.exists():
            return

        CONFIG_DIR.mkdir(parents=True, exist_ok=True)

        default_config = """# Restore the floating bar at its last position on start
restore_last_position: true

# Fade the floating bar out while idle
fade_out_enabled: true
fade_out_delay_seconds: 5
# Opacity after fading out (0.0-1.0)
fade_out_opacity: 0.2

# Give up capturing the screen after this many seconds
capture_timeout_seconds: 5

# How recognized text blocks are joined: newline, space or none
text_block_joiner: space

# Copy the recognized text to the clipboard automatically
auto_copy_result: false

# Only show the translation once it is available
hide_recognized_after_translate: false

# Restore the last selection area when starting a new selection
remember_last_selection: true
"""
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(default_config)

        logger.info("created default config", path=str(config_path))


class Preferences:
    """YAML-backed key/value store for state the app writes back.

    Values must be plain YAML/JSON types. Every write is flushed to disk
    immediately; the store is small enough that this stays cheap.
    """

    def __init__(self, path: Path | None = None):
        self._path = path or CONFIG_DIR / PREFERENCES_FILE_NAME
        self._data: dict[str, Any] = self._read_all()

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._write_all()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._write_all()

    @property
    def selected_ocr_provider(self) -> str:
        return str(self.get("selected_ocr_provider", DEFAULT_OCR_PROVIDER))

    @selected_ocr_provider.setter
    def selected_ocr_provider(self, value: str) -> None:
        self.set("selected_ocr_provider", value)

    @property
    def selected_ocr_lang(self) -> str:
        return str(self.get("selected_ocr_lang", DEFAULT_OCR_LANG))

    @selected_ocr_lang.setter
    def selected_ocr_lang(self, value: str) -> None:
        self.set("selected_ocr_lang", value)

    @property
    def selected_translation_provider(self) -> str:
        return str(self.get("selected_translation_provider", DEFAULT_TRANSLATION_PROVIDER))

    @selected_translation_provider.setter
    def selected_translation_provider(self, value: str) -> None:
        self.set("selected_translation_provider", value)

    @property
    def selected_translation_lang(self) -> str:
        return str(self.get("selected_translation_lang", DEFAULT_TRANSLATION_LANG))

    @selected_translation_lang.setter
    def selected_translation_lang(self, value: str) -> None:
        self.set("selected_translation_lang", value)

    @property
    def last_selection_area(self) -> Rect | None:
        data = self.get("last_selection_area")
        if not data:
            return None
        try:
            return Rect.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning("invalid stored selection area", value=data)
            return None

    @last_selection_area.setter
    def last_selection_area(self, rect: Rect | None) -> None:
        if rect is None:
            self.remove("last_selection_area")
        else:
            self.set("last_selection_area", rect.to_dict())

    @property
    def last_bar_position(self) -> tuple[int, int]:
        x, y = self.get("last_bar_position", [0, 0])
        return (int(x), int(y))

    @last_bar_position.setter
    def last_bar_position(self, position: tuple[int, int]) -> None:
        self.set("last_bar_position", [int(position[0]), int(position[1])])

    def check_and_mark_shown(self, flag: str, version: str) -> bool:
        """Return True if ``flag`` was already shown for ``version``.

        Otherwise record ``version`` as shown and return False, so the caller
        shows the item exactly once per version.
        """
        shown = self.get("shown_flags", {}) or {}
        if shown.get(flag) == version:
            return True
        shown[flag] = version
        self.set("shown_flags", shown)
        return False

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (yaml.YAMLError, OSError) as e:
            logger.warning("unable to read preferences", path=str(self._path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self._data, f, allow_unicode=True, sort_keys=True)
