"""EasyOCR backend with one reader per script."""

import threading
from enum import Enum

import numpy as np
from PIL import Image

from ... import log
from ...config import Settings
from ...geometry import Rect
from ..base import (
    RecognitionLanguage,
    RecognitionProviderType,
    RecognitionResult,
    TextRecognizer,
    primary_subtag,
)

logger = log.get_logger("easyocr")

# Smaller inputs make the text detector fail
MIN_IMAGE_SIZE = 32

# (code, display name, EasyOCR code)
LANGUAGES = [
    ("af", "Afrikaans", "af"),
    ("sq", "Albanian", "sq"),
    ("be", "Belarusian", "be"),
    ("bg", "Bulgarian", "bg"),
    ("zh-Hans", "Chinese (Simplified)", "ch_sim"),
    ("zh-Hant", "Chinese (Traditional)", "ch_tra"),
    ("hr", "Croatian", "hr"),
    ("cs", "Czech", "cs"),
    ("da", "Danish", "da"),
    ("nl", "Dutch", "nl"),
    ("en", "English", "en"),
    ("et", "Estonian", "et"),
    ("fr", "French", "fr"),
    ("de", "German", "de"),
    ("hi", "Hindi", "hi"),
    ("hu", "Hungarian", "hu"),
    ("is", "Icelandic", "is"),
    ("id", "Indonesian", "id"),
    ("ga", "Irish", "ga"),
    ("it", "Italian", "it"),
    ("ja", "Japanese", "ja"),
    ("ko", "Korean", "ko"),
    ("lv", "Latvian", "lv"),
    ("lt", "Lithuanian", "lt"),
    ("ms", "Malay", "ms"),
    ("mr", "Marathi", "mr"),
    ("ne", "Nepali", "ne"),
    ("no", "Norwegian", "no"),
    ("pl", "Polish", "pl"),
    ("pt", "Portuguese", "pt"),
    ("ro", "Romanian", "ro"),
    ("ru", "Russian", "ru"),
    ("sk", "Slovak", "sk"),
    ("sl", "Slovenian", "sl"),
    ("es", "Spanish", "es"),
    ("sw", "Swahili", "sw"),
    ("sv", "Swedish", "sv"),
    ("tl", "Tagalog", "tl"),
    ("tr", "Turkish", "tr"),
    ("uk", "Ukrainian", "uk"),
    ("vi", "Vietnamese", "vi"),
]

DEVANAGARI_LANG_CODES = {"hi", "mr", "ne", "sa"}
CYRILLIC_LANG_CODES = {"ru", "uk", "be", "bg"}
TRADITIONAL_CHINESE_TAGS = {"zh-Hant", "zh-TW", "zh-HK", "zh-MO"}


class ScriptType(Enum):
    """Groups of languages that can share one EasyOCR reader."""

    LATIN = "latin"
    CYRILLIC = "cyrillic"
    CHINESE_SIMPLIFIED = "chinese_simplified"
    CHINESE_TRADITIONAL = "chinese_traditional"
    DEVANAGARI = "devanagari"
    JAPANESE = "japanese"
    KOREAN = "korean"


def script_type(lang_code: str) -> ScriptType:
    """Classify a language code into the script its reader is built for."""
    if lang_code == "ja":
        return ScriptType.JAPANESE
    if lang_code == "ko":
        return ScriptType.KOREAN
    if lang_code.startswith("zh"):
        if lang_code in TRADITIONAL_CHINESE_TAGS:
            return ScriptType.CHINESE_TRADITIONAL
        return ScriptType.CHINESE_SIMPLIFIED
    if lang_code in DEVANAGARI_LANG_CODES:
        return ScriptType.DEVANAGARI
    if lang_code in CYRILLIC_LANG_CODES:
        return ScriptType.CYRILLIC
    return ScriptType.LATIN


def _reader_languages(script: ScriptType) -> list[str]:
    """EasyOCR language list for a script's reader."""
    if script == ScriptType.LATIN:
        return [
            easyocr_code
            for code, _, easyocr_code in LANGUAGES
            if script_type(code) == ScriptType.LATIN
        ]
    codes = [easyocr_code for code, _, easyocr_code in LANGUAGES if script_type(code) == script]
    # Every non-Latin reader can also read English
    return codes + ["en"]


def _is_obsolete(display_name: str) -> bool:
    lowered = display_name.lower()
    return lowered.startswith("old ") or lowered.startswith("middle ")


class EasyOCRRecognizer(TextRecognizer):
    """Recognizes text with EasyOCR.

    Readers are expensive to build, so one is created per script on first
    use and kept for the lifetime of the recognizer.
    """

    provider_type = RecognitionProviderType.EASYOCR
    min_image_size = MIN_IMAGE_SIZE

    def __init__(self, settings: Settings, gpu: bool = True):
        self._settings = settings
        self._gpu = gpu
        self._readers: dict[ScriptType, object] = {}
        self._readers_lock = threading.Lock()

    def supported_languages(self) -> list[RecognitionLanguage]:
        seen: set[str] = set()
        languages = []
        for code, name, easyocr_code in LANGUAGES:
            if _is_obsolete(name) or name in seen:
                continue
            seen.add(name)
            languages.append(
                RecognitionLanguage(
                    code=code,
                    display_name=name,
                    selected=False,
                    downloaded=True,
                    provider=self.provider_type,
                    inner_code=easyocr_code,
                )
            )
        return sorted(languages, key=lambda lang: lang.display_name)

    def display_lang_code(self, lang_code: str) -> str:
        return primary_subtag(lang_code)

    def _get_reader(self, script: ScriptType):
        """Return the cached reader for ``script``, creating it if needed."""
        with self._readers_lock:
            reader = self._readers.get(script)
            if reader is None:
                import easyocr

                languages = _reader_languages(script)
                logger.info("initializing reader", script=script.value, languages=",".join(languages))
                reader = easyocr.Reader(languages, gpu=self._gpu, verbose=False)
                self._readers[script] = reader
                logger.info("reader ready", script=script.value)
            return reader

    def _recognize(self, language: RecognitionLanguage, image: Image.Image) -> RecognitionResult:
        reader = self._get_reader(script_type(language.code))
        rgb_array = np.asarray(image.convert("RGB"))

        # paragraph=True groups lines into text blocks: [(bbox, text), ...]
        results = reader.readtext(rgb_array, detail=1, paragraph=True)

        texts = []
        boxes = []
        for bbox, text in results:
            text = " ".join(text.split())
            if not text:
                continue
            texts.append(text)

            # bbox is [[x1,y1], [x2,y1], [x2,y2], [x1,y2]]
            x_coords = [point[0] for point in bbox]
            y_coords = [point[1] for point in bbox]
            boxes.append(
                Rect(int(min(x_coords)), int(min(y_coords)), int(max(x_coords)), int(max(y_coords)))
            )

        joiner = self._settings.text_block_joiner.joiner
        return RecognitionResult(
            lang_code=primary_subtag(language.code),
            text=joiner.join(texts),
            bounding_boxes=tuple(boxes),
        )
