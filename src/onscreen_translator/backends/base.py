"""Abstract base classes and value types for OCR and translation backends."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Union

from PIL import Image

from .. import log
from ..config import DEFAULT_TRANSLATION_LANG, Preferences
from ..errors import RecognitionError, RecognitionErrorReason
from ..geometry import Rect

logger = log.get_logger("backends")


def primary_subtag(lang_code: str) -> str:
    """Return the first ``-``-delimited segment of a language tag (``en-US`` -> ``en``)."""
    return lang_code.split("-")[0]


class RecognitionProviderType(Enum):
    """Available OCR engines."""

    EASYOCR = "easyocr"
    TESSERACT = "tesseract"

    @property
    def key(self) -> str:
        return self.value

    @classmethod
    def from_key(cls, key: str) -> "RecognitionProviderType":
        for member in cls:
            if member.key == key:
                return member
        return cls.EASYOCR


class TranslationProviderType(Enum):
    """Available translation backends.

    Each member carries ``(index, key, display_name, non_translation)``.
    Non-translation providers never produce translated text in-process.
    """

    OPUS_MT = (1, "opus_mt", "OPUS-MT (offline)", False)
    BROWSER = (2, "google_translate_web", "Google Translate (browser)", True)
    OCR_ONLY = (3, "ocr_only", "None (OCR only)", True)

    def __init__(self, index: int, key: str, display_name: str, non_translation: bool):
        self.index = index
        self.key = key
        self.display_name = display_name
        self.non_translation = non_translation

    @classmethod
    def from_key(cls, key: str) -> "TranslationProviderType":
        for member in cls:
            if member.key == key:
                return member
        return cls.OPUS_MT


@dataclass(frozen=True)
class RecognitionLanguage:
    """An OCR-engine specific language entry."""

    code: str
    display_name: str
    selected: bool
    downloaded: bool
    provider: RecognitionProviderType
    inner_code: str


@dataclass(frozen=True)
class RecognitionResult:
    """Text recognized from one image.

    Bounding boxes are in the coordinate space of the recognized image.
    """

    lang_code: str
    text: str
    bounding_boxes: tuple[Rect, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class TranslationLanguage:
    code: str
    display_name: str
    selected: bool


@dataclass(frozen=True)
class TranslationProvider:
    """Catalog entry describing a translation backend."""

    key: str
    display_name: str
    non_translation: bool
    provider_type: TranslationProviderType
    selected: bool

    @classmethod
    def from_type(cls, provider_type: TranslationProviderType, selected: bool = False) -> "TranslationProvider":
        return cls(
            key=provider_type.key,
            display_name=provider_type.display_name,
            non_translation=provider_type.non_translation,
            provider_type=provider_type,
            selected=selected,
        )


@dataclass(frozen=True)
class Translated:
    text: str
    provider_type: TranslationProviderType


@dataclass(frozen=True)
class SourceLangNotSupported:
    provider_type: TranslationProviderType


@dataclass(frozen=True)
class OCROnlyPassthrough:
    pass


@dataclass(frozen=True)
class OuterAppLaunched:
    pass


@dataclass(frozen=True)
class TranslationFailed:
    error: BaseException


TranslationResult = Union[
    Translated,
    SourceLangNotSupported,
    OCROnlyPassthrough,
    OuterAppLaunched,
    TranslationFailed,
]


class TextRecognizer(ABC):
    """Abstract base class for OCR backends.

    Subclasses implement the blocking ``_recognize``; ``recognize`` runs it
    in a worker thread and normalizes failures into ``RecognitionError``.
    """

    provider_type: ClassVar[RecognitionProviderType]

    # Images smaller than this (in either dimension) are rejected up front
    min_image_size: ClassVar[int] = 1

    @property
    def name(self) -> str:
        return self.provider_type.name

    @abstractmethod
    def supported_languages(self) -> list[RecognitionLanguage]:
        """List the languages this engine can recognize.

        Returns:
            Languages sorted by display name, ``selected`` left False.
        """

    def get_language(self, code: str) -> RecognitionLanguage | None:
        """Look up a supported language by its code."""
        for language in self.supported_languages():
            if language.code == code:
                return language
        return None

    async def recognize(self, language: RecognitionLanguage, image: Image.Image) -> RecognitionResult:
        """Recognize text in ``image``.

        Raises:
            RecognitionError: With ``IMAGE_TOO_SMALL`` when the image is below
                ``min_image_size``, otherwise wrapping the backend failure.
        """
        width, height = image.size
        if width < self.min_image_size or height < self.min_image_size:
            raise RecognitionError(
                RecognitionErrorReason.IMAGE_TOO_SMALL,
                f"Input image width and height should be at least {self.min_image_size}, "
                f"got {width}x{height}",
            )

        try:
            return await asyncio.to_thread(self._recognize, language, image)
        except RecognitionError:
            raise
        except Exception as e:
            raise RecognitionError(RecognitionErrorReason.BACKEND, cause=e) from e

    @abstractmethod
    def _recognize(self, language: RecognitionLanguage, image: Image.Image) -> RecognitionResult:
        """Blocking recognition, executed off the event loop."""

    def display_lang_code(self, lang_code: str) -> str:
        """Normalize a language code for display. Must be idempotent."""
        return lang_code


class ModelDownloader(ABC):
    """Mixin for recognizers whose languages need an on-disk model."""

    @abstractmethod
    async def download_model(self, inner_code: str) -> bool:
        """Download the model for ``inner_code``.

        Returns:
            True when the model is in place.

        Raises:
            ModelDownloadError: If the download fails or is cancelled.
        """

    @abstractmethod
    def cancel_download(self) -> None:
        """Abort the in-flight download, if any."""


class Translator(ABC):
    """Abstract base class for translation backends."""

    provider_type: ClassVar[TranslationProviderType]

    def __init__(self, preferences: Preferences):
        self._preferences = preferences

    @property
    def translation_hint(self) -> str | None:
        """Hint shown in place of a language list, if any."""
        return None

    async def check_environment(self) -> bool:
        """Verify the backend can translate right now.

        Returning False aborts the current attempt. Implementations may start
        a background resource acquisition before returning False.
        """
        return True

    def supported_languages(self) -> list[TranslationLanguage]:
        """Target languages, with the persisted selection marked."""
        return []

    def is_language_supported(self) -> bool:
        """Whether the selected OCR language can be translated by this backend."""
        source = primary_subtag(self._preferences.selected_ocr_lang)
        return any(primary_subtag(lang.code) == source for lang in self.supported_languages())

    def selected_lang_code(self, supported_codes: list[str]) -> str:
        """Return the persisted target language, resetting it if unsupported."""
        selected = self._preferences.selected_translation_lang
        if selected in supported_codes:
            return selected

        logger.info(
            "selected translation language not supported, using default",
            provider=self.provider_type.key,
            selected=selected,
        )
        self._preferences.selected_translation_lang = DEFAULT_TRANSLATION_LANG
        return DEFAULT_TRANSLATION_LANG

    async def translate(self, text: str, source_lang_code: str) -> TranslationResult:
        """Translate ``text``; failures are returned as ``TranslationFailed``."""
        try:
            return await self._translate(text, source_lang_code)
        except Exception as e:
            logger.warning("translation failed", provider=self.provider_type.key, error=str(e))
            return TranslationFailed(e)

    @abstractmethod
    async def _translate(self, text: str, source_lang_code: str) -> TranslationResult:
        """Backend specific translation."""

    def close(self) -> None:
        """Release any cached backend resources."""
