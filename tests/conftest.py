"""Shared fakes and fixtures."""

import asyncio
from unittest.mock import MagicMock

import pytest
from PIL import Image

from onscreen_translator.backends.base import (
    RecognitionLanguage,
    RecognitionProviderType,
    RecognitionResult,
    SourceLangNotSupported,
    TextRecognizer,
    Translated,
    TranslationLanguage,
    TranslationProviderType,
    Translator,
    primary_subtag,
)
from onscreen_translator.backends.registry import ProviderRegistry
from onscreen_translator.catalog import LanguageCatalog
from onscreen_translator.config import Preferences, Settings
from onscreen_translator.geometry import Rect
from onscreen_translator.session.orchestrator import SessionOrchestrator


class FakeExtractor:
    """Returns a blank image of the crop size, optionally after ``gate`` opens."""

    def __init__(self, granted=True, bounds=Rect(0, 0, 500, 500)):
        self.is_granted = granted
        self.bounds = bounds
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None
        self.image_size: tuple[int, int] | None = None
        self.calls: list[tuple[Rect, Rect]] = []
        self.images: list[Image.Image] = []
        self.released = 0

    def screen_bounds(self):
        return self.bounds

    async def extract(self, parent, crop):
        self.calls.append((parent, crop))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        image = Image.new("RGB", self.image_size or (crop.width, crop.height), "white")
        image.close = MagicMock(wraps=image.close)
        self.images.append(image)
        return image

    def release(self):
        self.released += 1


class FakeSurface:
    """Records everything the session shows."""

    def __init__(self, confirm_answer=False):
        self.confirm_answer = confirm_answer
        self.attached = set()
        self.errors: list[str] = []
        self.messages: list[tuple[str, str]] = []
        self.confirms: list[tuple[str, str]] = []
        self.results = []
        self.recognized = []
        self.translating = []
        self.clipboard: list[tuple[str, str]] = []
        self.recognizing = 0

    def attach(self, element):
        self.attached.add(element)

    def detach(self, element):
        self.attached.discard(element)

    def is_attached(self, element):
        return element in self.attached

    def show_recognizing(self):
        self.recognizing += 1

    def show_recognized(self, result, screen_boxes, union):
        self.recognized.append((result, screen_boxes, union))

    def show_translating(self, provider):
        self.translating.append(provider)

    def show_result(self, result):
        self.results.append(result)

    async def show_error(self, message):
        self.errors.append(message)

    def show_message(self, title, message):
        self.messages.append((title, message))

    async def confirm(self, title, message):
        self.confirms.append((title, message))
        return self.confirm_answer

    def copy_to_clipboard(self, label, text):
        self.clipboard.append((label, text))


class FakeTelemetry:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def log_event(self, name, **params):
        self.events.append((name, params))

    @property
    def names(self):
        return [name for name, _ in self.events]


class FakeRecognizer(TextRecognizer):
    provider_type = RecognitionProviderType.EASYOCR
    min_image_size = 32

    def __init__(self, codes=("en", "es", "fr", "ja")):
        self.codes = codes
        self.result = RecognitionResult("es", "Hola", (Rect(1, 2, 30, 40),))
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.calls = []

    def supported_languages(self):
        return [
            RecognitionLanguage(code, code.upper(), False, True, self.provider_type, code)
            for code in self.codes
        ]

    async def recognize(self, language, image):
        if self.gate is not None:
            await self.gate.wait()
        return await super().recognize(language, image)

    def _recognize(self, language, image):
        self.calls.append((language, image.size))
        if self.error is not None:
            raise self.error
        return self.result


class FakeTranslator(Translator):
    def __init__(
        self,
        preferences,
        provider_type=TranslationProviderType.OPUS_MT,
        codes=("en", "de", "es"),
    ):
        super().__init__(preferences)
        self.provider_type = provider_type
        self.codes = codes
        self.ready = True
        self.result = None
        self.error: Exception | None = None
        self.hint: str | None = None
        self.env_checks = 0
        self.calls = []

    @property
    def translation_hint(self):
        return self.hint

    async def check_environment(self):
        self.env_checks += 1
        return self.ready

    def supported_languages(self):
        selected = self.selected_lang_code(list(self.codes))
        return [TranslationLanguage(code, code.upper(), code == selected) for code in self.codes]

    async def _translate(self, text, source_lang_code):
        self.calls.append((text, source_lang_code))
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        if primary_subtag(source_lang_code) not in self.codes:
            return SourceLangNotSupported(self.provider_type)
        return Translated(f"translated:{text}", self.provider_type)


class Session:
    """An orchestrator wired to fakes, with every transition recorded."""

    def __init__(self, tmp_path, settings=None):
        self.settings = settings or Settings(capture_timeout_seconds=5)
        self.preferences = Preferences(tmp_path / "preferences.yml")
        self.extractor = FakeExtractor()
        self.surface = FakeSurface()
        self.telemetry = FakeTelemetry()
        self.recognizer = FakeRecognizer()
        self.translator = FakeTranslator(self.preferences)

        self.registry = ProviderRegistry(self.preferences)
        self.registry.register_recognizer(RecognitionProviderType.EASYOCR, lambda: self.recognizer)
        self.registry.register_translator(TranslationProviderType.OPUS_MT, lambda: self.translator)
        self.catalog = LanguageCatalog(self.registry, self.preferences)

        self.orchestrator = SessionOrchestrator(
            settings=self.settings,
            preferences=self.preferences,
            registry=self.registry,
            catalog=self.catalog,
            extractor=self.extractor,
            surface=self.surface,
            telemetry=self.telemetry,
            settle_delay=0,
        )
        self.transitions = []
        self.orchestrator.add_listener(lambda old, new: self.transitions.append((old, new)))

    @property
    def visited(self):
        return [type(new).__name__ for _, new in self.transitions]


@pytest.fixture
def session(tmp_path):
    return Session(tmp_path)


@pytest.fixture
def preferences(tmp_path):
    return Preferences(tmp_path / "preferences.yml")
