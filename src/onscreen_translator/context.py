"""Application context: builds and tears down every long-lived component."""

from pathlib import Path

from . import log
from .backends.base import RecognitionProviderType, TranslationProviderType
from .backends.model_manager import ModelManager
from .backends.ocr import EasyOCRRecognizer, TesseractRecognizer
from .backends.registry import ProviderRegistry
from .backends.translation import BrowserTranslator, OCROnlyTranslator, OpusMTTranslator
from .capture import ImageGrabExtractor
from .catalog import LanguageCatalog
from .config import Preferences, Settings
from .interfaces import OverlaySurface, ScreenExtractor, TelemetrySink
from .overlay import ConsoleOverlay
from .session.orchestrator import SessionOrchestrator
from .telemetry import LoggingTelemetry

logger = log.get_logger("context")


class AppContext:
    """Owns one instance of every component for the lifetime of the app.

    Collaborators can be injected; anything not given gets the default
    implementation.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        preferences: Preferences | None = None,
        surface: OverlaySurface | None = None,
        extractor: ScreenExtractor | None = None,
        telemetry: TelemetrySink | None = None,
        model_manager: ModelManager | None = None,
        tessdata_dir: Path | None = None,
    ):
        self.settings = settings or Settings.load()
        self.preferences = preferences or Preferences()
        self.surface = surface or ConsoleOverlay()
        self.extractor = extractor or ImageGrabExtractor()
        self.telemetry = telemetry or LoggingTelemetry()
        self.model_manager = model_manager or ModelManager()

        self.registry = ProviderRegistry(self.preferences)
        self.registry.register_recognizer(
            RecognitionProviderType.EASYOCR, lambda: EasyOCRRecognizer(self.settings)
        )
        self.registry.register_recognizer(
            RecognitionProviderType.TESSERACT, lambda: TesseractRecognizer(self.settings, tessdata_dir)
        )
        self.registry.register_translator(
            TranslationProviderType.OPUS_MT,
            lambda: OpusMTTranslator(self.preferences, self.model_manager, self.surface),
        )
        self.registry.register_translator(
            TranslationProviderType.BROWSER, lambda: BrowserTranslator(self.preferences, self.surface)
        )
        self.registry.register_translator(
            TranslationProviderType.OCR_ONLY, lambda: OCROnlyTranslator(self.preferences)
        )

        self.catalog = LanguageCatalog(self.registry, self.preferences)
        self.orchestrator = SessionOrchestrator(
            settings=self.settings,
            preferences=self.preferences,
            registry=self.registry,
            catalog=self.catalog,
            extractor=self.extractor,
            surface=self.surface,
            telemetry=self.telemetry,
        )
        logger.debug("context ready")

    def close(self) -> None:
        """Return the session to Idle and release provider resources."""
        self.orchestrator.hide_all()
        self.catalog.cancel_download()
        self.registry.close()
        self.extractor.release()
        logger.debug("context closed")
