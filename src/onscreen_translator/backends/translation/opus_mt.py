"""OPUS-MT translation backend for multiple language pairs."""

import asyncio
import sys
from pathlib import Path

from ... import log, messages
from ...config import CONFIG_DIR, Preferences
from ...errors import ModelDownloadError
from ...interfaces import OverlaySurface
from ..base import (
    SourceLangNotSupported,
    Translated,
    TranslationLanguage,
    TranslationProviderType,
    TranslationResult,
    Translator,
    primary_subtag,
)
from ..model_manager import ModelManager

logger = log.get_logger("opus_mt")

# Helsinki-NLP OPUS-MT models on HuggingFace
# Format: (source, target) -> repo_id
# License: CC-BY 4.0 / Apache 2.0 (permissive, attribution required)
OPUS_MT_MODELS = {
    # Japanese to other languages
    ("ja", "en"): "Helsinki-NLP/opus-mt-ja-en",
    ("ja", "fr"): "Helsinki-NLP/opus-mt-ja-fr",
    ("ja", "de"): "Helsinki-NLP/opus-mt-ja-de",
    ("ja", "es"): "Helsinki-NLP/opus-mt-ja-es",
    ("ja", "it"): "Helsinki-NLP/opus-mt-ja-it",
    ("ja", "pt"): "Helsinki-NLP/opus-mt-ja-pt",
    ("ja", "nl"): "Helsinki-NLP/opus-mt-ja-nl",
    ("ja", "pl"): "Helsinki-NLP/opus-mt-ja-pl",
    ("ja", "ru"): "Helsinki-NLP/opus-mt-ja-ru",
    # English to other languages
    ("en", "fr"): "Helsinki-NLP/opus-mt-en-fr",
    ("en", "de"): "Helsinki-NLP/opus-mt-en-de",
    ("en", "es"): "Helsinki-NLP/opus-mt-en-es",
    ("en", "it"): "Helsinki-NLP/opus-mt-en-it",
    ("en", "nl"): "Helsinki-NLP/opus-mt-en-nl",
    ("en", "ru"): "Helsinki-NLP/opus-mt-en-ru",
    ("en", "zh"): "Helsinki-NLP/opus-mt-en-zh",
    # Other languages to English
    ("fr", "en"): "Helsinki-NLP/opus-mt-fr-en",
    ("de", "en"): "Helsinki-NLP/opus-mt-de-en",
    ("es", "en"): "Helsinki-NLP/opus-mt-es-en",
    ("it", "en"): "Helsinki-NLP/opus-mt-it-en",
    ("nl", "en"): "Helsinki-NLP/opus-mt-nl-en",
    ("pl", "en"): "Helsinki-NLP/opus-mt-pl-en",
    ("ru", "en"): "Helsinki-NLP/opus-mt-ru-en",
    ("zh", "en"): "Helsinki-NLP/opus-mt-zh-en",
    ("ko", "en"): "Helsinki-NLP/opus-mt-ko-en",
}

LANGUAGE_NAMES = {
    "de": "German",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "nl": "Dutch",
    "pl": "Polish",
    "pt": "Portuguese",
    "ru": "Russian",
    "zh": "Chinese",
}

# Model size in MB (approximate, varies slightly by language pair)
OPUS_MT_MODEL_SIZE_MB = 300

DEFAULT_MODELS_DIR = CONFIG_DIR / "opus_mt"


def _get_short_path(path: Path) -> str:
    """Convert path to Windows short (8.3) format to handle non-ASCII characters."""
    if sys.platform == "win32":
        import ctypes

        buf = ctypes.create_unicode_buffer(512)
        if ctypes.windll.kernel32.GetShortPathNameW(str(path), buf, 512):
            return buf.value
    return str(path)


class OpusMTModel:
    """A loaded OPUS-MT model for one language pair (CTranslate2 + SentencePiece)."""

    def __init__(self, repo_id: str, model_path: Path, ct2_path: Path):
        import ctranslate2
        import sentencepiece as spm

        self.repo_id = repo_id
        if not (ct2_path / "model.bin").exists():
            self._convert(model_path, ct2_path)

        self._translator = ctranslate2.Translator(_get_short_path(ct2_path), device="auto")

        # Marian models tokenize source and target with separate vocabularies
        self._source_spm = spm.SentencePieceProcessor()
        self._source_spm.Load(str(model_path / "source.spm"))
        self._target_spm = spm.SentencePieceProcessor()
        self._target_spm.Load(str(model_path / "target.spm"))

        logger.info("opus-mt ready", repo=repo_id)

    @staticmethod
    def _convert(model_path: Path, ct2_path: Path) -> None:
        """Convert the Marian checkpoint to CTranslate2 format."""
        import ctranslate2

        logger.info("converting opus-mt to ctranslate2 format", path=str(ct2_path))
        ct2_path.parent.mkdir(parents=True, exist_ok=True)
        converter = ctranslate2.converters.TransformersConverter(str(model_path))
        converter.convert(str(ct2_path), quantization="int8", force=True)

    def translate(self, text: str) -> str:
        # Translate line by line so the layout of the recognized text survives
        lines = text.split("\n")
        batch = [self._source_spm.EncodeAsPieces(line) + ["</s>"] for line in lines if line.strip()]
        if not batch:
            return ""

        results = self._translator.translate_batch(batch, beam_size=5, max_decoding_length=256)
        translated = iter(self._target_spm.DecodePieces(r.hypotheses[0]).strip() for r in results)
        return "\n".join(next(translated) if line.strip() else "" for line in lines)

    def close(self) -> None:
        self._translator.unload_model()


class OpusMTTranslator(Translator):
    """Translates text offline using Helsinki-NLP OPUS-MT models.

    Models are fetched from the HuggingFace Hub on demand. When the model for
    the selected pair is missing, ``check_environment`` asks the user to
    download it in the background and reports the environment as not ready.
    """

    provider_type = TranslationProviderType.OPUS_MT

    def __init__(
        self,
        preferences: Preferences,
        model_manager: ModelManager,
        surface: OverlaySurface,
        models_dir: Path | None = None,
    ):
        super().__init__(preferences)
        self._model_manager = model_manager
        self._surface = surface
        self._models_dir = models_dir or DEFAULT_MODELS_DIR
        self._model: OpusMTModel | None = None
        self._acquisition: asyncio.Task | None = None

    @property
    def acquisition(self) -> asyncio.Task | None:
        """The running model acquisition flow, if any."""
        return self._acquisition

    @classmethod
    def language_codes(cls) -> list[str]:
        return sorted({code for pair in OPUS_MT_MODELS for code in pair})

    def supported_languages(self) -> list[TranslationLanguage]:
        codes = self.language_codes()
        selected = self.selected_lang_code(codes)
        return [
            TranslationLanguage(code=code, display_name=LANGUAGE_NAMES.get(code, code), selected=code == selected)
            for code in codes
        ]

    def repo_for(self, source_lang_code: str, target_lang_code: str) -> str | None:
        return OPUS_MT_MODELS.get((primary_subtag(source_lang_code), primary_subtag(target_lang_code)))

    async def check_environment(self) -> bool:
        if self._acquisition is not None and not self._acquisition.done():
            self._surface.show_message(messages.TITLE_RESOURCES_DOWNLOADING, messages.MSG_WAIT_FOR_RESOURCES_DOWNLOADING)
            return False

        target = self.selected_lang_code(self.language_codes())
        repo_id = self.repo_for(self._preferences.selected_ocr_lang, target)
        if repo_id is None:
            # Nothing to download; translate() reports the unsupported pair
            return True

        try:
            missing = await asyncio.to_thread(self._model_manager.missing, [repo_id])
        except Exception as e:
            logger.error("unable to check models", repo=repo_id, error=str(e))
            self._surface.show_message(messages.TITLE_FAILED_TO_CHECK_RESOURCES, str(e))
            return False

        if not missing:
            return True

        logger.info("models missing", repos=",".join(missing))
        self._acquisition = asyncio.get_running_loop().create_task(self._acquire(missing))
        return False

    async def _acquire(self, repo_ids: list[str]) -> bool:
        """Confirm, download and report on the missing models."""
        listing = "\n".join(f"- {repo_id} (~{OPUS_MT_MODEL_SIZE_MB}MB)" for repo_id in repo_ids)
        if not await self._surface.confirm(messages.TITLE_DOWNLOAD, f"{messages.MSG_MODELS_TO_DOWNLOAD}\n{listing}"):
            logger.info("model download declined")
            return False

        self._surface.show_message(messages.TITLE_RESOURCES_DOWNLOADING, messages.MSG_WAIT_FOR_RESOURCES_DOWNLOADING)
        try:
            await asyncio.to_thread(self._model_manager.install, repo_ids)
        except ModelDownloadError as e:
            self._surface.show_message(messages.TITLE_DOWNLOADING_RESOURCES_FAILED, str(e))
            return False

        self._surface.show_message(messages.TITLE_RESOURCES_DOWNLOADED, messages.MSG_RESOURCES_DOWNLOADED)
        return True

    async def _translate(self, text: str, source_lang_code: str) -> TranslationResult:
        source = primary_subtag(source_lang_code)
        target = self.selected_lang_code(self.language_codes())
        if source == primary_subtag(target):
            return Translated(text, self.provider_type)

        repo_id = self.repo_for(source, target)
        if repo_id is None:
            logger.info("language pair not supported", source=source, target=target)
            return SourceLangNotSupported(self.provider_type)

        model = await asyncio.to_thread(self._get_model, repo_id)
        translated = await asyncio.to_thread(model.translate, text)
        return Translated(translated, self.provider_type)

    def _get_model(self, repo_id: str) -> OpusMTModel:
        """Return the model for ``repo_id``, replacing the cached one on pair change."""
        if self._model is not None and self._model.repo_id == repo_id:
            return self._model

        self.close()
        model_path = self._model_manager.get_model_path(repo_id)
        if model_path is None:
            raise ModelDownloadError(f"Model {repo_id} is not downloaded")

        logger.info("loading opus-mt", repo=repo_id)
        self._model = OpusMTModel(repo_id, model_path, self._models_dir / repo_id.replace("/", "--"))
        return self._model

    def close(self) -> None:
        if self._model is not None:
            self._model.close()
            self._model = None
