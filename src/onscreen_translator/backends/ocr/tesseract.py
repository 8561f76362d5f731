"""Tesseract OCR backend with downloadable language data."""

import asyncio
import os
import threading
from pathlib import Path

import requests
from PIL import Image

from ... import log
from ...config import CONFIG_DIR, Settings
from ...errors import DownloadCancelledError, ModelDownloadError, RecognitionError, RecognitionErrorReason
from ...geometry import Rect
from ..base import (
    ModelDownloader,
    RecognitionLanguage,
    RecognitionProviderType,
    RecognitionResult,
    TextRecognizer,
)

logger = log.get_logger("tesseract")

TRAINED_DATA_SUFFIX = ".traineddata"
TESSDATA_URL = "https://github.com/tesseract-ocr/tessdata_fast/raw/main/{code}" + TRAINED_DATA_SUFFIX
DEFAULT_TESSDATA_DIR = CONFIG_DIR / "tesseract" / "tessdata"

DOWNLOAD_CHUNK_SIZE = 64 * 1024
DOWNLOAD_TIMEOUT_SECONDS = 30

# Tesseract fails on images of one or two pixels
MIN_IMAGE_SIZE = 3

# (tessdata code, display code, display name)
LANGUAGES = [
    ("ara", "ar", "Arabic"),
    ("chi_sim", "zh-CN", "Chinese (Simplified)"),
    ("chi_tra", "zh-TW", "Chinese (Traditional)"),
    ("ces", "cs", "Czech"),
    ("dan", "da", "Danish"),
    ("nld", "nl", "Dutch"),
    ("eng", "en", "English"),
    ("fin", "fi", "Finnish"),
    ("fra", "fr", "French"),
    ("deu", "de", "German"),
    ("ell", "el", "Greek"),
    ("heb", "he", "Hebrew"),
    ("hin", "hi", "Hindi"),
    ("hun", "hu", "Hungarian"),
    ("ind", "id", "Indonesian"),
    ("ita", "it", "Italian"),
    ("jpn", "ja", "Japanese"),
    ("kor", "ko", "Korean"),
    ("pol", "pl", "Polish"),
    ("por", "pt", "Portuguese"),
    ("rus", "ru", "Russian"),
    ("spa", "es", "Spanish"),
    ("swe", "sv", "Swedish"),
    ("tha", "th", "Thai"),
    ("tur", "tr", "Turkish"),
    ("ukr", "uk", "Ukrainian"),
    ("vie", "vi", "Vietnamese"),
]


class TesseractRecognizer(TextRecognizer, ModelDownloader):
    """Recognizes text with Tesseract.

    Language data lives in a private tessdata directory and is downloaded on
    demand from the tessdata_fast repository.
    """

    provider_type = RecognitionProviderType.TESSERACT
    min_image_size = MIN_IMAGE_SIZE

    def __init__(self, settings: Settings, tessdata_dir: Path | None = None):
        self._settings = settings
        self._tessdata_dir = tessdata_dir or DEFAULT_TESSDATA_DIR
        self._cancel_event = threading.Event()
        self._downloading = False

    @property
    def tessdata_dir(self) -> Path:
        return self._tessdata_dir

    def trained_data_file(self, inner_code: str) -> Path:
        return self._tessdata_dir / f"{inner_code}{TRAINED_DATA_SUFFIX}"

    def downloaded_codes(self) -> set[str]:
        """Inner codes whose traineddata file is present."""
        if not self._tessdata_dir.is_dir():
            return set()
        return {
            path.name[: -len(TRAINED_DATA_SUFFIX)]
            for path in self._tessdata_dir.iterdir()
            if path.name.endswith(TRAINED_DATA_SUFFIX)
        }

    def supported_languages(self) -> list[RecognitionLanguage]:
        downloaded = self.downloaded_codes()
        languages = [
            RecognitionLanguage(
                code=display_code,
                display_name=name,
                selected=False,
                downloaded=inner_code in downloaded,
                provider=self.provider_type,
                inner_code=inner_code,
            )
            for inner_code, display_code, name in LANGUAGES
        ]
        return sorted(languages, key=lambda lang: lang.display_name)

    def _recognize(self, language: RecognitionLanguage, image: Image.Image) -> RecognitionResult:
        if not self.trained_data_file(language.inner_code).exists():
            raise RecognitionError(
                RecognitionErrorReason.MODEL_MISSING,
                f"Tesseract data for {language.display_name} is not downloaded",
            )

        import pytesseract

        data = pytesseract.image_to_data(
            image.convert("RGB"),
            lang=language.inner_code,
            config=f'--tessdata-dir "{self._tessdata_dir}"',
            output_type=pytesseract.Output.DICT,
        )

        # block_num -> list of (line_num, word, box)
        blocks: dict[int, list[tuple[int, str, Rect]]] = {}
        for i, word in enumerate(data["text"]):
            word = word.strip()
            if not word or float(data["conf"][i]) < 0:
                continue
            left, top = data["left"][i], data["top"][i]
            box = Rect(left, top, left + data["width"][i], top + data["height"][i])
            blocks.setdefault(data["block_num"][i], []).append((data["line_num"][i], word, box))

        texts = []
        boxes = []
        for block_num in sorted(blocks):
            words = blocks[block_num]
            lines: dict[int, list[str]] = {}
            union = words[0][2]
            for line_num, word, box in words:
                lines.setdefault(line_num, []).append(word)
                union = union.union(box)
            texts.append("\n".join(" ".join(lines[n]) for n in sorted(lines)))
            boxes.append(union)

        joiner = self._settings.text_block_joiner.joiner
        return RecognitionResult(
            lang_code=language.code,
            text=joiner.join(texts),
            bounding_boxes=tuple(boxes),
        )

    async def download_model(self, inner_code: str) -> bool:
        self._cancel_event.clear()
        return await asyncio.to_thread(self._download, inner_code)

    def cancel_download(self) -> None:
        if not self._downloading:
            return
        logger.info("cancelling download")
        self._cancel_event.set()

    def _download(self, inner_code: str) -> bool:
        """Stream a traineddata file into the tessdata directory."""
        dest = self.trained_data_file(inner_code)
        temp = dest.with_suffix(dest.suffix + ".part")
        url = TESSDATA_URL.format(code=inner_code)

        self._tessdata_dir.mkdir(parents=True, exist_ok=True)
        self._downloading = True
        logger.info("downloading tesseract data", code=inner_code, url=url)
        try:
            with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT_SECONDS) as response:
                if not response.ok:
                    raise ModelDownloadError(
                        f"Download Tesseract data failed, status: {response.status_code}"
                    )
                with open(temp, "wb") as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if self._cancel_event.is_set():
                            raise DownloadCancelledError(f"Download of {inner_code} cancelled")
                        f.write(chunk)
            os.replace(temp, dest)
            logger.info("tesseract data downloaded", code=inner_code, path=str(dest))
            return True
        except requests.RequestException as e:
            logger.warning("download failed", code=inner_code, error=str(e))
            raise ModelDownloadError(f"Download Tesseract data failed: {e}") from e
        finally:
            self._downloading = False
            if temp.exists():
                temp.unlink()
