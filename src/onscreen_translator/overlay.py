"""Headless overlay surface that writes session output to a text stream."""

import sys
from typing import TextIO

from . import log
from .backends.base import RecognitionResult, TranslationProviderType
from .geometry import Rect
from .interfaces import OverlayElement
from .session.state import DisplayResult

logger = log.get_logger("overlay")


class ConsoleOverlay:
    """Renders recognized and translated text as plain lines.

    Attached elements are tracked so the session can detach them again.
    Dialogs are answered with ``auto_confirm`` and errors are acknowledged
    immediately.
    """

    def __init__(self, stream: TextIO | None = None, auto_confirm: bool = False):
        self._stream = stream or sys.stdout
        self._auto_confirm = auto_confirm
        self._attached: set[OverlayElement] = set()
        self.clipboard: str | None = None
        self.last_result: DisplayResult | None = None

    def _write(self, line: str) -> None:
        print(line, file=self._stream, flush=True)

    def attach(self, element: OverlayElement) -> None:
        logger.debug("attach", element=element.value)
        self._attached.add(element)

    def detach(self, element: OverlayElement) -> None:
        logger.debug("detach", element=element.value)
        self._attached.discard(element)

    def is_attached(self, element: OverlayElement) -> bool:
        return element in self._attached

    def show_recognizing(self) -> None:
        logger.info("recognizing")

    def show_recognized(self, result: RecognitionResult, screen_boxes: list[Rect], union: Rect | None) -> None:
        logger.info("recognized", lang=result.lang_code, blocks=len(screen_boxes), area=str(union))

    def show_translating(self, provider: TranslationProviderType) -> None:
        logger.info("translating", provider=provider.key)

    def show_result(self, result: DisplayResult) -> None:
        self.last_result = result
        if not result.hide_recognized:
            self._write(f"[{result.recognized.lang_code}] {result.recognized.text}")
        if result.translated_text is not None:
            self._write(f"> {result.translated_text}")
        if result.hint:
            self._write(f"({result.hint})")

    async def show_error(self, message: str) -> None:
        self._write(f"Error: {message}")

    def show_message(self, title: str, message: str) -> None:
        self._write(f"{title}: {message}")

    async def confirm(self, title: str, message: str) -> bool:
        self._write(f"{title}: {message}")
        answer = "yes" if self._auto_confirm else "no"
        self._write(f"-> {answer}")
        return self._auto_confirm

    def copy_to_clipboard(self, label: str, text: str) -> None:
        logger.info("copied to clipboard", label=label, chars=len(text))
        self.clipboard = text
