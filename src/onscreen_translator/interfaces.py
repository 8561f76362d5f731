"""Collaborator interfaces the session core calls into.

Concrete implementations live in ``capture``, ``overlay`` and ``telemetry``;
tests substitute fakes.
"""

from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from PIL import Image

from .backends.base import RecognitionResult, TranslationProviderType
from .geometry import Rect

if TYPE_CHECKING:
    from .session.state import DisplayResult


class OverlayElement(Enum):
    """Visual elements that can be attached to the overlay surface."""

    MAIN_BAR = "main_bar"
    SELECTION = "selection"
    RESULT_PANEL = "result_panel"
    DIALOG = "dialog"


class ScreenExtractor(Protocol):
    @property
    def is_granted(self) -> bool: ...

    def screen_bounds(self) -> Rect:
        """The capturable screen area (the parent bound)."""
        ...

    async def extract(self, parent: Rect, crop: Rect) -> Image.Image:
        """Grab ``crop`` (relative to ``parent``) from the screen.

        May raise ``CaptureTimeoutError`` or ``PermissionNotGrantedError``.
        """
        ...

    def release(self) -> None: ...


class OverlaySurface(Protocol):
    def attach(self, element: OverlayElement) -> None: ...

    def detach(self, element: OverlayElement) -> None: ...

    def is_attached(self, element: OverlayElement) -> bool: ...

    def show_recognizing(self) -> None: ...

    def show_recognized(
        self, result: RecognitionResult, screen_boxes: list[Rect], union: Rect | None
    ) -> None: ...

    def show_translating(self, provider: TranslationProviderType) -> None: ...

    def show_result(self, result: "DisplayResult") -> None: ...

    async def show_error(self, message: str) -> None:
        """Show an error; returns once the user acknowledged it."""
        ...

    def show_message(self, title: str, message: str) -> None: ...

    async def confirm(self, title: str, message: str) -> bool: ...

    def copy_to_clipboard(self, label: str, text: str) -> None: ...


class TelemetrySink(Protocol):
    def log_event(self, name: str, **params: Any) -> None: ...
