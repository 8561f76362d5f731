"""Session orchestrator: the state machine behind one capture session.

A session moves through::

    Idle -> Circling -> Circled -> Capturing -> Recognizing -> Translating -> Displaying
                                        \\             \\              \\
                                         +-------------+--------------+--> Failed -> Idle

Every change goes through ``_change_state``, which rejects anything not in
``ALLOWED_TRANSITIONS``. The capture, recognition and translation stages run
as one asyncio task (the job); only one job exists at a time.
"""

import asyncio
from dataclasses import replace
from typing import Callable

from PIL import Image

from .. import log, messages
from ..backends.base import (
    OCROnlyPassthrough,
    OuterAppLaunched,
    RecognitionResult,
    SourceLangNotSupported,
    Translated,
    TranslationFailed,
    TranslationProviderType,
    TranslationResult,
)
from ..backends.registry import ProviderRegistry
from ..catalog import LanguageCatalog
from ..config import Preferences, Settings
from ..errors import (
    CaptureTimeoutError,
    PermissionNotGrantedError,
    RecognitionError,
    RecognitionErrorReason,
    is_connectivity_error,
)
from ..geometry import EdgeDeltas, Point, Rect, compute_box, fix_size, is_degenerate, resize, to_screen_space
from ..interfaces import OverlayElement, OverlaySurface, ScreenExtractor, TelemetrySink
from .state import (
    Capturing,
    Circled,
    Circling,
    DisplayResult,
    Displaying,
    Failed,
    Idle,
    Recognizing,
    SessionState,
    Translating,
    can_transition,
)

logger = log.get_logger("session")

# Lets the selection overlay disappear before the screen is grabbed
SETTLE_DELAY_SECONDS = 0.1

TRANSIENT_ELEMENTS = (OverlayElement.SELECTION, OverlayElement.RESULT_PANEL, OverlayElement.DIALOG)

StateListener = Callable[[SessionState, SessionState], None]


def _name(state: SessionState) -> str:
    return type(state).__name__


def _local_bound(parent: Rect) -> Rect:
    """The parent bound in its own frame; selections are relative to it."""
    return Rect(0, 0, parent.width, parent.height)


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        # No running loop
        return None


class SessionOrchestrator:
    """Owns the session state and sequences the pipeline stages.

    All methods must be called from the event loop thread. Events that are
    not valid in the current state are ignored with a warning.
    """

    def __init__(
        self,
        settings: Settings,
        preferences: Preferences,
        registry: ProviderRegistry,
        catalog: LanguageCatalog,
        extractor: ScreenExtractor,
        surface: OverlaySurface,
        telemetry: TelemetrySink,
        settle_delay: float = SETTLE_DELAY_SECONDS,
    ):
        self._settings = settings
        self._preferences = preferences
        self._registry = registry
        self._catalog = catalog
        self._extractor = extractor
        self._surface = surface
        self._telemetry = telemetry
        self._settle_delay = settle_delay

        self._state: SessionState = Idle()
        self._listeners: list[StateListener] = []
        self._job: asyncio.Task | None = None
        self._image: Image.Image | None = None
        self._resize_base: Rect | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def image(self) -> Image.Image | None:
        """The captured image, held only between capture and recognition."""
        return self._image

    def add_listener(self, listener: StateListener) -> None:
        """Register ``listener(old, new)``, called after every accepted transition."""
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        self._listeners.remove(listener)

    def _state_in(self, *state_types: type) -> bool:
        return isinstance(self._state, state_types)

    def _change_state(self, new_state: SessionState) -> bool:
        old_state = self._state
        if not can_transition(old_state, new_state):
            logger.error("illegal transition", from_state=_name(old_state), to_state=_name(new_state))
            return False

        self._state = new_state
        logger.info("state changed", from_state=_name(old_state), to_state=_name(new_state))
        for listener in list(self._listeners):
            try:
                listener(old_state, new_state)
            except Exception as e:
                logger.error("state listener failed", exc_info=e)
        return True

    def _ignore(self, event: str) -> None:
        logger.warning("event ignored", event_name=event, state=_name(self._state))

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    async def start_circling(self) -> bool:
        """Enter area selection if the translation provider is ready.

        Returns:
            True if the session is now Circling.
        """
        if not self._state_in(Idle):
            self._ignore("start_circling")
            return False

        translator = self._registry.selected_translator()
        try:
            ready = await translator.check_environment()
        except Exception as e:
            logger.error("environment check failed", provider=translator.provider_type.key, exc_info=e)
            ready = False

        if not ready:
            logger.info("translation environment not ready", provider=translator.provider_type.key)
            return False

        # Another event may have won while the check was suspended
        if not self._state_in(Idle):
            self._ignore("start_circling")
            return False

        self._telemetry.log_event("start_area_selection")
        if not self._change_state(Circling()):
            return False
        self._surface.attach(OverlayElement.SELECTION)
        return True

    def last_selection(self) -> Rect | None:
        """The selection to restore when a new selection starts, if enabled."""
        if not self._settings.remember_last_selection:
            return None
        return self._preferences.last_selection_area

    def select_area(self, parent: Rect, start: Point, end: Point) -> Rect | None:
        """Finalize a drag from ``start`` to ``end`` inside ``parent``.

        ``parent`` is the capturable area in screen coordinates; the drag
        points and the resulting selection are relative to its top-left corner.

        Returns:
            The fixed selection, or None if the event was ignored.
        """
        if not self._state_in(Circling, Circled):
            self._ignore("select_area")
            return None

        min_size = self._settings.min_crop_size
        if is_degenerate(parent, min_size):
            logger.warning("parent bound smaller than minimum crop size", parent=str(parent), min_size=min_size)
            return None

        selection = fix_size(compute_box(start, end), _local_bound(parent), min_size)
        self._resize_base = None
        self._set_selection(parent, selection)
        return selection

    def begin_resize(self) -> None:
        """Remember the current selection as the base of a resize drag."""
        if not self._state_in(Circled):
            self._ignore("begin_resize")
            return
        self._resize_base = self._state.selection

    def resize_selection(self, deltas: EdgeDeltas) -> Rect | None:
        """Resize the selection by ``deltas``, relative to the drag's base."""
        if not self._state_in(Circled):
            self._ignore("resize_selection")
            return None

        parent = self._state.parent
        base = self._resize_base or self._state.selection
        selection = resize(base, deltas, _local_bound(parent), self._settings.min_crop_size)
        self._set_selection(parent, selection)
        return selection

    def _set_selection(self, parent: Rect, selection: Rect) -> None:
        if self._state_in(Circled):
            # A new drag replaces the payload, it is not a transition
            self._state = Circled(parent, selection)
            logger.debug("selection updated", selection=str(selection))
        elif not self._change_state(Circled(parent, selection)):
            return

        if self._settings.remember_last_selection:
            self._preferences.last_selection_area = selection

    def cancel_circling(self) -> None:
        if not self._state_in(Circling, Circled):
            self._ignore("cancel_circling")
            return
        self.back_to_idle()

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def start_capture(self, ocr_lang: str | None = None) -> bool:
        """Start the capture -> recognize -> translate job for the selection.

        Args:
            ocr_lang: OCR language code; the selected language when None.

        Returns:
            True if a job was started.
        """
        if not self._state_in(Circled):
            self._ignore("start_capture")
            return False

        loop = asyncio.get_running_loop()
        parent, selection = self._state.parent, self._state.selection
        if not self._change_state(Capturing(parent, selection)):
            return False

        self._surface.detach(OverlayElement.SELECTION)
        self._job = loop.create_task(
            self._run_job(self._pipeline(parent, selection, ocr_lang))
        )
        return True

    async def retranslate(self) -> bool:
        """Translate the displayed recognition result again, without re-capturing."""
        if not self._state_in(Displaying):
            self._ignore("retranslate")
            return False

        translator = self._registry.selected_translator()
        try:
            ready = await translator.check_environment()
        except Exception as e:
            logger.error("environment check failed", provider=translator.provider_type.key, exc_info=e)
            ready = False

        if not ready:
            logger.info("translation environment not ready", provider=translator.provider_type.key)
            return False

        if not self._state_in(Displaying):
            self._ignore("retranslate")
            return False

        display = self._state.result
        if not self._change_state(Translating(display.recognized)):
            return False
        self._job = asyncio.get_running_loop().create_task(
            self._run_job(self._translate(display.recognized, display.screen_boxes, display.union))
        )
        return True

    async def wait(self) -> None:
        """Wait until the current job, if any, has finished."""
        while self._job is not None and not self._job.done():
            await asyncio.gather(self._job, return_exceptions=True)

    async def _run_job(self, stages) -> None:
        try:
            await stages
        except asyncio.CancelledError:
            logger.info("session job cancelled")
            raise
        except Exception as e:
            logger.error("unexpected error in session", state=_name(self._state), exc_info=e)
            self._telemetry.log_event("exception", error=type(e).__name__, message=str(e))
            await self._fail(str(e) or messages.ERROR_UNKNOWN)
        finally:
            self._release_image()

    async def _pipeline(self, parent: Rect, selection: Rect, ocr_lang: str | None) -> None:
        image = await self._capture(parent, selection)
        if image is None:
            return

        self._image = image
        if not self._change_state(Recognizing(parent, selection)):
            return

        recognized = await self._recognize(image, ocr_lang)
        if recognized is None:
            return

        screen_boxes, union = to_screen_space(recognized.bounding_boxes, parent, selection)
        self._surface.show_recognized(recognized, screen_boxes, union)
        if self._settings.auto_copy_result and recognized.text:
            self._surface.copy_to_clipboard(messages.LABEL_RECOGNIZED_TEXT, recognized.text)

        if not self._change_state(Translating(recognized)):
            return
        await self._translate(recognized, tuple(screen_boxes), union)

    async def _capture(self, parent: Rect, selection: Rect) -> Image.Image | None:
        self._telemetry.log_event("capture_start")
        try:
            if not self._extractor.is_granted:
                raise PermissionNotGrantedError(messages.ERROR_PERMISSION_NOT_GRANTED)
            await asyncio.sleep(self._settle_delay)
            image = await asyncio.wait_for(
                self._extractor.extract(parent, selection),
                timeout=self._settings.capture_timeout_seconds,
            )
        except (asyncio.TimeoutError, CaptureTimeoutError):
            logger.warning("screen capture timed out", timeout=self._settings.capture_timeout_seconds)
            self._telemetry.log_event("capture_failed", reason="timeout")
            await self._fail(messages.ERROR_CAPTURE_SCREEN_TIMEOUT)
            return None
        except PermissionNotGrantedError as e:
            self._telemetry.log_event("capture_failed", reason="permission")
            await self._fail(str(e))
            return None
        except Exception as e:
            logger.warning("screen capture failed", exc_info=e)
            self._telemetry.log_event("capture_failed", reason=type(e).__name__)
            await self._fail(str(e) or messages.ERROR_UNKNOWN_CAPTURING_SCREEN)
            return None

        self._telemetry.log_event("capture_finished", width=image.width, height=image.height)
        return image

    async def _recognize(self, image: Image.Image, ocr_lang: str | None) -> RecognitionResult | None:
        recognizer = self._registry.selected_recognizer()
        if ocr_lang is None:
            language = self._catalog.selected_ocr_language()
        else:
            language = recognizer.get_language(ocr_lang)

        self._telemetry.log_event(
            "ocr_start",
            provider=recognizer.provider_type.key,
            lang=language.code if language else ocr_lang,
        )
        self._surface.show_recognizing()
        try:
            if language is None:
                raise RecognitionError(
                    RecognitionErrorReason.BACKEND,
                    f"{recognizer.name} does not support the language {ocr_lang}",
                )
            recognized = await recognizer.recognize(language, image)
        except RecognitionError as e:
            logger.warning("recognition failed", reason=e.reason.name, error=str(e))
            self._telemetry.log_event("ocr_failed", reason=e.reason.value)
            if e.reason == RecognitionErrorReason.IMAGE_TOO_SMALL:
                message = messages.ERROR_SELECTED_AREA_TOO_SMALL
            else:
                message = str(e) or messages.ERROR_UNKNOWN_RECOGNIZING
            await self._fail(message)
            return None
        finally:
            self._release_image()

        self._telemetry.log_event("ocr_finished", lang=recognized.lang_code, chars=len(recognized.text))
        return recognized

    async def _translate(
        self,
        recognized: RecognitionResult,
        screen_boxes: tuple[Rect, ...],
        union: Rect | None,
    ) -> None:
        translator = self._registry.selected_translator()
        provider_type = translator.provider_type

        self._telemetry.log_event("translation_start", provider=provider_type.key)
        self._surface.show_translating(provider_type)
        result = await translator.translate(recognized.text, recognized.lang_code)

        display = DisplayResult(recognized=recognized, screen_boxes=screen_boxes, union=union)
        await self._dispatch(result, provider_type, display, translator.translation_hint)

    async def _dispatch(
        self,
        result: TranslationResult,
        provider_type: TranslationProviderType,
        display: DisplayResult,
        hint: str | None,
    ) -> None:
        if isinstance(result, OuterAppLaunched):
            self._telemetry.log_event("translation_finished", provider=provider_type.key)
            self._reset_to_idle()
        elif isinstance(result, SourceLangNotSupported):
            self._telemetry.log_event("translation_source_lang_not_supported", provider=provider_type.key)
            self._display(
                replace(
                    display,
                    provider_type=provider_type,
                    unsupported_lang=True,
                    hint=messages.MSG_PROVIDER_DOES_NOT_SUPPORT_OCR_LANG,
                )
            )
        elif isinstance(result, OCROnlyPassthrough):
            self._telemetry.log_event("translation_finished", provider=provider_type.key)
            self._display(replace(display, provider_type=provider_type, hint=hint))
        elif isinstance(result, Translated):
            self._telemetry.log_event("translation_finished", provider=provider_type.key)
            self._display(
                replace(
                    display,
                    translated_text=result.text,
                    provider_type=result.provider_type,
                    hide_recognized=self._settings.hide_recognized_after_translate,
                )
            )
        elif isinstance(result, TranslationFailed):
            error = result.error
            self._telemetry.log_event("translation_failed", provider=provider_type.key, error=type(error).__name__)
            if is_connectivity_error(error):
                message = messages.ERROR_CANNOT_CONNECT_TO_TRANSLATION_SERVER
            else:
                message = str(error) or messages.ERROR_UNKNOWN_TRANSLATING
            await self._fail(message)
        else:
            raise TypeError(f"Unknown translation result: {result!r}")

    def _display(self, display: DisplayResult) -> None:
        if not self._change_state(Displaying(display)):
            return
        if not self._surface.is_attached(OverlayElement.RESULT_PANEL):
            self._surface.attach(OverlayElement.RESULT_PANEL)
        self._surface.show_result(display)

    async def _fail(self, message: str) -> None:
        """Show ``message`` to the user, then return to Idle."""
        if not self._change_state(Failed(message)):
            return
        await self._surface.show_error(message)
        # The user may have closed everything while the error was shown
        if self._state_in(Failed):
            self._reset_to_idle()

    # -------------------------------------------------------------------------
    # Cancellation and main bar
    # -------------------------------------------------------------------------

    def back_to_idle(self) -> None:
        """Cancel whatever is running and return to Idle. No-op when Idle."""
        if self._state_in(Idle):
            return

        job = self._job
        if job is not None and not job.done() and job is not _current_task():
            job.cancel()
        self._job = None
        self._reset_to_idle()

    def _reset_to_idle(self) -> None:
        self._release_image()
        self._resize_base = None
        for element in TRANSIENT_ELEMENTS:
            if self._surface.is_attached(element):
                self._surface.detach(element)
        self._extractor.release()
        self._change_state(Idle())

    def _release_image(self) -> None:
        if self._image is not None:
            self._image.close()
            self._image = None

    def hide_all(self) -> None:
        """Close every overlay element, the main bar included."""
        self.back_to_idle()
        self.hide_main_bar()

    def show_main_bar(self) -> tuple[int, int] | None:
        """Attach the main bar.

        Returns:
            The position to restore the bar at, or None for the default one.
        """
        if not self._surface.is_attached(OverlayElement.MAIN_BAR):
            self._surface.attach(OverlayElement.MAIN_BAR)
        if self._settings.restore_last_position:
            return self._preferences.last_bar_position
        return None

    def hide_main_bar(self) -> None:
        if self._surface.is_attached(OverlayElement.MAIN_BAR):
            self._surface.detach(OverlayElement.MAIN_BAR)

    def save_bar_position(self, x: int, y: int) -> None:
        self._preferences.last_bar_position = (x, y)
