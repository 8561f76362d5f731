"""Screen extraction backed by Pillow's ImageGrab."""

import asyncio

from PIL import Image, ImageGrab

from . import log
from .geometry import Rect

logger = log.get_logger("capture")


def _close_late_image(grab: asyncio.Future) -> None:
    if grab.cancelled() or grab.exception() is not None:
        return
    logger.debug("closing late screen grab")
    grab.result().close()


class ImageGrabExtractor:
    """Grabs screen regions with ``PIL.ImageGrab``.

    Works on Windows and macOS, and on Linux under X11. Where grabbing is not
    possible at all the extractor reports the permission as not granted.
    """

    def __init__(self, all_screens: bool = False):
        self._all_screens = all_screens
        self._bounds: Rect | None = None
        self._granted: bool | None = None

    @property
    def is_granted(self) -> bool:
        if self._granted is None:
            try:
                self.screen_bounds()
                self._granted = True
            except OSError as e:
                logger.warning("screen capture unavailable", error=str(e))
                self._granted = False
        return self._granted

    def screen_bounds(self) -> Rect:
        if self._bounds is None:
            with ImageGrab.grab(all_screens=self._all_screens) as screen:
                width, height = screen.size
            self._bounds = Rect(0, 0, width, height)
            logger.debug("screen bounds", bounds=str(self._bounds))
        return self._bounds

    async def extract(self, parent: Rect, crop: Rect) -> Image.Image:
        """Grab ``crop``, given relative to ``parent``, from the screen.

        The grab thread cannot be interrupted; if the caller gives up (timeout
        or cancellation) the image it eventually returns is closed.
        """
        bbox = crop.offset(parent.left, parent.top).as_tuple()
        grab = asyncio.ensure_future(
            asyncio.to_thread(ImageGrab.grab, bbox=bbox, all_screens=self._all_screens)
        )
        try:
            return await asyncio.shield(grab)
        except asyncio.CancelledError:
            grab.add_done_callback(_close_late_image)
            raise

    def release(self) -> None:
        self._bounds = None
