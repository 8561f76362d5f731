"""Exception types shared by providers and the session orchestrator."""

from enum import Enum


class OnscreenTranslatorError(Exception):
    """Base class for errors raised by this package."""


class RecognitionErrorReason(Enum):
    """Why a recognition attempt failed."""

    IMAGE_TOO_SMALL = "image_too_small"
    MODEL_MISSING = "model_missing"
    BACKEND = "backend"


class RecognitionError(OnscreenTranslatorError):
    """Raised by a recognizer when text recognition cannot complete."""

    def __init__(
        self,
        reason: RecognitionErrorReason,
        message: str = "",
        cause: BaseException | None = None,
    ):
        super().__init__(message or (str(cause) if cause else reason.value))
        self.reason = reason
        self.cause = cause


class CaptureTimeoutError(OnscreenTranslatorError):
    """Raised when the screen extraction does not finish in time."""


class PermissionNotGrantedError(OnscreenTranslatorError):
    """Raised when the screen capture permission was never granted."""


class ModelDownloadError(OnscreenTranslatorError):
    """Raised when an on-disk model could not be downloaded."""


class DownloadCancelledError(ModelDownloadError):
    """Raised when the user cancels an in-flight model download."""


def is_connectivity_error(error: BaseException) -> bool:
    """Whether ``error`` looks like a network/IO failure.

    ``requests`` exceptions derive from ``IOError`` so they are covered too.
    """
    return isinstance(error, OSError)
