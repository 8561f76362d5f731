"""User-facing messages."""

ERROR_CAPTURE_SCREEN_TIMEOUT = "Capturing the screen timed out, please try again."
ERROR_UNKNOWN_CAPTURING_SCREEN = "An unknown error occurred while capturing the screen."
ERROR_SELECTED_AREA_TOO_SMALL = "The selected area is too small to recognize, please select a larger area."
ERROR_UNKNOWN_RECOGNIZING = "An unknown error occurred while recognizing text."
ERROR_CANNOT_CONNECT_TO_TRANSLATION_SERVER = "Unable to connect to the translation server."
ERROR_UNKNOWN_TRANSLATING = "An unknown error occurred while translating."
ERROR_UNKNOWN = "Unknown error."
ERROR_PERMISSION_NOT_GRANTED = "Screen capture permission has not been granted."

TITLE_FAILED_TO_CHECK_RESOURCES = "Failed to check resources"
TITLE_DOWNLOAD = "Download"
MSG_MODELS_TO_DOWNLOAD = "The following translation models need to be downloaded:"
TITLE_RESOURCES_DOWNLOADING = "Downloading resources"
MSG_WAIT_FOR_RESOURCES_DOWNLOADING = "Please wait while the resources are downloaded."
TITLE_RESOURCES_DOWNLOADED = "Resources downloaded"
MSG_RESOURCES_DOWNLOADED = "The resources are ready, you can start translating now."
TITLE_DOWNLOADING_RESOURCES_FAILED = "Downloading resources failed"

MSG_BROWSER_TRANSLATION_HINT = "Select the target language in the browser."
MSG_OCR_ONLY_MODE_HINT = "OCR only mode: recognized text is shown without translation."
MSG_PROVIDER_DOES_NOT_SUPPORT_OCR_LANG = (
    "The translation provider does not support the selected OCR language."
)
MSG_NO_BROWSER_AVAILABLE = "No web browser is available to open the translation page."

LABEL_RECOGNIZED_TEXT = "Recognized text"
