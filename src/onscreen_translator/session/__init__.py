"""Session state machine and orchestrator."""

from .orchestrator import SessionOrchestrator
from .state import (
    ALLOWED_TRANSITIONS,
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
)

__all__ = [
    "SessionOrchestrator",
    "SessionState",
    "ALLOWED_TRANSITIONS",
    "Idle",
    "Circling",
    "Circled",
    "Capturing",
    "Recognizing",
    "Translating",
    "Displaying",
    "Failed",
    "DisplayResult",
]
