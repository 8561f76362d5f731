"""Session states and the transitions allowed between them."""

from dataclasses import dataclass, field
from typing import Union

from ..backends.base import RecognitionResult, TranslationProviderType
from ..geometry import Rect


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Circling:
    pass


@dataclass(frozen=True)
class Circled:
    """A finalized selection, ready to be captured."""

    parent: Rect
    selection: Rect


@dataclass(frozen=True)
class Capturing:
    parent: Rect
    selection: Rect


@dataclass(frozen=True)
class Recognizing:
    parent: Rect
    selection: Rect


@dataclass(frozen=True)
class Translating:
    recognized: RecognitionResult


@dataclass(frozen=True)
class Displaying:
    result: "DisplayResult"


@dataclass(frozen=True)
class Failed:
    message: str


SessionState = Union[Idle, Circling, Circled, Capturing, Recognizing, Translating, Displaying, Failed]

# source -> legal targets; anything else is rejected
ALLOWED_TRANSITIONS: dict[type, frozenset[type]] = {
    Idle: frozenset({Circling}),
    Circling: frozenset({Idle, Circled}),
    Circled: frozenset({Idle, Capturing}),
    Capturing: frozenset({Idle, Recognizing, Failed}),
    Recognizing: frozenset({Idle, Translating, Failed}),
    Translating: frozenset({Displaying, Failed, Idle}),
    Displaying: frozenset({Idle, Translating}),
    Failed: frozenset({Idle}),
}


def can_transition(current: SessionState, target: SessionState) -> bool:
    return type(target) in ALLOWED_TRANSITIONS[type(current)]


@dataclass(frozen=True)
class DisplayResult:
    """What the result panel shows for one session.

    ``translated_text`` is None when nothing was translated in-process; in
    that case ``unsupported_lang`` tells whether the provider rejected the
    source language or translation was skipped on purpose.
    """

    recognized: RecognitionResult
    screen_boxes: tuple[Rect, ...] = field(default_factory=tuple)
    union: Rect | None = None
    translated_text: str | None = None
    provider_type: TranslationProviderType | None = None
    unsupported_lang: bool = False
    hint: str | None = None
    hide_recognized: bool = False

    @property
    def is_translated(self) -> bool:
        return self.translated_text is not None
