"""Selection rectangle math.

Everything here is a pure function over immutable rectangles. Coordinates
follow screen conventions: x grows to the right, y grows downwards, and
``right``/``bottom`` are exclusive edges so ``width == right - left``.
"""

from dataclasses import dataclass, replace
from typing import Iterable, NamedTuple

# Smallest selection (in pixels) that is worth sending to a recognizer
MIN_SCREEN_CROP_SIZE = 32


class Point(NamedTuple):
    x: int
    y: int


class EdgeDeltas(NamedTuple):
    """Per-edge drag offsets applied while resizing a selection."""

    left: int = 0
    top: int = 0
    right: int = 0
    bottom: int = 0


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle."""

    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    def contains(self, other: "Rect") -> bool:
        """Whether ``other`` lies completely inside this rectangle."""
        return (
            self.left <= other.left
            and self.top <= other.top
            and other.right <= self.right
            and other.bottom <= self.bottom
        )

    def offset(self, dx: int, dy: int) -> "Rect":
        return Rect(self.left + dx, self.top + dy, self.right + dx, self.bottom + dy)

    def union(self, other: "Rect") -> "Rect":
        return Rect(
            min(self.left, other.left),
            min(self.top, other.top),
            max(self.right, other.right),
            max(self.bottom, other.bottom),
        )

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.left, self.top, self.right, self.bottom)

    def to_dict(self) -> dict:
        return {"left": self.left, "top": self.top, "right": self.right, "bottom": self.bottom}

    @classmethod
    def from_dict(cls, data: dict) -> "Rect":
        return cls(int(data["left"]), int(data["top"]), int(data["right"]), int(data["bottom"]))

    def __str__(self) -> str:
        return f"({self.left}, {self.top}, {self.right}, {self.bottom})"


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def compute_box(start: Point, end: Point) -> Rect:
    """Normalize two arbitrary drag corners into a rectangle."""
    return Rect(
        left=min(start.x, end.x),
        top=min(start.y, end.y),
        right=max(start.x, end.x),
        bottom=max(start.y, end.y),
    )


def is_degenerate(parent: Rect, min_size: int = MIN_SCREEN_CROP_SIZE) -> bool:
    """Whether no selection of ``min_size`` can fit inside ``parent``."""
    return parent.width < min_size or parent.height < min_size


def fix_size(rect: Rect, parent: Rect, min_size: int = MIN_SCREEN_CROP_SIZE) -> Rect:
    """Grow ``rect`` to at least ``min_size`` in both dimensions inside ``parent``.

    The rectangle is first clamped into the parent. A missing width is added
    to the right edge; if that pushes past the parent's right edge, the whole
    box slides left by the overflow. Heights are fixed the same way using the
    bottom edge.

    When ``parent`` itself is smaller than ``min_size`` the result cannot
    satisfy both constraints; callers check :func:`is_degenerate` first.
    """
    left = _clamp(rect.left, parent.left, parent.right)
    right = _clamp(rect.right, parent.left, parent.right)
    top = _clamp(rect.top, parent.top, parent.bottom)
    bottom = _clamp(rect.bottom, parent.top, parent.bottom)

    if right - left < min_size:
        right += min_size - (right - left)
        if right > parent.right:
            move = right - parent.right
            right -= move
            left -= move

    if bottom - top < min_size:
        bottom += min_size - (bottom - top)
        if bottom > parent.bottom:
            move = bottom - parent.bottom
            bottom -= move
            top -= move

    return Rect(left, top, right, bottom)


def resize(
    base: Rect,
    deltas: EdgeDeltas,
    parent: Rect,
    min_size: int = MIN_SCREEN_CROP_SIZE,
) -> Rect:
    """Apply per-edge drag deltas to ``base`` and re-fix its size.

    Each edge is clamped to the parent, and the right/bottom edges are kept at
    least one pixel past left/top before :func:`fix_size` runs.
    """
    left = _clamp(base.left + deltas.left, parent.left, parent.right - 1)
    right = min(max(left + 1, base.right + deltas.right), parent.right)
    top = _clamp(base.top + deltas.top, parent.top, parent.bottom - 1)
    bottom = min(max(top + 1, base.bottom + deltas.bottom), parent.bottom)

    return fix_size(replace(base, left=left, top=top, right=right, bottom=bottom), parent, min_size)


def to_screen_space(
    boxes: Iterable[Rect], parent: Rect, selection: Rect
) -> tuple[list[Rect], Rect | None]:
    """Move bitmap-space boxes into screen space.

    Boxes produced by a recognizer are relative to the cropped image, whose
    origin sits at ``selection``'s top-left corner inside ``parent``.

    Returns:
        Tuple of (translated boxes, union of all boxes or None when empty).
    """
    dx = parent.left + selection.left
    dy = parent.top + selection.top
    moved = [box.offset(dx, dy) for box in boxes]

    union = None
    for box in moved:
        union = box if union is None else union.union(box)
    return moved, union
