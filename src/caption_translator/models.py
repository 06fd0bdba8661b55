"""Core data types shared by the subtitle pipeline stages.

All geometry is in absolute pixel coordinates of the sampled frame, with the
origin at the top-left corner (the same convention the OCR collaborator uses).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from caption_translator.colors import AssColor


class ScriptClass(str, Enum):
    """Script category used to pick width factors and the wrap strategy."""

    CJK = "cjk"
    LATIN = "latin"


@dataclass(frozen=True)
class TextBox:
    """One OCR-detected word with its position and size.

    Attributes:
        text: Recognized text
        x: Left edge in pixels
        y: Top edge in pixels
        width: Box width in pixels
        height: Box height in pixels
        font_size: Estimated font size in pixels, if the detector provides one
    """

    text: str
    x: float
    y: float
    width: float
    height: float
    font_size: float | None = None

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def effective_font_size(self) -> float:
        """Font size, falling back to 0.8x the box height."""
        if self.font_size:
            return self.font_size
        return round(self.height * 0.8)


@dataclass(frozen=True)
class LineGroup:
    """A cluster of TextBoxes judged to be one visual line.

    The bounding box is the union of the member boxes and ``text`` is the
    members' text joined left-to-right with single spaces.
    """

    text: str
    x: float
    y: float
    width: float
    height: float
    font_size: int
    members: tuple[TextBox, ...] = ()

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2.0

    @property
    def mid_y(self) -> float:
        return self.y + self.height / 2.0

    @property
    def aspect(self) -> float:
        """Width/height ratio, guarding against degenerate boxes."""
        return (self.width or 1) / max(1.0, self.height)


def union_bounds(boxes: Iterable[TextBox | LineGroup]) -> tuple[float, float, float, float]:
    """Compute the union bounding box of a non-empty set of boxes.

    Returns:
        Tuple of (x, y, width, height)

    Raises:
        ValueError: If boxes is empty
    """
    boxes = list(boxes)
    if not boxes:
        raise ValueError("Cannot compute bounds of an empty box set")
    min_x = min(b.x for b in boxes)
    min_y = min(b.y for b in boxes)
    max_x = max(b.right for b in boxes)
    max_y = max(b.bottom for b in boxes)
    return min_x, min_y, max_x - min_x, max_y - min_y


@dataclass
class FrameRecord:
    """One sampled frame and its line groups.

    ``frame_number`` is 1-indexed; frame ``n`` covers the sampling interval
    ``[(n - 1) / rate, n / rate)``.
    """

    frame_number: int
    lines: list[LineGroup] = field(default_factory=list)


@dataclass
class TranslatedPhrase:
    """A line group's text plus its translation and, after layout, the fitted result."""

    source: LineGroup
    translation: str
    wrapped_text: str | None = None
    font_size: int | None = None
    script: ScriptClass | None = None

    @property
    def is_laid_out(self) -> bool:
        return self.wrapped_text is not None and self.font_size is not None


@dataclass(frozen=True)
class FrameAssignment:
    """The laid-out phrase shown for one sampled frame (``None`` when nothing is shown)."""

    frame_number: int
    phrase: TranslatedPhrase | None = None

    @property
    def text(self) -> str:
        if self.phrase is None or not self.phrase.wrapped_text:
            return ""
        return self.phrase.wrapped_text


@dataclass(frozen=True)
class VideoInfo:
    """Basic properties of a probed video."""

    width: int
    height: int
    duration: float
    has_audio: bool = True

    @property
    def frame_size(self) -> tuple[int, int]:
        return self.width, self.height


@dataclass(frozen=True)
class EventStyle:
    """Resolved style payload carried by every subtitle event."""

    text_color: AssColor
    background_color: AssColor
    soft_badge: bool
    badge_blur: int
    padding: int


@dataclass(frozen=True)
class SubtitleEvent:
    """A time-coded, positioned and styled subtitle span ready for rendering.

    Attributes:
        text: Wrapped text, lines separated by ``\\n``
        start_time: Start in seconds (inclusive)
        end_time: End in seconds (exclusive)
        font_size: Fitted font size in pixels
        script: Script class of the text
        alignment: ASS numpad alignment code of the anchor (2 = bottom-center)
        position: Anchor point ``(x, y)`` in pixels
        box_width: Background box width in pixels, padding included
        box_height: Background box height in pixels, padding included
        style: Colors and background mode
    """

    text: str
    start_time: float
    end_time: float
    font_size: int
    script: ScriptClass
    alignment: int
    position: tuple[int, int]
    box_width: int
    box_height: int
    style: EventStyle

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time
