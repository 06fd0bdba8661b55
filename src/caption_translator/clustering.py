"""Group word-level OCR boxes into line-level phrases.

Boxes are joined greedily: each box (in top-to-bottom, left-to-right order)
joins the first open line whose vertical span overlaps it by at least half of
the shorter height. The result depends on input order; see DESIGN.md.
"""

from dataclasses import dataclass, field
from typing import Sequence

from caption_translator.models import LineGroup, TextBox, union_bounds

MIN_LINE_OVERLAP = 0.5


def vertical_overlap_fraction(top_a: float, height_a: float, top_b: float, height_b: float) -> float:
    """Fraction of the shorter span covered by the intersection of two vertical spans.

    Args:
        top_a: Top of span A
        height_a: Height of span A
        top_b: Top of span B
        height_b: Height of span B

    Returns:
        Intersection height divided by the shorter height (at least 1px)
    """
    intersection = max(0.0, min(top_a + height_a, top_b + height_b) - max(top_a, top_b))
    return intersection / max(1.0, min(height_a, height_b))


@dataclass
class _OpenLine:
    top: float
    height: float
    boxes: list[TextBox] = field(default_factory=list)

    def accepts(self, box: TextBox, threshold: float) -> bool:
        return vertical_overlap_fraction(self.top, self.height, box.y, box.height) >= threshold

    def add(self, box: TextBox) -> None:
        bottom = max(self.top + self.height, box.bottom)
        self.top = min(self.top, box.y)
        self.height = bottom - self.top
        self.boxes.append(box)


def _finalize(line: _OpenLine) -> LineGroup:
    members = sorted(line.boxes, key=lambda b: b.x)
    x, y, width, height = union_bounds(members)
    return LineGroup(
        text=" ".join(b.text for b in members),
        x=x,
        y=y,
        width=width,
        height=height,
        font_size=int(round(max(b.effective_font_size for b in members))),
        members=tuple(members),
    )


def group_into_lines(boxes: Sequence[TextBox], threshold: float = MIN_LINE_OVERLAP) -> list[LineGroup]:
    """Cluster one frame's word boxes into lines.

    Args:
        boxes: OCR detections for a single frame, in any order
        threshold: Minimum vertical overlap fraction for a box to join a line

    Returns:
        Line groups ordered top-to-bottom (by first member), members left-to-right
    """
    open_lines: list[_OpenLine] = []
    for box in sorted(boxes, key=lambda b: (b.y, b.x)):
        for line in open_lines:
            if line.accepts(box, threshold):
                line.add(box)
                break
        else:
            line = _OpenLine(top=box.y, height=box.height)
            line.add(box)
            open_lines.append(line)

    return [_finalize(line) for line in open_lines]
