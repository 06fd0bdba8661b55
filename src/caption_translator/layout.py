"""Fit translated text into the subtitle area.

Rendered width is estimated as ``characters x width_factor x font_size``
with one constant factor per script class, since no font metrics are
available at layout time. Fitting is a closed-form two-pass process: wrap
once into two balanced halves, then shrink proportionally (down to a floor)
and re-wrap at the new size.
"""

import math
import re
from dataclasses import dataclass, replace
from typing import Sequence

from caption_translator.config import StyleConfig
from caption_translator.models import LineGroup, ScriptClass, TranslatedPhrase, union_bounds

CJK_RANGES = [
    (0x3040, 0x309F),  # Hiragana
    (0x30A0, 0x30FF),  # Katakana
    (0x3400, 0x4DBF),  # CJK Extension A
    (0x4E00, 0x9FFF),  # CJK Unified Ideographs
    (0xF900, 0xFAFF),  # CJK Compatibility Ideographs
]

# Ideographs only: kana keeps its spacing when normalizing
_IDEOGRAPH = "\u3400-\u9fff\uf900-\ufaff"
_CJK_GAP = re.compile(rf"([{_IDEOGRAPH}])\s+(?=[{_IDEOGRAPH}])")

MIN_AVAILABLE_WIDTH = 10


def is_in_ranges(code: int, ranges: list[tuple[int, int]]) -> bool:
    """Check if Unicode code point is in any of the given ranges (inclusive)."""
    return any(start <= code <= end for start, end in ranges)


def is_cjk_char(char: str) -> bool:
    return is_in_ranges(ord(char), CJK_RANGES)


def detect_script(text: str) -> ScriptClass:
    """Classify text as CJK if it contains any CJK code point, else Latin."""
    if any(is_cjk_char(ch) for ch in text):
        return ScriptClass.CJK
    return ScriptClass.LATIN


def normalize_cjk_spacing(text: str) -> str:
    """Remove whitespace between adjacent ideographs.

    Machine translation into Chinese/Japanese sometimes keeps the source
    language's word spacing, e.g. ``"你好 世界"`` -> ``"你好世界"``.
    """
    if not text:
        return text
    return _CJK_GAP.sub(r"\1", text)


def width_factor(script: ScriptClass, style: StyleConfig) -> float:
    return style.cjk_width_factor if script is ScriptClass.CJK else style.latin_width_factor


def estimate_width(lines: Sequence[str], font_size: float, factor: float) -> float:
    """Estimated rendered width of the longest line."""
    longest = max((len(line) for line in lines), default=0)
    return longest * factor * font_size


def split_in_half(text: str, script: ScriptClass) -> list[str]:
    """Split text into two balanced lines.

    CJK text is split by character, Latin text by whitespace-delimited words.
    The first half gets the extra token when the count is odd. Text that
    cannot be split is returned as a single line.
    """
    if script is ScriptClass.CJK:
        chars = text.strip()
        if len(chars) < 2:
            return [chars]
        mid = math.ceil(len(chars) / 2)
        return [chars[:mid].strip(), chars[mid:].strip()]

    words = text.split()
    if len(words) < 2:
        return [text.strip()]
    mid = math.ceil(len(words) / 2)
    return [" ".join(words[:mid]), " ".join(words[mid:])]


@dataclass(frozen=True)
class FittedText:
    """Result of fitting one phrase."""

    lines: list[str]
    font_size: int
    script: ScriptClass

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


def _wrap(
    source_lines: list[str],
    available_width: float,
    font_size: float,
    factor: float,
    script: ScriptClass,
    force_single_line: bool,
) -> list[str]:
    # Already-wrapped input keeps its line breaks
    if len(source_lines) > 1 or force_single_line:
        return source_lines
    if estimate_width(source_lines, font_size, factor) <= available_width:
        return source_lines
    return split_in_half(source_lines[0], script)


def fit_text(
    text: str,
    available_width: float,
    style: StyleConfig,
    base_font_size: int | None = None,
) -> FittedText:
    """Wrap and size text so its estimated width fits ``available_width``.

    Args:
        text: Translated text; may already contain ``\\n`` line breaks
        available_width: Usable width in pixels (padding already removed)
        style: Width factors, minimum font size and single-line switch
        base_font_size: Starting font size; defaults to ``style.base_font_size``

    Returns:
        Wrapped lines, fitted font size and script class. The fitted size
        never exceeds the base size and never drops below ``style.min_font_size``
        (unless the base itself is smaller).
    """
    base = int(base_font_size or style.base_font_size)
    script = detect_script(text)
    factor = width_factor(script, style)

    source_lines = [line.strip() for line in text.split("\n") if line.strip()] or [""]
    lines = _wrap(source_lines, available_width, base, factor, script, style.force_single_line)
    font_size = base

    if estimate_width(lines, font_size, factor) > available_width:
        longest = max(max(len(line) for line in lines), 1)
        shrunk = math.floor(available_width / (longest * factor))
        font_size = min(base, max(style.min_font_size, shrunk))
        lines = _wrap(source_lines, available_width, font_size, factor, script, style.force_single_line)

    return FittedText(lines=lines, font_size=font_size, script=script)


def available_width(frame_width: int, source: LineGroup | None, style: StyleConfig) -> int:
    """Usable text width for a phrase.

    Frame-anchored subtitles use a fraction of the frame width; subtitles
    anchored to their source box are limited to that box.
    """
    if style.anchor == "source" and source is not None:
        region = math.floor(source.width)
    else:
        region = math.floor(frame_width * style.max_width_fraction)
    return max(MIN_AVAILABLE_WIDTH, region - 2 * style.box_padding)


def layout_phrase(
    phrase: TranslatedPhrase,
    frame_width: int,
    style: StyleConfig,
    base_font_size: int | None = None,
) -> TranslatedPhrase:
    """Return a copy of ``phrase`` with wrapped text, fitted size and script set."""
    text = phrase.wrapped_text if phrase.wrapped_text is not None else phrase.translation
    fitted = fit_text(
        text,
        available_width(frame_width, phrase.source, style),
        style,
        base_font_size=base_font_size,
    )
    return replace(phrase, wrapped_text=fitted.text, font_size=fitted.font_size, script=fitted.script)


def compose_frame_phrase(phrases: Sequence[TranslatedPhrase]) -> TranslatedPhrase | None:
    """Merge the phrases shown in one frame into a single phrase.

    Phrases are ordered top-to-bottom and their translations joined with a
    space; the source box becomes the union of the line boxes.

    Returns:
        The combined phrase, or None when there is nothing to show
    """
    shown = [p for p in phrases if p.translation.strip()]
    if not shown:
        return None
    if len(shown) == 1:
        return shown[0]

    shown.sort(key=lambda p: (p.source.y, p.source.x))
    sources = [p.source for p in shown]
    x, y, width, height = union_bounds(sources)
    combined = LineGroup(
        text=" ".join(s.text for s in sources),
        x=x,
        y=y,
        width=width,
        height=height,
        font_size=max(s.font_size for s in sources),
        members=tuple(m for s in sources for m in s.members),
    )
    return TranslatedPhrase(source=combined, translation=" ".join(p.translation.strip() for p in shown))


def measure_block(lines: Sequence[str], font_size: int, script: ScriptClass, style: StyleConfig) -> tuple[int, int]:
    """Background box ``(width, height)`` for wrapped lines, padding included."""
    count = max(1, len(lines))
    line_gap = round(font_size * style.line_gap_ratio)
    content_height = count * font_size + (count - 1) * line_gap
    content_width = math.ceil(estimate_width(lines, font_size, width_factor(script, style)))
    return content_width + 2 * style.box_padding, content_height + 2 * style.box_padding
