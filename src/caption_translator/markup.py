"""Advanced SubStation Alpha (ASS v4.00+) output for subtitle events.

Each event becomes one ``Dialogue`` line with explicit ``\\an``/``\\pos``
overrides. In soft-badge mode an extra vector-drawing line is emitted on a
lower layer to paint the blurred/rounded background shape.
"""

from pathlib import Path
from typing import Sequence

from caption_translator.config import StyleConfig
from caption_translator.models import EventStyle, SubtitleEvent
from caption_translator.timeline import ALIGN_BOTTOM_CENTER, ALIGN_TOP_CENTER, resolve_event_style

DEFAULT_FONT_NAME = "Arial"

STYLE_FORMAT = (
    "Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, "
    "Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, "
    "Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding"
)
EVENT_FORMAT = "Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text"


def format_timestamp(seconds: float) -> str:
    """Format seconds as ``H:MM:SS.CC`` (centiseconds)."""
    total_cs = max(0, round(seconds * 100))
    hours, rem = divmod(total_cs, 360000)
    minutes, rem = divmod(rem, 6000)
    secs, cs = divmod(rem, 100)
    return f"{hours}:{minutes:02d}:{secs:02d}.{cs:02d}"


def escape_text(text: str) -> str:
    """Make plain text safe inside a Dialogue line.

    Backslashes become U+29F5 so source text cannot form override codes
    such as ``\\N`` or ``\\fs``.
    """
    return (
        text.replace("\\", "\u29f5")
        .replace("{", "(")
        .replace("}", ")")
        .replace("\r\n", "\n")
        .replace("\n", "\\N")
    )


def badge_path(width: int, height: int, radius: int = 0) -> str:
    """ASS drawing commands for a (optionally rounded) rectangle."""
    r = max(0, min(radius, width // 2, height // 2))
    if r == 0:
        return f"m 0 0 l {width} 0 l {width} {height} l 0 {height}"
    w, h = width, height
    return (
        f"m {r} 0 l {w - r} 0 b {w} 0 {w} 0 {w} {r} "
        f"l {w} {h - r} b {w} {h} {w} {h} {w - r} {h} "
        f"l {r} {h} b 0 {h} 0 {h} 0 {h - r} "
        f"l 0 {r} b 0 0 0 0 {r} 0"
    )


def _text_position(event: SubtitleEvent) -> tuple[int, int]:
    # keep the text inside the padded box, whose edge sits on the anchor
    x, y = event.position
    pad = event.style.padding
    if event.alignment == ALIGN_BOTTOM_CENTER:
        return x, y - pad
    if event.alignment == ALIGN_TOP_CENTER:
        return x, y + pad
    return x, y


def dialogue_lines(event: SubtitleEvent, radius: int = 0) -> list[str]:
    """Dialogue lines (background first) for one event."""
    start = format_timestamp(event.start_time)
    end = format_timestamp(event.end_time)
    style = event.style
    lines = []

    if style.soft_badge:
        x, y = event.position
        shape = (
            f"{{\\an{event.alignment}\\pos({x},{y})\\p1\\bord0\\shad0"
            f"\\c&H{style.background_color.bgr}&\\alpha&H{style.background_color.alpha_hex}&"
            f"\\blur{style.badge_blur}}}"
            f"{badge_path(event.box_width, event.box_height, radius)}{{\\p0}}"
        )
        lines.append(f"Dialogue: 0,{start},{end},Default,,0,0,0,,{shape}")
        border = 0
    else:
        border = style.padding

    tx, ty = _text_position(event)
    tags = f"{{\\an{event.alignment}\\pos({tx},{ty})\\fs{event.font_size}\\bord{border}\\shad0\\b1}}"
    lines.append(f"Dialogue: 1,{start},{end},Default,,0,0,0,,{tags}{escape_text(event.text)}")
    return lines


def style_line(style: StyleConfig, event_style: EventStyle, font_name: str) -> str:
    text = event_style.text_color.ass
    if event_style.soft_badge:
        outline, back, border_style, outline_width = "&H00000000", "&HFF000000", 1, 0
    else:
        # BorderStyle 3 draws an opaque box in the outline colour
        outline = back = event_style.background_color.ass
        border_style, outline_width = 3, event_style.padding
    return (
        f"Style: Default,{font_name},{style.base_font_size},{text},&H000000FF,{outline},{back},"
        f"-1,0,0,0,100,100,0,0,{border_style},{outline_width},0,{ALIGN_BOTTOM_CENTER},"
        f"10,10,{style.margin_v},1"
    )


def build_document(
    events: Sequence[SubtitleEvent],
    frame_size: tuple[int, int],
    style: StyleConfig,
    font_name: str | None = None,
) -> str:
    """Render a complete ASS document.

    Args:
        events: Subtitle events ordered by start time
        frame_size: Video ``(width, height)``; used as the script resolution
        style: Job style
        font_name: Font family for the Default style (``Arial`` when None)

    Returns:
        ASS document text
    """
    width, height = frame_size
    event_style = events[0].style if events else resolve_event_style(style)
    out = [
        "[Script Info]",
        "ScriptType: v4.00+",
        f"PlayResX: {width}",
        f"PlayResY: {height}",
        "WrapStyle: 2",
        "ScaledBorderAndShadow: yes",
        "",
        "[V4+ Styles]",
        f"Format: {STYLE_FORMAT}",
        style_line(style, event_style, font_name or DEFAULT_FONT_NAME),
        "",
        "[Events]",
        f"Format: {EVENT_FORMAT}",
    ]
    for event in events:
        if event.text:
            out.extend(dialogue_lines(event, style.rounded_radius))
    return "\n".join(out) + "\n"


def write_document(
    path: Path,
    events: Sequence[SubtitleEvent],
    frame_size: tuple[int, int],
    style: StyleConfig,
    font_name: str | None = None,
) -> Path:
    """Write the ASS document to ``path`` (UTF-8) and return the path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(build_document(events, frame_size, style, font_name), encoding="utf-8")
    return path
