"""Collapse per-sample subtitle assignments into time-coded events.

Sampled frame ``n`` covers ``[(n - 1) / rate, n / rate)`` seconds. Runs of
consecutive frames showing identical laid-out text become a single event;
empty frames and gaps in the frame numbering close the open event.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

from caption_translator.colors import DEFAULT_BACKGROUND_COLOR, DEFAULT_TEXT_COLOR, resolve_color
from caption_translator.config import StyleConfig
from caption_translator.layout import measure_block
from caption_translator.models import (
    EventStyle,
    FrameAssignment,
    ScriptClass,
    SubtitleEvent,
    TranslatedPhrase,
)

logger = logging.getLogger(__name__)

# ASS numpad alignment codes
ALIGN_BOTTOM_CENTER = 2
ALIGN_MIDDLE_CENTER = 5
ALIGN_TOP_CENTER = 8


def frame_bounds(frame_number: int, sampling_rate_hz: float = 1.0) -> tuple[float, float]:
    """Time span ``(start, end)`` in seconds covered by a 1-indexed sample."""
    return (frame_number - 1) / sampling_rate_hz, frame_number / sampling_rate_hz


@dataclass
class TimedPhrase:
    """A laid-out phrase with the merged time span it is shown for."""

    phrase: TranslatedPhrase
    start_time: float
    end_time: float
    last_frame: int

    @property
    def text(self) -> str:
        return self.phrase.wrapped_text or ""


def merge_runs(
    assignments: Sequence[FrameAssignment],
    sampling_rate_hz: float = 1.0,
) -> list[TimedPhrase]:
    """Run-length merge per-frame assignments into contiguous spans.

    Args:
        assignments: One entry per processed sample, in any order
        sampling_rate_hz: Samples per second

    Returns:
        Non-empty spans ordered by start time, never overlapping
    """
    runs: list[TimedPhrase] = []
    current: TimedPhrase | None = None

    for assignment in sorted(assignments, key=lambda a: a.frame_number):
        start, end = frame_bounds(assignment.frame_number, sampling_rate_hz)
        text = assignment.text
        if (
            current is not None
            and text == current.text
            and assignment.frame_number == current.last_frame + 1
        ):
            current.end_time = end
            current.last_frame = assignment.frame_number
            continue

        if current is not None:
            runs.append(current)
        current = None
        if text:
            current = TimedPhrase(assignment.phrase, start, end, assignment.frame_number)

    if current is not None:
        runs.append(current)
    return runs


def resolve_event_style(style: StyleConfig) -> EventStyle:
    """Resolve colors and background mode once per job."""
    return EventStyle(
        text_color=resolve_color(style.text_color, DEFAULT_TEXT_COLOR),
        background_color=resolve_color(style.background_color, DEFAULT_BACKGROUND_COLOR),
        soft_badge=style.soft_badge,
        badge_blur=max(style.background_blur, style.rounded_radius),
        padding=style.box_padding,
    )


def anchor_point(
    phrase: TranslatedPhrase,
    frame_size: tuple[int, int],
    style: StyleConfig,
) -> tuple[int, tuple[int, int]]:
    """ASS alignment code and anchor position for a phrase.

    Returns:
        Tuple of (alignment, (x, y))
    """
    width, height = frame_size
    center_x = width // 2
    if style.anchor == "top":
        return ALIGN_TOP_CENTER, (center_x, style.margin_v)
    if style.anchor == "middle":
        return ALIGN_MIDDLE_CENTER, (center_x, height // 2)
    if style.anchor == "source":
        source = phrase.source
        return ALIGN_BOTTOM_CENTER, (round(source.center_x), min(height, round(source.bottom)))
    return ALIGN_BOTTOM_CENTER, (center_x, height - style.margin_v)


def build_event(
    run: TimedPhrase,
    frame_size: tuple[int, int],
    style: StyleConfig,
    event_style: EventStyle,
) -> SubtitleEvent:
    phrase = run.phrase
    lines = run.text.split("\n")
    font_size = phrase.font_size or style.base_font_size
    script = phrase.script or ScriptClass.LATIN
    box_width, box_height = measure_block(lines, font_size, script, style)
    alignment, position = anchor_point(phrase, frame_size, style)
    return SubtitleEvent(
        text=run.text,
        start_time=run.start_time,
        end_time=run.end_time,
        font_size=font_size,
        script=script,
        alignment=alignment,
        position=position,
        box_width=box_width,
        box_height=box_height,
        style=event_style,
    )


def synthesize_events(
    assignments: Sequence[FrameAssignment],
    frame_size: tuple[int, int],
    style: StyleConfig,
    sampling_rate_hz: float = 1.0,
) -> list[SubtitleEvent]:
    """Turn per-frame laid-out phrases into the job's subtitle events.

    Args:
        assignments: Per-sample phrases, already laid out
        frame_size: Video ``(width, height)`` in pixels
        style: Job style (anchor, colors, padding, badge)
        sampling_rate_hz: Samples per second

    Returns:
        Events ordered by start time with non-overlapping half-open spans
    """
    event_style = resolve_event_style(style)
    events = [
        build_event(run, frame_size, style, event_style)
        for run in merge_runs(assignments, sampling_rate_hz)
    ]
    logger.info(f"Synthesized {len(events)} subtitle events from {len(assignments)} samples")
    return events
