"""Decide which clustered lines are subtitles and which are incidental text.

Two passes:

1. Per frame: keep lines whose vertical midpoint lies in the target band and
   whose character count, word count and aspect ratio meet the minimums, then
   keep only the widest few.
2. Across frames: keep a text only if it survived pass 1 in at least two
   consecutive sampled frames, which removes one-frame flicker.
"""

import logging
from collections import defaultdict
from typing import Sequence

from caption_translator.config import FilterConfig
from caption_translator.models import FrameRecord, LineGroup

logger = logging.getLogger(__name__)


def estimate_frame_height(lines: Sequence[LineGroup], margin: int = 10) -> float:
    """Estimate frame height from the lowest detected box plus a margin."""
    lowest = max((line.bottom for line in lines), default=0.0)
    return max(1.0, lowest) + margin


def region_band(frame_height: float, config: FilterConfig) -> tuple[float, float]:
    """Vertical ``(start, end)`` band, in pixels, where subtitles are expected."""
    fraction = config.region_fraction
    if config.region == "bottom":
        return frame_height * (1 - fraction), frame_height
    if config.region == "top":
        return 0.0, frame_height * fraction
    if config.region == "middle":
        mid = frame_height / 2
        half = frame_height * fraction / 2
        return mid - half, mid + half
    return 0.0, frame_height


def char_count(text: str) -> int:
    """Number of non-whitespace characters."""
    return sum(1 for ch in text if not ch.isspace())


def word_count(text: str) -> int:
    return len(text.split())


def is_candidate(line: LineGroup, band: tuple[float, float], config: FilterConfig) -> bool:
    """Apply the region, length and shape checks to a single line."""
    start, end = band
    if not start <= line.mid_y <= end:
        return False
    if char_count(line.text) < config.min_chars:
        return False
    if word_count(line.text) < config.min_words:
        return False
    return line.aspect >= config.min_aspect


def filter_frame(
    lines: Sequence[LineGroup],
    config: FilterConfig,
    frame_height: float | None = None,
) -> list[LineGroup]:
    """Per-frame pass: region, shape and count checks.

    Args:
        lines: Clustered lines of one frame
        config: Filter thresholds
        frame_height: Known frame height; estimated from the boxes when None

    Returns:
        Surviving lines, widest first, at most ``config.max_lines_per_frame``
    """
    if not lines:
        return []
    if frame_height is None:
        frame_height = estimate_frame_height(lines, config.frame_margin)
    band = region_band(frame_height, config)
    survivors = [line for line in lines if is_candidate(line, band, config)]
    survivors.sort(key=lambda line: line.width, reverse=True)
    return survivors[: config.max_lines_per_frame]


def has_consecutive_pair(frame_numbers: Sequence[int]) -> bool:
    """True if the sorted frame numbers contain two adjacent integers."""
    ordered = sorted(set(frame_numbers))
    return any(b - a == 1 for a, b in zip(ordered, ordered[1:]))


def persistent_texts(frames: Sequence[FrameRecord]) -> set[str]:
    """Texts that appear in at least two consecutive sampled frames."""
    seen: dict[str, list[int]] = defaultdict(list)
    for frame in frames:
        for line in frame.lines:
            seen[line.text].append(frame.frame_number)
    return {text for text, numbers in seen.items() if has_consecutive_pair(numbers)}


def filter_subtitle_candidates(
    frames: Sequence[FrameRecord],
    config: FilterConfig,
) -> list[FrameRecord]:
    """Run both filter passes over all frames of a job.

    Args:
        frames: Frame records holding clustered (unfiltered) lines
        config: Filter thresholds

    Returns:
        New frame records, one per input frame, holding only subtitle candidates
    """
    if not config.enabled:
        return [FrameRecord(f.frame_number, list(f.lines)) for f in frames]

    filtered = [FrameRecord(f.frame_number, filter_frame(f.lines, config)) for f in frames]

    if config.require_persistence:
        keep = persistent_texts(filtered)
        for frame in filtered:
            frame.lines = [line for line in frame.lines if line.text in keep]

    before = sum(len(f.lines) for f in frames)
    after = sum(len(f.lines) for f in filtered)
    logger.info(f"Subtitle filter kept {after}/{before} lines across {len(frames)} frames")
    return filtered
