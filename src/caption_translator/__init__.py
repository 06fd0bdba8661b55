"""Translate burned-in video subtitles and re-render them as styled subtitle events."""

from caption_translator.clustering import group_into_lines
from caption_translator.colors import AssColor, resolve_color
from caption_translator.config import FilterConfig, Settings, StyleConfig, SubtitleOptions, get_settings
from caption_translator.filtering import filter_subtitle_candidates
from caption_translator.jobs import Job, JobStats, JobStatus, JobStore
from caption_translator.layout import fit_text, layout_phrase
from caption_translator.markup import build_document
from caption_translator.models import (
    FrameAssignment,
    FrameRecord,
    LineGroup,
    ScriptClass,
    SubtitleEvent,
    TextBox,
    TranslatedPhrase,
)
from caption_translator.timeline import synthesize_events

try:
    from caption_translator._version import __version__, __version_tuple__
except ImportError:
    __version__ = "0.0.0+unknown"
    __version_tuple__ = (0, 0, 0, "unknown", "unknown")

__all__ = [
    "__version__",
    "__version_tuple__",
    # Models
    "TextBox",
    "LineGroup",
    "FrameRecord",
    "TranslatedPhrase",
    "FrameAssignment",
    "SubtitleEvent",
    "ScriptClass",
    "AssColor",
    # Config
    "Settings",
    "FilterConfig",
    "StyleConfig",
    "SubtitleOptions",
    "get_settings",
    # Stages
    "group_into_lines",
    "filter_subtitle_candidates",
    "fit_text",
    "layout_phrase",
    "synthesize_events",
    "build_document",
    "resolve_color",
    # Jobs
    "Job",
    "JobStats",
    "JobStatus",
    "JobStore",
]
