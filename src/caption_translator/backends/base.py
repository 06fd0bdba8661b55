"""Abstract base classes for the pipeline's external collaborators."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from caption_translator.config import StyleConfig
from caption_translator.models import SubtitleEvent, TextBox, VideoInfo


class OCRBackend(ABC):
    """Abstract base class for OCR backends. Backends process SINGLE images only."""

    @abstractmethod
    def detect(self, image_bytes: bytes, language_hint: str = "") -> list[TextBox]:
        """Return word-level detections in frame pixel coordinates (may be empty)."""
        ...


class TranslationBackend(ABC):
    """Translates a batch of unique phrases into one target language."""

    @abstractmethod
    def translate(self, phrases: Iterable[str], target_language: str) -> dict[str, str]:
        """Map each source phrase to its translation.

        Phrases missing from the result are left untranslated by the caller.
        """
        ...


@dataclass(frozen=True)
class FontAsset:
    """A validated font file on disk and its family name."""

    path: Path
    family: str

    @property
    def directory(self) -> Path:
        return self.path.parent


class FontProvider(ABC):
    @abstractmethod
    def fetch(self, url: str, dest_dir: Path, family: str | None = None) -> FontAsset:
        """Download and validate a font.

        Raises:
            FontError: If the font cannot be fetched or is not a font file
        """
        ...


class Renderer(ABC):
    """Video decoding, frame sampling and subtitle burn-in."""

    @abstractmethod
    def probe(self, video_path: Path) -> VideoInfo:
        ...

    @abstractmethod
    def extract_frames(self, video_path: Path, output_dir: Path, rate_hz: float) -> list[Path]:
        """Sample frames at ``rate_hz``; the i-th returned path is frame number i + 1."""
        ...

    @abstractmethod
    def render(
        self,
        video_path: Path,
        frame_size: tuple[int, int],
        events: Sequence[SubtitleEvent],
        style: StyleConfig,
        output_path: Path,
        font: FontAsset | None = None,
    ) -> Path:
        """Burn the events into a copy of the video.

        Raises:
            RenderError: If encoding fails
        """
        ...

    @abstractmethod
    def render_preview(
        self,
        video_path: Path,
        frame_size: tuple[int, int],
        events: Sequence[SubtitleEvent],
        style: StyleConfig,
        at_seconds: float,
        output_path: Path,
        font: FontAsset | None = None,
    ) -> Path:
        """Render a single PNG frame at ``at_seconds`` with the events burned in."""
        ...

    @abstractmethod
    def snapshot(self, video_path: Path, at_seconds: float, output_path: Path) -> Path:
        """Extract one PNG frame from a video."""
        ...
