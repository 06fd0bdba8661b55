"""End-to-end subtitle translation pipeline and job driver.

Stages run strictly in order for one job:

    probe -> extract frames -> OCR -> cluster -> filter -> translate
          -> layout -> synthesize events -> fetch font -> render

The pipeline is synchronous; the API runs ``run_job`` in a worker thread.
"""

import logging
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from caption_translator.backends.base import (
    FontAsset,
    FontProvider,
    OCRBackend,
    Renderer,
    TranslationBackend,
)
from caption_translator.backends.fonts import HttpFontProvider
from caption_translator.backends.translation import get_translator, unique_phrases, with_fallback
from caption_translator.clustering import group_into_lines
from caption_translator.config import (
    FilterConfig,
    Settings,
    StyleConfig,
    SubtitleOptions,
    default_style,
    get_settings,
)
from caption_translator.errors import FontError, RenderError
from caption_translator.filtering import filter_frame, filter_subtitle_candidates
from caption_translator.jobs import JobStats, JobStore
from caption_translator.layout import compose_frame_phrase, layout_phrase, normalize_cjk_spacing
from caption_translator.models import FrameAssignment, FrameRecord, SubtitleEvent, TextBox, TranslatedPhrase
from caption_translator.timeline import frame_bounds, synthesize_events

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

# Progress checkpoints (percent)
PROGRESS_EXTRACT = 15
PROGRESS_OCR_START = 20
PROGRESS_OCR_END = 60
PROGRESS_FILTERED = 65
PROGRESS_TRANSLATED = 75
PROGRESS_SYNTHESIZED = 85
PROGRESS_RENDERED = 95


def _no_progress(percent: int, message: str) -> None:
    pass


def has_meaningful_text(text: str) -> bool:
    """True if text has at least one letter, digit or CJK character."""
    return any(ch.isalnum() for ch in text)


@dataclass
class PipelineResult:
    output_path: Path
    stats: JobStats
    events: list[SubtitleEvent] = field(default_factory=list)
    preview_path: Path | None = None
    subtitles_path: Path | None = None


@dataclass
class PreviewResult:
    image_path: Path
    frame_number: int | None = None
    source_text: str | None = None
    text: str | None = None


class SubtitlePipeline:
    """Runs the translation pipeline against pluggable collaborators."""

    def __init__(
        self,
        ocr: OCRBackend,
        renderer: Renderer,
        settings: Settings | None = None,
        translator_factory: Callable[[str], TranslationBackend] | None = None,
        fonts: FontProvider | None = None,
        filter_config: FilterConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the pipeline.

        Args:
            ocr: Word-level text detector
            renderer: Frame sampler and subtitle burner
            settings: Process settings (defaults to ``get_settings()``)
            translator_factory: Returns a translator for a target language
            fonts: Font downloader
            filter_config: Subtitle candidate thresholds
            sleep: Used for the inter-call OCR throttle
        """
        self.settings = settings or get_settings()
        self.ocr = ocr
        self.renderer = renderer
        self.translator_factory = translator_factory or (
            lambda language: get_translator(self.settings, language)
        )
        self.fonts = fonts or HttpFontProvider()
        self.filter_config = filter_config or FilterConfig(enabled=self.settings.subtitle_filter_enabled)
        self._sleep = sleep

    @property
    def sampling_rate(self) -> float:
        return self.settings.sampling_rate_hz

    def style_for(self, options: SubtitleOptions | None) -> StyleConfig:
        return default_style(self.settings).merged(options)

    # -- stages -----------------------------------------------------------

    def select_frames(self, frame_paths: Sequence[Path], duration: float) -> tuple[list[tuple[int, Path]], int]:
        """Number the sampled frames and drop those inside the intro/outro windows.

        Returns:
            Tuple of (kept ``(frame_number, path)`` pairs, skipped count)
        """
        intro = self.settings.skip_intro_seconds
        outro = self.settings.skip_outro_seconds
        kept = []
        for index, path in enumerate(frame_paths):
            frame_number = index + 1
            t = (frame_number - 1) / self.sampling_rate
            if t < intro:
                continue
            if outro > 0 and t >= duration - outro:
                continue
            kept.append((frame_number, path))
        return kept, len(frame_paths) - len(kept)

    def detect_text(self, image_path: Path) -> list[TextBox]:
        """Run OCR on one frame. Any failure counts as no detections."""
        try:
            return self.ocr.detect(image_path.read_bytes(), self.settings.ocr_language_hint)
        except Exception as e:
            logger.warning(f"OCR failed for {image_path.name}, treating as empty: {e}")
            return []

    def detect_frames(
        self,
        frames: Sequence[tuple[int, Path]],
        progress: ProgressCallback = _no_progress,
    ) -> list[FrameRecord]:
        """OCR and cluster every kept frame, throttling between OCR calls."""
        records = []
        total = len(frames)
        for index, (frame_number, path) in enumerate(frames):
            if index > 0 and self.settings.ocr_throttle_seconds > 0:
                self._sleep(self.settings.ocr_throttle_seconds)
            boxes = self.detect_text(path)
            records.append(FrameRecord(frame_number, group_into_lines(boxes)))
            span = PROGRESS_OCR_END - PROGRESS_OCR_START
            progress(PROGRESS_OCR_START + (index + 1) * span // total, f"Detected text in {index + 1}/{total} frames")
        return records

    def translate_phrases(self, records: Sequence[FrameRecord], target_language: str) -> dict[str, str]:
        """Translate every unique line text; missing translations keep the source text."""
        phrases = unique_phrases(line.text for record in records for line in record.lines)
        if not phrases:
            logger.info("No subtitle candidates to translate")
            return {}
        translator = self.translator_factory(target_language)
        translations = with_fallback(phrases, translator.translate(phrases, target_language))
        if self.settings.normalize_cjk_spacing:
            translations = {k: normalize_cjk_spacing(v) for k, v in translations.items()}
        return translations

    def assign_frames(
        self,
        records: Sequence[FrameRecord],
        translations: dict[str, str],
        frame_width: int,
        style: StyleConfig,
    ) -> list[FrameAssignment]:
        """Combine each frame's translated lines into one laid-out phrase."""
        assignments = []
        for record in records:
            phrases = [TranslatedPhrase(line, translations.get(line.text, line.text)) for line in record.lines]
            combined = compose_frame_phrase(phrases)
            if combined is None:
                assignments.append(FrameAssignment(record.frame_number))
                continue
            if self.settings.normalize_cjk_spacing:
                combined.translation = normalize_cjk_spacing(combined.translation)
            assignments.append(FrameAssignment(record.frame_number, layout_phrase(combined, frame_width, style)))
        return assignments

    def resolve_font(self, style: StyleConfig, work_dir: Path) -> FontAsset | None:
        """Fetch the requested font. Failures fall back to the default font."""
        if not style.font_url:
            return None
        try:
            return self.fonts.fetch(style.font_url, work_dir / "fonts", style.font_name)
        except (FontError, OSError) as e:
            logger.warning(f"Font unavailable, using default font: {e}")
            return None

    def _snapshot(self, output_path: Path, events: Sequence[SubtitleEvent], work_dir: Path) -> Path | None:
        at = (events[0].start_time + events[0].end_time) / 2 if events else 0.0
        try:
            return self.renderer.snapshot(output_path, at, work_dir / "preview.png")
        except (RenderError, OSError) as e:
            logger.warning(f"Could not create preview image: {e}")
            return None

    # -- entry points -----------------------------------------------------

    def translate_video(
        self,
        video_path: Path,
        target_language: str,
        options: SubtitleOptions | None = None,
        work_dir: Path | None = None,
        progress: ProgressCallback = _no_progress,
    ) -> PipelineResult:
        """Translate the burned-in subtitles of a video.

        Args:
            video_path: Source video
            target_language: Language name or code (e.g., "Chinese", "es")
            options: Per-request style overrides
            work_dir: Directory for frames, markup, fonts and output
            progress: Called with (percent, message) at each checkpoint

        Returns:
            PipelineResult with the rendered video and stats

        Raises:
            VideoProbeError: If the video cannot be read
            TranslationError: If translation fails
            RenderError: If frame extraction or rendering fails
        """
        started = time.monotonic()
        work_dir = Path(work_dir or tempfile.mkdtemp(prefix="caption-translator-"))
        work_dir.mkdir(parents=True, exist_ok=True)
        style = self.style_for(options)

        info = self.renderer.probe(video_path)
        logger.info(
            f"Translating {video_path.name} ({info.width}x{info.height}, {info.duration:.1f}s) to {target_language}"
        )

        progress(PROGRESS_EXTRACT, "Extracting frames")
        frame_paths = self.renderer.extract_frames(video_path, work_dir / "frames", self.sampling_rate)
        frames, skipped = self.select_frames(frame_paths, info.duration)

        progress(PROGRESS_OCR_START, f"Detecting text in {len(frames)} frames")
        records = self.detect_frames(frames, progress)

        candidates = filter_subtitle_candidates(records, self.filter_config)
        progress(PROGRESS_FILTERED, "Translating subtitles")

        translations = self.translate_phrases(candidates, target_language)
        progress(PROGRESS_TRANSLATED, "Laying out subtitles")

        assignments = self.assign_frames(candidates, translations, info.width, style)
        events = synthesize_events(assignments, info.frame_size, style, self.sampling_rate)
        progress(PROGRESS_SYNTHESIZED, "Rendering video")

        font = self.resolve_font(style, work_dir)
        output_path = work_dir / f"{video_path.stem}_translated.mp4"
        self.renderer.render(video_path, info.frame_size, events, style, output_path, font)
        progress(PROGRESS_RENDERED, "Creating preview")

        preview_path = self._snapshot(output_path, events, work_dir)

        stats = JobStats(
            frames_processed=len(frames),
            frames_skipped=skipped,
            texts_detected=len(translations),
            translations_applied=sum(1 for src, dst in translations.items() if dst != src),
            events=len(events),
            processing_time_seconds=round(time.monotonic() - started, 3),
            output_size_bytes=output_path.stat().st_size if output_path.exists() else 0,
        )
        logger.info(
            f"Finished {video_path.name}: {stats.frames_processed} frames, "
            f"{stats.texts_detected} phrases, {stats.events} events in {stats.processing_time_seconds:.1f}s"
        )
        return PipelineResult(
            output_path=output_path,
            stats=stats,
            events=events,
            preview_path=preview_path,
            subtitles_path=output_path.with_suffix(".ass"),
        )

    def run_job(self, store: JobStore, job_id: str) -> bool:
        """Drive one queued job to a terminal state.

        Never raises: every failure is recorded on the job.

        Returns:
            True if the job completed
        """
        job = store.get(job_id)
        if job is None:
            logger.warning(f"Job {job_id} not found, skipping")
            return False
        if not store.mark_processing(job_id):
            logger.warning(f"Job {job_id} is {job.status.value}, not starting it")
            return False

        work_dir = Path(job.work_dir) if job.work_dir else self.settings.jobs_dir / job_id
        store.update(job_id, work_dir=str(work_dir))

        try:
            if not job.video_path:
                raise ValueError("Job has no input video")
            result = self.translate_video(
                Path(job.video_path),
                job.target_language,
                SubtitleOptions.parse_lenient(job.options),
                work_dir=work_dir,
                progress=lambda percent, message: store.set_progress(job_id, percent, message),
            )
        except Exception as e:
            logger.exception(f"Job {job_id} failed: {e}")
            store.mark_failed(job_id, str(e) or type(e).__name__)
            shutil.rmtree(work_dir, ignore_errors=True)
            return False

        completed = store.mark_completed(
            job_id,
            str(result.output_path),
            result.stats,
            preview_path=str(result.preview_path) if result.preview_path else None,
        )
        if not completed:
            # deleted or evicted mid-run; nothing will release these files later
            logger.warning(f"Job {job_id} was removed while processing, discarding {work_dir}")
            shutil.rmtree(work_dir, ignore_errors=True)
            return False
        return True

    def preview(
        self,
        video_path: Path,
        target_language: str,
        options: SubtitleOptions | None = None,
        at_seconds: float = 0.0,
        work_dir: Path | None = None,
    ) -> PreviewResult:
        """Render a single styled frame without building the full timeline.

        The sample nearest ``at_seconds`` is used if it has text; otherwise the
        search moves forward, then backward, for the first frame with any
        meaningful text. If none is found the frame is rendered without subtitles.
        """
        work_dir = Path(work_dir or tempfile.mkdtemp(prefix="caption-preview-"))
        work_dir.mkdir(parents=True, exist_ok=True)
        style = self.style_for(options)
        info = self.renderer.probe(video_path)

        frame_paths = self.renderer.extract_frames(video_path, work_dir / "frames", self.sampling_rate)
        if not frame_paths:
            raise RenderError(f"No frames could be extracted from {video_path.name}")

        nearest = min(len(frame_paths) - 1, max(0, int(at_seconds * self.sampling_rate)))
        order = list(range(nearest, len(frame_paths))) + list(range(nearest - 1, -1, -1))

        chosen: FrameRecord | None = None
        for calls, index in enumerate(order):
            if calls > 0 and self.settings.ocr_throttle_seconds > 0:
                self._sleep(self.settings.ocr_throttle_seconds)
            boxes = self.detect_text(frame_paths[index])
            if any(has_meaningful_text(box.text) for box in boxes):
                chosen = FrameRecord(index + 1, group_into_lines(boxes))
                break

        output_path = work_dir / "preview.png"
        if chosen is None:
            logger.info(f"No text found in {video_path.name}; previewing without subtitles")
            self.renderer.render_preview(video_path, info.frame_size, [], style, at_seconds, output_path)
            return PreviewResult(image_path=output_path)

        if self.filter_config.enabled:
            chosen.lines = filter_frame(chosen.lines, self.filter_config)
        translations = self.translate_phrases([chosen], target_language)
        assignment = self.assign_frames([chosen], translations, info.width, style)[0]
        events = synthesize_events([assignment], info.frame_size, style, self.sampling_rate)

        start, end = frame_bounds(chosen.frame_number, self.sampling_rate)
        font = self.resolve_font(style, work_dir)
        self.renderer.render_preview(video_path, info.frame_size, events, style, (start + end) / 2, output_path, font)
        return PreviewResult(
            image_path=output_path,
            frame_number=chosen.frame_number,
            source_text=" ".join(line.text for line in chosen.lines) or None,
            text=assignment.text or None,
        )


def build_default_pipeline(settings: Settings | None = None) -> SubtitlePipeline:
    """Pipeline wired to Google Vision, OpenAI/DeepL and FFmpeg."""
    from caption_translator.backends import get_ocr_backend
    from caption_translator.backends.video import FfmpegRenderer

    settings = settings or get_settings()
    return SubtitlePipeline(ocr=get_ocr_backend(settings), renderer=FfmpegRenderer(), settings=settings)
