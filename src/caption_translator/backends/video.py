"""Frame sampling and subtitle burn-in using FFmpeg."""

import logging
import sys
from pathlib import Path
from typing import Sequence

import ffmpeg

from caption_translator.backends.base import FontAsset, Renderer
from caption_translator.config import StyleConfig
from caption_translator.errors import RenderError, VideoProbeError
from caption_translator.markup import write_document
from caption_translator.models import SubtitleEvent, VideoInfo

logger = logging.getLogger(__name__)

FRAME_PATTERN = "frame_%04d.png"


def _stderr(error: ffmpeg.Error) -> str:
    return error.stderr.decode(errors="replace") if error.stderr else str(error)


def probe_video(video_path: Path) -> VideoInfo:
    """Get video dimensions, duration and whether it has audio.

    Raises:
        VideoProbeError: If ffprobe fails or no video stream is found
    """
    try:
        probe = ffmpeg.probe(str(video_path))
        video_stream = next(
            (stream for stream in probe["streams"] if stream["codec_type"] == "video"),
            None,
        )
        if not video_stream:
            raise VideoProbeError(f"No video stream found in {video_path.name}")
        has_audio = any(stream["codec_type"] == "audio" for stream in probe["streams"])
        duration = float(probe["format"].get("duration") or video_stream.get("duration") or 0)
        return VideoInfo(
            width=int(video_stream["width"]),
            height=int(video_stream["height"]),
            duration=duration,
            has_audio=has_audio,
        )
    except ffmpeg.Error as e:
        raise VideoProbeError(f"Failed to read video {video_path.name}: {_stderr(e)}") from e
    except (KeyError, ValueError) as e:
        raise VideoProbeError(f"Failed to read video {video_path.name}: {e}") from e


def video_codecs() -> list[str]:
    """Encoders to try, in order of preference for this platform."""
    if sys.platform == "darwin":
        return ["h264_videotoolbox", "libx264"]
    return ["libx264"]


class FfmpegRenderer(Renderer):
    """Renderer backed by the ffmpeg/ffprobe binaries."""

    def probe(self, video_path: Path) -> VideoInfo:
        return probe_video(video_path)

    def extract_frames(self, video_path: Path, output_dir: Path, rate_hz: float) -> list[Path]:
        """Extract PNG frames at ``rate_hz``.

        Raises:
            RenderError: If FFmpeg fails
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        try:
            (
                ffmpeg.input(str(video_path))
                .filter("fps", fps=rate_hz)
                .output(str(output_dir / FRAME_PATTERN), format="image2")
                .overwrite_output()
                .run(capture_stdout=True, capture_stderr=True)
            )
        except ffmpeg.Error as e:
            raise RenderError(f"FFmpeg frame extraction failed: {_stderr(e)}") from e
        except FileNotFoundError as e:
            raise RenderError("FFmpeg not found. Please install FFmpeg: https://ffmpeg.org/download.html") from e

        frames = sorted(output_dir.glob("frame_*.png"))
        logger.info(f"Extracted {len(frames)} frames at {rate_hz} Hz from {video_path.name}")
        return frames

    def _subtitled_video(self, video_path: Path, subtitles_path: Path, font: FontAsset | None):
        stream = ffmpeg.input(str(video_path))
        video = stream.video.filter("scale", "trunc(iw/2)*2", "trunc(ih/2)*2")
        if font is not None:
            video = video.filter("subtitles", str(subtitles_path), fontsdir=str(font.directory))
        else:
            video = video.filter("subtitles", str(subtitles_path))
        return stream, video

    def render(
        self,
        video_path: Path,
        frame_size: tuple[int, int],
        events: Sequence[SubtitleEvent],
        style: StyleConfig,
        output_path: Path,
        font: FontAsset | None = None,
    ) -> Path:
        """Write the ASS file next to the output and burn it into the video.

        Raises:
            RenderError: If every encoder fails
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        subtitles_path = write_document(
            output_path.with_suffix(".ass"), events, frame_size, style, font.family if font else style.font_name
        )
        has_audio = probe_video(video_path).has_audio

        last_error = ""
        for codec in video_codecs():
            stream, video = self._subtitled_video(video_path, subtitles_path, font)
            outputs = [video, stream.audio] if has_audio else [video]
            audio_args = {"acodec": "aac", "b:a": "192k", "ac": 2, "ar": 48000} if has_audio else {}
            try:
                (
                    ffmpeg.output(
                        *outputs,
                        str(output_path),
                        vcodec=codec,
                        pix_fmt="yuv420p",
                        movflags="+faststart",
                        **audio_args,
                    )
                    .overwrite_output()
                    .run(capture_stdout=True, capture_stderr=True)
                )
                logger.info(f"Rendered {len(events)} subtitle events into {output_path.name} with {codec}")
                return output_path
            except ffmpeg.Error as e:
                last_error = _stderr(e)
                logger.warning(f"Encoding with {codec} failed, trying next encoder")
            except FileNotFoundError as e:
                raise RenderError("FFmpeg not found. Please install FFmpeg: https://ffmpeg.org/download.html") from e

        raise RenderError(f"FFmpeg render failed: {last_error}")

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
        output_path.parent.mkdir(parents=True, exist_ok=True)
        subtitles_path = write_document(
            output_path.with_suffix(".ass"), events, frame_size, style, font.family if font else style.font_name
        )
        _stream, video = self._subtitled_video(video_path, subtitles_path, font)
        try:
            (
                video.output(str(output_path), ss=max(0.0, at_seconds), vframes=1)
                .overwrite_output()
                .run(capture_stdout=True, capture_stderr=True)
            )
        except ffmpeg.Error as e:
            raise RenderError(f"FFmpeg preview failed: {_stderr(e)}") from e
        return output_path

    def snapshot(self, video_path: Path, at_seconds: float, output_path: Path) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            (
                ffmpeg.input(str(video_path), ss=max(0.0, at_seconds))
                .output(str(output_path), vframes=1)
                .overwrite_output()
                .run(capture_stdout=True, capture_stderr=True)
            )
        except ffmpeg.Error as e:
            raise RenderError(f"FFmpeg snapshot failed: {_stderr(e)}") from e
        return output_path
