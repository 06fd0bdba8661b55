"""Command-line interface for translating video subtitles.

Runs the same pipeline as the HTTP API, locally and synchronously.
"""

import json
import logging
import shutil
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)
from rich.table import Table

from caption_translator.config import SubtitleOptions, get_settings
from caption_translator.errors import CaptionTranslatorError
from caption_translator.pipeline import build_default_pipeline

app = typer.Typer(
    name="caption-translator",
    help="Translate burned-in video subtitles and re-render them",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console(stderr=True)


def _load_options(options: str | None) -> SubtitleOptions:
    if not options:
        return SubtitleOptions()
    path = Path(options)
    raw = path.read_text(encoding="utf-8") if path.is_file() else options
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] --options is not valid JSON: {e}")
        raise typer.Exit(1) from e
    if not isinstance(data, dict):
        console.print("[red]Error:[/red] --options must be a JSON object")
        raise typer.Exit(1)
    return SubtitleOptions.parse_lenient(data)


def _build_pipeline():
    return build_default_pipeline(get_settings())


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command()
def translate(
    video: Path = typer.Argument(
        ...,
        help="Path to video file",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    language: str = typer.Option(
        ...,
        "--language",
        "-l",
        help="Target language (e.g., 'Chinese', 'es')",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Output video path (default: <video>_translated.mp4 next to the input)",
    ),
    options: str | None = typer.Option(
        None,
        "--options",
        help="Style options as a JSON object or a path to a JSON file",
    ),
    keep_work_dir: bool = typer.Option(
        False,
        "--keep-work-dir",
        help="Keep extracted frames and subtitle markup",
    ),
) -> None:
    """Translate the burned-in subtitles of VIDEO into LANGUAGE."""
    subtitle_options = _load_options(options)
    output = output or video.with_name(f"{video.stem}_translated.mp4")
    work_dir = get_settings().jobs_dir / f"cli-{video.stem}"

    console.print(f"[bold]Translating {video.name} to {language}[/bold]")
    console.print(f"Output: {output}")
    console.print()

    try:
        pipeline = _build_pipeline()
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Starting...", total=100)
            result = pipeline.translate_video(
                video,
                language,
                subtitle_options,
                work_dir=work_dir,
                progress=lambda percent, message: progress.update(task, completed=percent, description=message),
            )
            progress.update(task, completed=100, description="Done")

        output.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(result.output_path), output)
    except (CaptionTranslatorError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    finally:
        if not keep_work_dir:
            shutil.rmtree(work_dir, ignore_errors=True)

    stats = result.stats
    table = Table(title="Summary", show_header=False)
    table.add_row("Frames processed", str(stats.frames_processed))
    table.add_row("Frames skipped", str(stats.frames_skipped))
    table.add_row("Phrases detected", str(stats.texts_detected))
    table.add_row("Translations applied", str(stats.translations_applied))
    table.add_row("Subtitle events", str(stats.events))
    table.add_row("Processing time", f"{stats.processing_time_seconds:.1f}s")
    console.print(table)
    console.print(f"[green]✓[/green] Wrote {output}")


@app.command()
def preview(
    video: Path = typer.Argument(
        ...,
        help="Path to video file",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    language: str = typer.Option(..., "--language", "-l", help="Target language"),
    at: float = typer.Option(0.0, "--at", "-t", help="Preview time in seconds"),
    output: Path = typer.Option(Path("preview.png"), "--output", "-o", help="Output PNG path"),
    options: str | None = typer.Option(None, "--options", help="Style options JSON or file"),
) -> None:
    """Render a single frame of VIDEO with translated subtitles."""
    subtitle_options = _load_options(options)
    work_dir = get_settings().work_dir / "previews" / f"cli-{video.stem}"
    try:
        result = _build_pipeline().preview(video, language, subtitle_options, at_seconds=at, work_dir=work_dir)
        output.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(result.image_path, output)
    except (CaptionTranslatorError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)

    if result.frame_number is None:
        console.print("[yellow]No text found; preview has no subtitles[/yellow]")
    else:
        console.print(f"Frame {result.frame_number}: {result.source_text!r} -> {result.text!r}")
    console.print(f"[green]✓[/green] Wrote {output}")


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (default from API_HOST)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port (default from API_PORT)"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "caption_translator.api.main:create_app",
        factory=True,
        host=host or settings.api_host,
        port=port or settings.api_port,
    )


if __name__ == "__main__":
    app()
