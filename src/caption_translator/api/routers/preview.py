"""Single-frame style preview endpoint."""

import asyncio
import logging
import shutil
import uuid

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response

from caption_translator.api.dependencies import AppSettings, Pipeline
from caption_translator.api.routers.jobs import check_video_source, parse_options
from caption_translator.api.uploads import download_video, save_upload, video_extension
from caption_translator.config import SubtitleOptions
from caption_translator.errors import (
    CaptionTranslatorError,
    UnsupportedMediaError,
    VideoProbeError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/preview")
async def create_preview(
    settings: AppSettings,
    pipeline: Pipeline,
    video: UploadFile | None = File(None),
    videoUrl: str | None = Form(None),
    targetLanguage: str | None = Form(None),
    options: str | None = Form(None),
    previewAtSeconds: float = Form(0.0),
):
    """
    Render one frame with translated, styled subtitles.

    Uses the same clustering, filtering and layout as a full job but only
    for the frame nearest ``previewAtSeconds``. Returns a PNG image.
    """
    check_video_source(video, videoUrl)
    if not targetLanguage or not targetLanguage.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="targetLanguage is required")
    subtitle_options = SubtitleOptions.parse_lenient(parse_options(options))

    work_dir = settings.work_dir / "previews" / uuid.uuid4().hex
    try:
        extension = video_extension(video.filename, video.content_type) if video is not None else ".mp4"
        video_path = work_dir / f"input{extension}"
        if video is not None:
            await save_upload(video, video_path, settings.max_upload_bytes)
        else:
            await download_video(videoUrl, video_path, settings.max_upload_bytes)

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None,
            lambda: pipeline.preview(
                video_path,
                targetLanguage.strip(),
                subtitle_options,
                at_seconds=max(0.0, previewAtSeconds),
                work_dir=work_dir,
            ),
        )
        image = result.image_path.read_bytes()
    except (UnsupportedMediaError, VideoProbeError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (CaptionTranslatorError, OSError) as e:
        logger.error(f"Preview failed: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)

    return Response(content=image, media_type="image/png", headers={"Cache-Control": "no-cache"})
