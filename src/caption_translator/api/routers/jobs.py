"""Job submission, status, download and stats endpoints."""

import json
import logging
import time
from pathlib import Path

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from fastapi.responses import FileResponse

from caption_translator.api.dependencies import AppSettings, Runner, Store
from caption_translator.api.models import (
    JobListResponse,
    JobResponse,
    JobStoreStats,
    StatsResponse,
    UploadResponse,
)
from caption_translator.api.uploads import download_video, save_upload, video_extension
from caption_translator.errors import UnsupportedMediaError
from caption_translator.jobs import JobStatus

logger = logging.getLogger(__name__)

router = APIRouter()

STARTED_AT = time.time()


def parse_options(raw: str | None) -> dict:
    """Parse the ``options`` form field (a JSON object)."""
    if not raw:
        return {}
    try:
        options = json.loads(raw)
    except json.JSONDecodeError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid options JSON")
    if not isinstance(options, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="options must be a JSON object")
    return options


def check_video_source(video: UploadFile | None, video_url: str | None) -> None:
    if video is None and not video_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either video file or videoUrl is required",
        )
    if video is not None and video_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide either video file or videoUrl, not both",
        )


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_202_ACCEPTED)
async def upload_video(
    settings: AppSettings,
    store: Store,
    runner: Runner,
    video: UploadFile | None = File(None),
    videoUrl: str | None = Form(None),
    targetLanguage: str | None = Form(None),
    options: str | None = Form(None),
):
    """
    Submit a video for subtitle translation.

    Returns the job id immediately. Poll GET /api/jobs/{id} for progress.
    """
    check_video_source(video, videoUrl)
    if not targetLanguage or not targetLanguage.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="targetLanguage is required")
    job_options = parse_options(options)

    try:
        extension = video_extension(video.filename, video.content_type) if video is not None else ".mp4"
    except UnsupportedMediaError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    job = store.create(targetLanguage.strip(), job_options)
    dest = settings.uploads_dir / f"{job.job_id}{extension}"

    try:
        if video is not None:
            await save_upload(video, dest, settings.max_upload_bytes)
        else:
            await download_video(videoUrl, dest, settings.max_upload_bytes)
    except UnsupportedMediaError as e:
        store.mark_failed(job.job_id, str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    store.update(job.job_id, video_path=str(dest), work_dir=str(settings.jobs_dir / job.job_id))
    runner.submit(job.job_id)
    logger.info(f"Accepted job {job.job_id} ({job.target_language})")

    return UploadResponse(
        jobId=job.job_id,
        status=job.status.value,
        message=(
            "Video uploaded successfully. Processing started."
            if video is not None
            else "Video downloaded from URL. Processing started."
        ),
    )


@router.get("/jobs", response_model=JobListResponse)
async def list_jobs(store: Store):
    """List all jobs, newest first."""
    return JobListResponse(
        jobs=[JobResponse.from_job(job) for job in store.list()],
        stats=JobStoreStats.from_store_stats(store.get_stats()),
    )


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, store: Store):
    """Get job status, progress and stats."""
    job = store.get(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return JobResponse.from_job(job)


@router.delete("/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job(job_id: str, store: Store):
    """Delete a job and its files."""
    if not store.delete(job_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")


@router.get("/download/{job_id}")
async def download_output(job_id: str, store: Store):
    """Download the translated video of a completed job."""
    job = store.get(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    if job.status != JobStatus.COMPLETED or not job.output_path:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Video not ready. Current status: {job.status.value}",
        )

    path = Path(job.output_path)
    if not path.exists():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Output file not found")
    return FileResponse(path, media_type="video/mp4", filename=f"translated_{job_id}.mp4")


@router.get("/preview/{job_id}")
async def job_preview(job_id: str, store: Store):
    """Preview frame of a completed job's output."""
    job = store.get(job_id)
    if job is None or not job.preview_path:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Preview not available")

    path = Path(job.preview_path)
    if not path.exists():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Preview not found")
    return FileResponse(path, media_type="image/png")


@router.get("/stats", response_model=StatsResponse)
async def get_stats(store: Store, runner: Runner):
    """Job store statistics."""
    return StatsResponse(
        stats=JobStoreStats.from_store_stats(store.get_stats()),
        activeJobs=runner.active_jobs,
        uptimeSeconds=round(time.time() - STARTED_AT, 1),
    )
