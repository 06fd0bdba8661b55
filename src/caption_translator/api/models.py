"""Request/response models for the HTTP API (camelCase for clients)."""

from datetime import datetime

from pydantic import BaseModel

from caption_translator.jobs import Job, JobStats


class JobStatsResponse(BaseModel):
    """Counters from a completed job."""

    framesProcessed: int
    framesSkipped: int
    textsDetected: int
    translationsApplied: int
    events: int
    processingTime: float
    outputSize: int

    @classmethod
    def from_stats(cls, stats: JobStats) -> "JobStatsResponse":
        return cls(
            framesProcessed=stats.frames_processed,
            framesSkipped=stats.frames_skipped,
            textsDetected=stats.texts_detected,
            translationsApplied=stats.translations_applied,
            events=stats.events,
            processingTime=stats.processing_time_seconds,
            outputSize=stats.output_size_bytes,
        )


class JobResponse(BaseModel):
    """Status snapshot of one job."""

    id: str
    status: str
    progress: int
    targetLanguage: str
    message: str | None = None
    error: str | None = None
    stats: JobStatsResponse | None = None
    downloadUrl: str | None = None
    previewUrl: str | None = None
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_job(cls, job: Job) -> "JobResponse":
        completed = job.status.value == "completed"
        return cls(
            id=job.job_id,
            status=job.status.value,
            progress=job.progress,
            targetLanguage=job.target_language,
            message=job.message,
            error=job.error,
            stats=JobStatsResponse.from_stats(job.stats) if job.stats else None,
            downloadUrl=f"/api/download/{job.job_id}" if completed and job.output_path else None,
            previewUrl=f"/api/preview/{job.job_id}" if completed and job.preview_path else None,
            createdAt=datetime.fromtimestamp(job.created_at),
            updatedAt=datetime.fromtimestamp(job.updated_at),
        )


class JobStoreStats(BaseModel):
    totalJobs: int
    byStatus: dict[str, int]
    ttlSeconds: int
    maxJobs: int

    @classmethod
    def from_store_stats(cls, stats: dict) -> "JobStoreStats":
        return cls(
            totalJobs=stats["total_jobs"],
            byStatus=stats["by_status"],
            ttlSeconds=stats["ttl_seconds"],
            maxJobs=stats["max_jobs"],
        )


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    stats: JobStoreStats


class UploadResponse(BaseModel):
    """Response for an accepted upload (HTTP 202)."""

    jobId: str
    status: str
    message: str


class StatsResponse(BaseModel):
    stats: JobStoreStats
    activeJobs: int
    uptimeSeconds: float
