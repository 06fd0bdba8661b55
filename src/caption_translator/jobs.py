"""
In-memory job storage with forward-only status transitions and TTL eviction.

All mutations go through ``JobStore`` methods under a single lock; callers
only ever receive copies of the stored jobs. Files belonging to evicted or
deleted jobs are removed after the lock is released.
"""

import copy
import logging
import secrets
import shutil
import time
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_TRANSITIONS = {
    JobStatus.QUEUED: {JobStatus.PROCESSING, JobStatus.FAILED},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}

PROCESSING_START_PROGRESS = 10


@dataclass
class JobStats:
    """Counters collected while a job runs."""

    frames_processed: int = 0
    frames_skipped: int = 0
    texts_detected: int = 0
    translations_applied: int = 0
    events: int = 0
    processing_time_seconds: float = 0.0
    output_size_bytes: int = 0


@dataclass
class Job:
    """Job metadata and results."""

    job_id: str
    status: JobStatus
    target_language: str
    created_at: float
    updated_at: float
    options: Dict[str, Any] = field(default_factory=dict)
    progress: int = 0
    message: Optional[str] = None
    video_path: Optional[str] = None
    output_path: Optional[str] = None
    preview_path: Optional[str] = None
    work_dir: Optional[str] = None
    error: Optional[str] = None
    stats: Optional[JobStats] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        data = asdict(self)
        data["status"] = self.status.value
        data["created_at"] = datetime.fromtimestamp(self.created_at).isoformat()
        data["updated_at"] = datetime.fromtimestamp(self.updated_at).isoformat()
        return data

    def artifact_paths(self) -> List[Path]:
        return [Path(p) for p in (self.video_path, self.output_path, self.preview_path) if p]


_JOB_FIELDS = {f.name for f in fields(Job)}
_PROTECTED_FIELDS = {"job_id", "created_at", "updated_at"}


def new_job_id() -> str:
    """Generate an opaque unique job id."""
    return f"job_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def release_artifacts(job: Job) -> None:
    """Delete a job's files and working directory (best effort)."""
    for path in job.artifact_paths():
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to remove {path} for {job.job_id}: {e}")
    if job.work_dir:
        shutil.rmtree(job.work_dir, ignore_errors=True)


class JobStore:
    """In-memory job storage with TTL and a capacity bound."""

    def __init__(
        self,
        ttl_seconds: int = 3600,
        max_jobs: int = 1000,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_jobs = max_jobs
        self._clock = clock
        self._lock = Lock()
        self._jobs: Dict[str, Job] = {}

    def create(
        self,
        target_language: str,
        options: Optional[Dict[str, Any]] = None,
        video_path: Optional[str] = None,
        work_dir: Optional[str] = None,
    ) -> Job:
        """Create a queued job and return a copy of it."""
        now = self._clock()
        job = Job(
            job_id=new_job_id(),
            status=JobStatus.QUEUED,
            target_language=target_language,
            created_at=now,
            updated_at=now,
            options=dict(options or {}),
            video_path=video_path,
            work_dir=work_dir,
        )

        with self._lock:
            while job.job_id in self._jobs:
                job.job_id = new_job_id()
            self._jobs[job.job_id] = job
            evicted = self._enforce_capacity_locked(keep=job.job_id)
            snapshot = copy.deepcopy(job)

        for old in evicted:
            logger.info(f"Evicted job {old.job_id} ({old.status.value}) to stay under {self.max_jobs} jobs")
            release_artifacts(old)
        return snapshot

    def get(self, job_id: str) -> Optional[Job]:
        """Get a copy of the job, or None if unknown."""
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job else None

    def list(self) -> List[Job]:
        """Copies of all jobs, newest first."""
        with self._lock:
            jobs = [copy.deepcopy(job) for job in self._jobs.values()]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)

    def update(self, job_id: str, **changes: Any) -> bool:
        """Merge fields into a job.

        Status changes are only applied when they are legal forward
        transitions, and progress never decreases unless the job has failed.
        ``updated_at`` is refreshed on every call for a known job.

        Returns:
            False if the job does not exist
        """
        unknown = set(changes) - _JOB_FIELDS
        if unknown:
            raise ValueError(f"Unknown job fields: {sorted(unknown)}")

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False
            self._apply_locked(job, changes)
            return True

    def set_progress(self, job_id: str, progress: int, message: Optional[str] = None) -> bool:
        changes: Dict[str, Any] = {"progress": progress}
        if message is not None:
            changes["message"] = message
        return self.update(job_id, **changes)

    def mark_processing(self, job_id: str) -> bool:
        """Move a queued job to processing. Returns False if not applied."""
        return self._transition(
            job_id, JobStatus.PROCESSING, progress=PROCESSING_START_PROGRESS, message="Processing"
        )

    def mark_completed(
        self,
        job_id: str,
        output_path: str,
        stats: Optional[JobStats] = None,
        preview_path: Optional[str] = None,
    ) -> bool:
        """Move a processing job to completed. No-op for any other state."""
        return self._transition(
            job_id,
            JobStatus.COMPLETED,
            output_path=output_path,
            preview_path=preview_path,
            stats=stats,
            progress=100,
            message="Completed",
        )

    def mark_failed(self, job_id: str, error: str) -> bool:
        """Move a non-terminal job to failed. No-op once terminal."""
        return self._transition(job_id, JobStatus.FAILED, error=error, progress=0, message="Failed")

    def delete(self, job_id: str) -> bool:
        """Remove a job and its files."""
        with self._lock:
            job = self._jobs.pop(job_id, None)
        if job is None:
            return False
        release_artifacts(job)
        return True

    def evict(self, ttl_seconds: Optional[int] = None) -> int:
        """Remove jobs not updated within the TTL.

        Args:
            ttl_seconds: Override for the store's TTL

        Returns:
            Number of jobs removed
        """
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        cutoff = self._clock() - ttl

        with self._lock:
            expired = [job_id for job_id, job in self._jobs.items() if job.updated_at < cutoff]
            removed = [self._jobs.pop(job_id) for job_id in expired]

        for job in removed:
            release_artifacts(job)
        if removed:
            logger.info(f"Evicted {len(removed)} expired jobs")
        return len(removed)

    def get_stats(self) -> dict:
        """Get storage statistics."""
        with self._lock:
            statuses = {status.value: 0 for status in JobStatus}
            for job in self._jobs.values():
                statuses[job.status.value] += 1

            return {
                "total_jobs": len(self._jobs),
                "by_status": statuses,
                "ttl_seconds": self.ttl_seconds,
                "max_jobs": self.max_jobs,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def _transition(self, job_id: str, status: JobStatus, **changes: Any) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False
            if status not in _TRANSITIONS[job.status]:
                logger.debug(f"Ignoring {job.status.value} -> {status.value} for {job_id}")
                return False
            job.status = status
            self._apply_locked(job, changes)
            return True

    def _apply_locked(self, job: Job, changes: Dict[str, Any]) -> None:
        changes = dict(changes)
        status = changes.pop("status", None)
        if status is not None:
            status = JobStatus(status)
            if status != job.status and status in _TRANSITIONS[job.status]:
                job.status = status
            elif status != job.status:
                logger.debug(f"Ignoring {job.status.value} -> {status.value} for {job.job_id}")

        if "progress" in changes:
            progress = min(100, max(0, int(changes.pop("progress"))))
            if job.status != JobStatus.FAILED:
                progress = max(job.progress, progress)
            job.progress = progress

        for key, value in changes.items():
            if key not in _PROTECTED_FIELDS:
                setattr(job, key, value)
        job.updated_at = self._clock()

    def _enforce_capacity_locked(self, keep: str) -> List[Job]:
        overflow = len(self._jobs) - self.max_jobs
        if overflow <= 0:
            return []

        # Oldest finished jobs go first; in-flight jobs only if nothing else is left
        candidates = sorted(
            (job for job in self._jobs.values() if job.job_id != keep),
            key=lambda job: (not job.status.is_terminal, job.updated_at),
        )
        return [self._jobs.pop(job.job_id) for job in candidates[:overflow]]

