"""Tests for the in-memory job store."""

import threading

import pytest

from caption_translator.jobs import PROCESSING_START_PROGRESS, JobStats, JobStatus, JobStore


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> JobStore:
    return JobStore(ttl_seconds=3600, max_jobs=10, clock=clock)


class TestCreateAndGet:
    def test_create_queued(self, store: JobStore):
        job = store.create("French", {"baseFontSize": 30})

        assert job.status == JobStatus.QUEUED
        assert job.progress == 0
        assert job.job_id.startswith("job_")
        assert store.get(job.job_id).options == {"baseFontSize": 30}

    def test_unique_ids(self, store: JobStore):
        ids = {store.create("French").job_id for _ in range(5)}

        assert len(ids) == 5

    def test_get_unknown(self, store: JobStore):
        assert store.get("job_missing") is None

    def test_get_returns_copy(self, store: JobStore):
        """Mutating a returned job does not change the stored one."""
        job = store.create("French")
        copy = store.get(job.job_id)
        copy.progress = 99

        assert store.get(job.job_id).progress == 0

    def test_list_newest_first(self, store: JobStore, clock: FakeClock):
        first = store.create("French")
        clock.advance(1)
        second = store.create("Spanish")

        assert [j.job_id for j in store.list()] == [second.job_id, first.job_id]


class TestTransitions:
    """Status only moves forward: queued -> processing -> completed/failed."""

    def test_happy_path(self, store: JobStore):
        job = store.create("French")

        assert store.mark_processing(job.job_id)
        assert store.get(job.job_id).progress == PROCESSING_START_PROGRESS
        assert store.mark_completed(job.job_id, "/tmp/out.mp4", JobStats(events=3))

        done = store.get(job.job_id)
        assert done.status == JobStatus.COMPLETED
        assert done.progress == 100
        assert done.stats.events == 3
        assert done.output_path == "/tmp/out.mp4"

    def test_completed_after_failed_is_ignored(self, store: JobStore):
        job = store.create("French")
        store.mark_processing(job.job_id)
        store.mark_failed(job.job_id, "boom")

        assert not store.mark_completed(job.job_id, "/tmp/out.mp4")
        assert store.get(job.job_id).status == JobStatus.FAILED
        assert store.get(job.job_id).output_path is None

    def test_failed_after_completed_is_ignored(self, store: JobStore):
        job = store.create("French")
        store.mark_processing(job.job_id)
        store.mark_completed(job.job_id, "/tmp/out.mp4")

        assert not store.mark_failed(job.job_id, "late error")
        assert store.get(job.job_id).error is None

    def test_cannot_complete_queued_job(self, store: JobStore):
        job = store.create("French")

        assert not store.mark_completed(job.job_id, "/tmp/out.mp4")
        assert store.get(job.job_id).status == JobStatus.QUEUED

    def test_queued_job_can_fail(self, store: JobStore):
        job = store.create("French")

        assert store.mark_failed(job.job_id, "upload failed")
        failed = store.get(job.job_id)
        assert failed.status == JobStatus.FAILED
        assert failed.error == "upload failed"
        assert failed.progress == 0

    def test_update_ignores_backward_status(self, store: JobStore):
        job = store.create("French")
        store.mark_processing(job.job_id)

        store.update(job.job_id, status="queued")

        assert store.get(job.job_id).status == JobStatus.PROCESSING

    def test_unknown_job(self, store: JobStore):
        assert not store.mark_processing("job_missing")
        assert not store.update("job_missing", message="x")


class TestProgress:
    def test_progress_never_decreases(self, store: JobStore):
        job = store.create("French")
        store.mark_processing(job.job_id)
        store.set_progress(job.job_id, 60, "Detecting text")
        store.set_progress(job.job_id, 20)

        updated = store.get(job.job_id)
        assert updated.progress == 60
        assert updated.message == "Detecting text"

    def test_progress_clamped(self, store: JobStore):
        job = store.create("French")
        store.set_progress(job.job_id, 250)

        assert store.get(job.job_id).progress == 100

    def test_update_refreshes_timestamp(self, store: JobStore, clock: FakeClock):
        job = store.create("French")
        clock.advance(30)
        store.update(job.job_id, message="still here")

        assert store.get(job.job_id).updated_at == job.updated_at + 30

    def test_unknown_field_rejected(self, store: JobStore):
        job = store.create("French")

        with pytest.raises(ValueError):
            store.update(job.job_id, colour="red")


class TestEviction:
    """Tests for TTL and capacity eviction."""

    def test_expired_jobs_evicted(self, store: JobStore, clock: FakeClock):
        old = store.create("French")
        clock.advance(3000)
        fresh = store.create("Spanish")
        clock.advance(700)

        assert store.evict() == 1
        assert store.get(old.job_id) is None
        assert store.get(fresh.job_id) is not None

    def test_recent_update_keeps_job(self, store: JobStore, clock: FakeClock):
        job = store.create("French")
        clock.advance(3000)
        store.set_progress(job.job_id, 50)
        clock.advance(3000)

        assert store.evict() == 0

    def test_ttl_override(self, store: JobStore, clock: FakeClock):
        store.create("French")
        clock.advance(10)

        assert store.evict(ttl_seconds=5) == 1

    def test_evict_removes_files(self, store: JobStore, clock: FakeClock, tmp_path):
        video = tmp_path / "input.mp4"
        video.write_bytes(b"video")
        work_dir = tmp_path / "work"
        (work_dir / "frames").mkdir(parents=True)
        store.create("French", video_path=str(video), work_dir=str(work_dir))
        clock.advance(4000)

        store.evict()

        assert not video.exists()
        assert not work_dir.exists()

    def test_capacity_evicts_oldest_finished_first(self, clock: FakeClock):
        store = JobStore(max_jobs=2, clock=clock)
        running = store.create("French")
        store.mark_processing(running.job_id)
        clock.advance(1)
        finished = store.create("French")
        store.mark_failed(finished.job_id, "boom")
        clock.advance(1)

        newest = store.create("French")

        assert len(store) == 2
        assert store.get(finished.job_id) is None
        assert store.get(running.job_id) is not None
        assert store.get(newest.job_id) is not None

    def test_capacity_falls_back_to_oldest_active(self, clock: FakeClock):
        store = JobStore(max_jobs=1, clock=clock)
        first = store.create("French")
        clock.advance(1)

        second = store.create("French")

        assert store.get(first.job_id) is None
        assert store.get(second.job_id) is not None


class TestDeleteAndStats:
    def test_delete_removes_job_and_files(self, store: JobStore, tmp_path):
        output = tmp_path / "out.mp4"
        output.write_bytes(b"video")
        job = store.create("French")
        store.mark_processing(job.job_id)
        store.mark_completed(job.job_id, str(output))

        assert store.delete(job.job_id)
        assert store.get(job.job_id) is None
        assert not output.exists()
        assert not store.delete(job.job_id)

    def test_stats(self, store: JobStore):
        store.create("French")
        processing = store.create("French")
        store.mark_processing(processing.job_id)

        stats = store.get_stats()

        assert stats["total_jobs"] == 2
        assert stats["by_status"] == {"queued": 1, "processing": 1, "completed": 0, "failed": 0}
        assert stats["ttl_seconds"] == 3600
        assert stats["max_jobs"] == 10

    def test_to_dict(self, store: JobStore):
        job = store.create("French")

        data = job.to_dict()

        assert data["status"] == "queued"
        assert isinstance(data["created_at"], str)


class TestConcurrency:
    """Pipeline threads and status pollers share one store."""

    def test_interleaved_progress_reads_and_creates(self):
        store = JobStore(max_jobs=1000)
        job = store.create("French")
        store.mark_processing(job.job_id)
        created: list[str] = []
        seen: list[int] = []
        errors: list[Exception] = []

        def report(offset: int) -> None:
            for value in range(offset, 100, 4):
                store.set_progress(job.job_id, value, f"step {value}")

        def poll() -> None:
            for _ in range(200):
                current = store.get(job.job_id)
                if current is None:
                    errors.append(AssertionError("job disappeared"))
                    return
                seen.append(current.progress)

        def submit() -> None:
            for _ in range(50):
                created.append(store.create("Spanish").job_id)

        threads = [threading.Thread(target=report, args=(offset,)) for offset in range(4)]
        threads += [threading.Thread(target=poll) for _ in range(2)]
        threads += [threading.Thread(target=submit) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert not errors
        assert store.get(job.job_id).progress == 99
        assert all(0 <= p <= 99 for p in seen)
        assert len(set(created)) == len(created) == 150
        assert len(store) == 151
