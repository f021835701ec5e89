"""In-process registry of render jobs polled by the HTTP layer."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from shared.exceptions import JobConflictError
from shared.models import Job, JobStatus
from shared.utils import setup_logging

logger = setup_logging("job-store")


class ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._condition:
            # Writers waiting get priority so polling cannot starve updates
            while self._writer or self._waiting_writers:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if not self._readers:
                    self._condition.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._condition:
            self._waiting_writers += 1
            while self._writer or self._readers:
                self._condition.wait()
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._condition:
                self._writer = False
                self._condition.notify_all()


class JobStore:
    """Map of job id to Job.

    Reads hand out copies, so callers never observe a record mid-update. Jobs
    are never removed. Terminal jobs ignore further mutation and progress never
    moves backwards.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = ReadWriteLock()

    def create_job(self, job_id: str) -> Job:
        """Register a pending job, replacing a finished record with the same id.

        Raises JobConflictError while a job with this id is still active.
        """
        job = Job(id=job_id)
        with self._lock.write():
            existing = self._jobs.get(job_id)
            if existing is not None and not existing.status.is_terminal:
                raise JobConflictError(f"Job {job_id} is already {existing.status.value}")
            self._jobs[job_id] = job
        return job.model_copy()

    def get_job(self, job_id: str) -> Job | None:
        with self._lock.read():
            job = self._jobs.get(job_id)
            return job.model_copy() if job else None

    def list_jobs(self) -> list[Job]:
        """All jobs in no particular order; consumers sort as they need."""
        with self._lock.read():
            return [job.model_copy() for job in self._jobs.values()]

    def _mutable(self, job_id: str) -> Job | None:
        """The live record if it may still change. Caller holds the write lock."""
        job = self._jobs.get(job_id)
        if job is None:
            logger.debug(f"Ignoring update for unknown job {job_id}")
            return None
        if job.status.is_terminal:
            logger.debug(f"Ignoring update for finished job {job_id} ({job.status.value})")
            return None
        return job

    def update_progress(self, job_id: str, progress: int, message: str) -> None:
        with self._lock.write():
            job = self._mutable(job_id)
            if job is None:
                return
            job.status = JobStatus.PROCESSING
            job.progress = max(job.progress, min(100, max(0, int(progress))))
            job.message = message

    def complete_job(self, job_id: str, download_url: str) -> None:
        with self._lock.write():
            job = self._mutable(job_id)
            if job is None:
                return
            job.status = JobStatus.SUCCESS
            job.progress = 100
            job.message = "Completed"
            job.download_url = download_url

    def fail_job(self, job_id: str, error: str) -> None:
        with self._lock.write():
            job = self._mutable(job_id)
            if job is None:
                return
            job.status = JobStatus.FAILED
            job.message = "Failed"
            job.error = error
