import threading
from datetime import datetime, timezone
from typing import Dict, Optional
from uuid import uuid4

from aisubs.services.errors import JobNotFoundError
from aisubs.services.models import JobModel, JobResult, JobStatus


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobStore:
    """In-memory registry of translation jobs.

    Every operation runs under a single lock, so callers on any thread or
    asyncio task see each mutation atomically. Reads hand out copies; the
    stored records are only ever changed through the methods below.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, JobModel] = {}
        self._lock = threading.Lock()

    def create(self, source_path: str, track_index: int) -> JobModel:
        now = _now()
        job = JobModel(
            id=uuid4().hex,
            status=JobStatus.PENDING,
            progress=0.0,
            source_path=source_path,
            track_index=track_index,
            result=None,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._jobs[job.id] = job
            return job.model_copy(deep=True)

    def get(self, job_id: str) -> JobModel:
        with self._lock:
            return self._require(job_id).model_copy(deep=True)

    def set_status(self, job_id: str, status: JobStatus) -> None:
        with self._lock:
            job = self._require(job_id)
            job.status = status
            job.updated_at = _now()

    def set_progress(self, job_id: str, progress: float) -> None:
        with self._lock:
            job = self._require(job_id)
            clamped = min(max(progress, 0.0), 100.0)
            # progress never moves backwards while the job is running
            if not job.status.is_terminal and clamped > job.progress:
                job.progress = clamped
            job.updated_at = _now()

    def set_result(self, job_id: str, output_path: str) -> None:
        with self._lock:
            job = self._require(job_id)
            job.status = JobStatus.COMPLETED
            job.progress = 100.0
            job.result = JobResult(output_path=output_path)
            job.updated_at = _now()

    def set_error(self, job_id: str, error: BaseException) -> None:
        with self._lock:
            job = self._require(job_id)
            job.status = JobStatus.FAILED
            job.result = JobResult(error_message=str(error))
            job.updated_at = _now()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def _require(self, job_id: str) -> JobModel:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job


_store: Optional[JobStore] = None
_store_lock = threading.Lock()


def get_job_store() -> JobStore:
    """Return the process-wide store, building it on first use."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = JobStore()
    return _store
