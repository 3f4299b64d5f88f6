"""In-process queue for case analyses that should not block the request.

A submitted job is acknowledged immediately and run by one of a small pool of
worker tasks. Job state lives in memory only; the durable outcome is the case
itself (status and stored pre-analysis). Only the most recent finished jobs
are remembered; queued and running jobs are never forgotten.
"""

import asyncio
import logging
import uuid
from collections import OrderedDict
from datetime import datetime, timezone

from carefile.config import ANALYSIS_JOB_HISTORY, ANALYSIS_WORKERS
from carefile.database import get_db
from carefile.errors import NotFoundError, ValidationError
from carefile.models.ai import AnalysisJob, JobStatus
from carefile.services import analysis, records
from carefile.services.event_bus import event_bus

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AnalysisQueue:
    def __init__(self, workers: int = ANALYSIS_WORKERS, max_jobs: int = ANALYSIS_JOB_HISTORY) -> None:
        self._worker_count = max(1, workers)
        self._max_jobs = max(1, max_jobs)
        self._queue: asyncio.Queue[str] | None = None
        self._workers: list[asyncio.Task] = []
        self._jobs: OrderedDict[str, AnalysisJob] = OrderedDict()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        if self._workers:
            return
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"analysis-worker-{n}")
            for n in range(self._worker_count)
        ]
        logger.info("Analysis queue started with %d worker(s)", self._worker_count)

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        for task in self._workers:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._workers = []
        self._queue = None
        logger.info("Analysis queue stopped")

    async def submit(self, case_id: str | None) -> AnalysisJob:
        """Queue an analysis of ``case_id`` and return the job without waiting for it."""
        if not case_id or not case_id.strip():
            raise ValidationError("Case ID is required")
        db = await get_db()
        if not await records.find_case(db, case_id):
            raise NotFoundError("Case not found")

        self.start()
        job = AnalysisJob(
            job_id=str(uuid.uuid4()),
            case_id=case_id,
            status=JobStatus.QUEUED,
            submitted_at=_now(),
        )
        self._jobs[job.job_id] = job
        self._prune()
        await self._queue.put(job.job_id)
        logger.info("Queued analysis job %s for case %s", job.job_id, case_id)
        return job.model_copy()

    def get(self, job_id: str) -> AnalysisJob | None:
        return self._jobs.get(job_id)

    def __len__(self) -> int:
        return len(self._jobs)

    def _prune(self) -> None:
        excess = len(self._jobs) - self._max_jobs
        if excess <= 0:
            return
        stale = [job_id for job_id, job in self._jobs.items() if job.status.finished][:excess]
        for job_id in stale:
            del self._jobs[job_id]
        if stale:
            logger.debug("Forgot %d finished analysis job(s)", len(stale))

    async def join(self) -> None:
        """Wait until every queued job has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def _worker(self, n: int) -> None:
        while True:
            job_id = await self._queue.get()
            job = self._jobs[job_id]
            job.status = JobStatus.RUNNING
            job.started_at = _now()
            try:
                await analysis.analyze_case(job.case_id)
                job.status = JobStatus.SUCCEEDED
            except Exception as e:
                job.status = JobStatus.FAILED
                job.error = getattr(e, "message", None) or str(e)
                logger.error("Analysis job %s for case %s failed: %s", job_id, job.case_id, e)
                await event_bus.publish(job.case_id, {
                    "type": "analysis_failed",
                    "job_id": job_id,
                    "error": job.error,
                })
            finally:
                job.finished_at = _now()
                self._prune()
                self._queue.task_done()
            logger.info("Worker %d finished job %s (%s)", n, job_id, job.status.value)


analysis_queue = AnalysisQueue()
