"""Bounded in-process run queue for extraction v2.

Each submission becomes one asyncio task. A semaphore caps how many runs
execute at once; the rest wait in ``queued``. Failures are recorded on the
handle and the job, never re-raised into the caller that submitted.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence
from uuid import uuid4

from roofreview.core.exceptions import RunAlreadyActiveError
from roofreview.database.models import JobStatus
from roofreview.pipeline.orchestrator import ExtractionV2Orchestrator
from roofreview.services.job_store import JobStore
from roofreview.services.progress import ProgressNotifier
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

OrchestratorFactory = Callable[[str], ExtractionV2Orchestrator]


class RunState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


ACTIVE_STATES = {RunState.QUEUED, RunState.RUNNING}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RunHandle:
    """Observable state of one pipeline run."""

    run_id: str
    job_id: str
    file_count: int
    state: RunState = RunState.QUEUED
    error: Optional[str] = None
    submitted_at: datetime = field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES


class PipelineRunner:
    """Schedules orchestrator runs as background tasks.

    Args:
        orchestrator_factory: Builds an orchestrator for a job id
        job_store: Used to mark jobs QUEUED and FAILED
        notifier: Receives the ``queued`` and ``failed`` events
        max_concurrent_runs: Upper bound on simultaneously executing runs
        max_retained_runs: Finished handles kept for status lookups
    """

    def __init__(
        self,
        orchestrator_factory: OrchestratorFactory,
        job_store: JobStore,
        notifier: ProgressNotifier,
        max_concurrent_runs: int = 2,
        max_retained_runs: int = 500,
    ):
        self.orchestrator_factory = orchestrator_factory
        self.job_store = job_store
        self.notifier = notifier
        self.max_concurrent_runs = max(1, max_concurrent_runs)
        self.max_retained_runs = max(1, max_retained_runs)
        self._semaphore = asyncio.Semaphore(self.max_concurrent_runs)
        self._handles: Dict[str, RunHandle] = {}
        self._latest_by_job: Dict[str, str] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def reserve(self, job_id: str, file_count: int = 0) -> RunHandle:
        """Claim the job for a new run without starting it.

        The handle is ``queued`` from here on, so further submissions for the
        job are rejected until :meth:`start` or :meth:`release`.

        Raises:
            RunAlreadyActiveError: If the job already has a queued or running run
        """
        job_id = str(job_id)
        current = self.latest_for_job(job_id)
        if current is not None and current.is_active:
            raise RunAlreadyActiveError(
                f"Job {job_id} already has an active run {current.run_id}"
            )

        handle = RunHandle(run_id=str(uuid4()), job_id=job_id, file_count=file_count)
        self._handles[handle.run_id] = handle
        self._latest_by_job[job_id] = handle.run_id
        return handle

    def release(self, handle: RunHandle, error: str) -> None:
        """Give up a reserved run that was never started."""
        self._finish(handle, RunState.FAILED, error)

    async def start(self, handle: RunHandle, file_paths: Sequence[str]) -> RunHandle:
        """Mark the job QUEUED and schedule the reserved run."""
        handle.file_count = len(file_paths)
        try:
            await self.job_store.update_status(handle.job_id, JobStatus.QUEUED)
        except Exception as e:
            self.release(handle, str(e))
            raise

        # Replaces any terminal event left by a previous run
        self.notifier.emit(
            handle.job_id,
            "queued",
            0,
            "Extraction v2 run queued",
            status=JobStatus.QUEUED.value,
        )

        task = asyncio.create_task(self._execute(handle, list(file_paths)))
        self._tasks[handle.run_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(handle.run_id, None))

        LOGGER.info(
            "Submitted extraction v2 run",
            extra={"job_id": handle.job_id, "run_id": handle.run_id, "files": handle.file_count},
        )
        return handle

    async def submit(self, job_id: str, file_paths: Sequence[str]) -> RunHandle:
        """Queue a run for ``job_id`` and return immediately.

        Raises:
            RunAlreadyActiveError: If the job already has a queued or running run
        """
        handle = self.reserve(job_id, len(file_paths))
        return await self.start(handle, file_paths)

    def get(self, run_id: str) -> Optional[RunHandle]:
        return self._handles.get(run_id)

    def latest_for_job(self, job_id: str) -> Optional[RunHandle]:
        run_id = self._latest_by_job.get(str(job_id))
        return self._handles.get(run_id) if run_id else None

    async def wait(self, run_id: str) -> Optional[RunHandle]:
        """Block until the run finishes, then return its handle."""
        task = self._tasks.get(run_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self._handles.get(run_id)

    async def shutdown(self) -> None:
        """Cancel in-flight runs and wait for them to unwind."""
        tasks: List[asyncio.Task] = list(self._tasks.values())
        if not tasks:
            return
        LOGGER.info(f"Cancelling {len(tasks)} in-flight extraction runs")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _finish(self, handle: RunHandle, state: RunState, error: Optional[str] = None) -> None:
        handle.state = state
        handle.error = error
        handle.finished_at = _utcnow()
        self._prune()

    def _prune(self) -> None:
        finished = [h for h in self._handles.values() if not h.is_active]
        excess = len(finished) - self.max_retained_runs
        if excess <= 0:
            return
        finished.sort(key=lambda h: h.finished_at or h.submitted_at)
        for handle in finished[:excess]:
            del self._handles[handle.run_id]
            if self._latest_by_job.get(handle.job_id) == handle.run_id:
                del self._latest_by_job[handle.job_id]

    async def _execute(self, handle: RunHandle, file_paths: List[str]) -> None:
        async with self._semaphore:
            handle.state = RunState.RUNNING
            handle.started_at = _utcnow()
            try:
                orchestrator = self.orchestrator_factory(handle.job_id)
                await orchestrator.run(file_paths)
            except asyncio.CancelledError:
                self._finish(handle, RunState.FAILED, "cancelled")
                raise
            except Exception as e:
                self._finish(handle, RunState.FAILED, str(e) or type(e).__name__)
                LOGGER.error(
                    f"Extraction v2 run failed for job {handle.job_id}: {e}",
                    exc_info=True,
                    extra={"job_id": handle.job_id, "run_id": handle.run_id},
                )
                await self._mark_failed(handle)
                return

            self._finish(handle, RunState.SUCCEEDED)
            LOGGER.info(
                "Extraction v2 run succeeded",
                extra={"job_id": handle.job_id, "run_id": handle.run_id},
            )

    async def _mark_failed(self, handle: RunHandle) -> None:
        try:
            await self.job_store.update_status(handle.job_id, JobStatus.FAILED, error=handle.error)
        except Exception:
            LOGGER.error(
                f"Could not mark job {handle.job_id} as failed",
                exc_info=True,
                extra={"job_id": handle.job_id},
            )
        self.notifier.emit(
            handle.job_id,
            "failed",
            100,
            f"Extraction v2 failed: {handle.error}",
            status=JobStatus.FAILED.value,
        )
