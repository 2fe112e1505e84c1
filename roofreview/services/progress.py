"""In-process progress channel for pipeline runs.

The pipeline emits coarse checkpoints without waiting for anyone; SSE
clients subscribe per job and receive them through bounded queues.
"""

import asyncio
import json
from collections import OrderedDict
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, Optional, Set

from roofreview.models.progress import JobProgressEvent
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

PROGRESS_EVENT = "job:progress"
HEARTBEAT_EVENT = "heartbeat"


def format_sse(event: JobProgressEvent) -> str:
    """Format a progress event as a raw SSE message."""
    data = event.model_dump(mode="json", by_alias=True)
    return f"event: {PROGRESS_EVENT}\ndata: {json.dumps(data)}\n\n"


def format_heartbeat(job_id: str) -> str:
    data = {
        "jobId": job_id,
        "message": "keep-alive",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return f"event: {HEARTBEAT_EVENT}\ndata: {json.dumps(data)}\n\n"


class ProgressSubscription:
    """Queue of events for one job, registered as soon as it is created."""

    def __init__(self, notifier: "ProgressNotifier", job_id: str, max_queue_size: int):
        self._notifier = notifier
        self.job_id = job_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self.closed = False

    async def get(self, timeout: Optional[float] = None) -> Optional[JobProgressEvent]:
        """Next event, or None when ``timeout`` elapses first."""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def close(self) -> None:
        if not self.closed:
            self._notifier._unsubscribe(self)
            self.closed = True

    def __aiter__(self):
        return self

    async def __anext__(self) -> JobProgressEvent:
        if self.closed:
            raise StopAsyncIteration
        event = await self.queue.get()
        if event.is_terminal:
            self.close()
        return event


class ProgressNotifier:
    """Fan-out of job progress events to per-job subscriber queues.

    The latest event is kept for replay, for the ``max_tracked_jobs`` most
    recently active jobs.
    """

    def __init__(self, max_queue_size: int = 100, max_tracked_jobs: int = 1000):
        self.max_queue_size = max_queue_size
        self.max_tracked_jobs = max(1, max_tracked_jobs)
        self._subscribers: Dict[str, Set[ProgressSubscription]] = {}
        self._latest: "OrderedDict[str, JobProgressEvent]" = OrderedDict()

    def emit(
        self,
        job_id: str,
        stage: str,
        progress: int,
        message: str,
        status: str = "PROCESSING",
    ) -> JobProgressEvent:
        """Publish an event without waiting for consumers.

        Subscribers whose queue is full miss the event.
        """
        event = JobProgressEvent(
            job_id=str(job_id),
            status=status,
            stage=stage,
            progress=progress,
            message=message,
        )
        self._latest[event.job_id] = event
        self._latest.move_to_end(event.job_id)
        while len(self._latest) > self.max_tracked_jobs:
            self._latest.popitem(last=False)

        for subscription in list(self._subscribers.get(event.job_id, ())):
            try:
                subscription.queue.put_nowait(event)
            except asyncio.QueueFull:
                LOGGER.warning(
                    "Dropping progress event for slow subscriber",
                    extra={"job_id": event.job_id, "stage": stage},
                )

        LOGGER.info(
            f"[{event.job_id}] {stage} {progress}% {message}",
            extra={"job_id": event.job_id, "stage": stage, "progress": progress},
        )
        return event

    def subscribe(self, job_id: str) -> ProgressSubscription:
        subscription = ProgressSubscription(self, str(job_id), self.max_queue_size)
        self._subscribers.setdefault(subscription.job_id, set()).add(subscription)
        return subscription

    def latest(self, job_id: str) -> Optional[JobProgressEvent]:
        return self._latest.get(str(job_id))

    def subscriber_count(self, job_id: str) -> int:
        return len(self._subscribers.get(str(job_id), ()))

    def _unsubscribe(self, subscription: ProgressSubscription) -> None:
        subscribers = self._subscribers.get(subscription.job_id)
        if not subscribers:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.job_id]

    async def stream_sse(
        self,
        job_id: str,
        heartbeat_seconds: float = 15.0,
    ) -> AsyncGenerator[str, None]:
        """Stream SSE messages for a job until a terminal event.

        The last known event is replayed first so late clients see the
        current stage.
        """
        job_id = str(job_id)
        subscription = self.subscribe(job_id)
        try:
            latest = self.latest(job_id)
            if latest is not None:
                yield format_sse(latest)
                if latest.is_terminal:
                    return

            while True:
                event = await subscription.get(timeout=heartbeat_seconds)
                if event is None:
                    yield format_heartbeat(job_id)
                    continue
                yield format_sse(event)
                if event.is_terminal:
                    break

        except asyncio.CancelledError:
            LOGGER.info(f"SSE connection cancelled for job {job_id}")
            raise
        finally:
            subscription.close()
