"""Job and extraction v2 API endpoints."""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from roofreview.core.config import Settings
from roofreview.core.exceptions import AppError, JobNotFoundError, RunAlreadyActiveError
from roofreview.database.models import Job, JobStatus
from roofreview.dependencies import (
    get_job_store,
    get_pipeline_runner,
    get_progress_notifier,
    get_settings,
)
from roofreview.pipeline.runner import PipelineRunner, RunHandle
from roofreview.schemas.jobs import (
    ExtractV2Accepted,
    ExtractV2Request,
    ExtractV2Result,
    JobCreateRequest,
    JobResponse,
    JobStatusResponse,
    JobSummary,
    ReprocessResponse,
    RunStatus,
)
from roofreview.services.job_store import JobStore
from roofreview.services.progress import ProgressNotifier
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


def _http_error(status_code: int, error: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error": error, "message": message})


def require_extraction_v2(
    app_settings: Annotated[Settings, Depends(get_settings)],
) -> None:
    """Reject requests while the ``EXTRACTION_V2`` flag is off."""
    if not app_settings.extraction_v2_enabled:
        raise _http_error(
            status.HTTP_403_FORBIDDEN,
            "FeatureDisabled",
            "Extraction v2 is disabled (set EXTRACTION_V2=true)",
        )


async def _get_job_or_404(job_store: JobStore, job_id: UUID) -> Job:
    job = await job_store.get_job(job_id)
    if job is None:
        raise _http_error(status.HTTP_404_NOT_FOUND, "JobNotFound", f"Job {job_id} not found")
    return job


def _run_status(handle: Optional[RunHandle]) -> Optional[RunStatus]:
    if handle is None:
        return None
    return RunStatus(
        run_id=handle.run_id,
        job_id=handle.job_id,
        file_count=handle.file_count,
        state=handle.state.value,
        error=handle.error,
        submitted_at=handle.submitted_at,
        started_at=handle.started_at,
        finished_at=handle.finished_at,
    )


def _queue_failure(error: AppError, job_id: str) -> HTTPException:
    if isinstance(error, RunAlreadyActiveError):
        return _http_error(status.HTTP_409_CONFLICT, "RunAlreadyActive", str(error))
    if isinstance(error, JobNotFoundError):
        return _http_error(status.HTTP_404_NOT_FOUND, "JobNotFound", str(error))
    LOGGER.error("Failed to queue extraction run", exc_info=True, extra={"job_id": job_id})
    return _http_error(status.HTTP_500_INTERNAL_SERVER_ERROR, type(error).__name__, str(error))


async def _submit(runner: PipelineRunner, job_id: UUID, file_paths: list) -> RunHandle:
    try:
        return await runner.submit(str(job_id), file_paths)
    except AppError as e:
        raise _queue_failure(e, str(job_id))


async def _start(runner: PipelineRunner, handle: RunHandle, file_paths: list) -> RunHandle:
    try:
        return await runner.start(handle, file_paths)
    except AppError as e:
        raise _queue_failure(e, handle.job_id)


@router.post(
    "",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a job from uploaded files",
    operation_id="create_job",
)
async def create_job(
    request: JobCreateRequest,
    job_store: Annotated[JobStore, Depends(get_job_store)],
) -> JobResponse:
    job = await job_store.create_job(
        request.file_paths,
        customer_name=request.customer_name,
        claim_number=request.claim_number,
    )
    return JobResponse.model_validate(job, from_attributes=True)


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Get job details",
    operation_id="get_job",
)
async def get_job(
    job_id: UUID,
    job_store: Annotated[JobStore, Depends(get_job_store)],
) -> JobResponse:
    job = await _get_job_or_404(job_store, job_id)
    return JobResponse.model_validate(job, from_attributes=True)


@router.post(
    "/{job_id}/extract-v2",
    response_model=ExtractV2Accepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start an extraction v2 run",
    operation_id="start_extraction_v2",
    dependencies=[Depends(require_extraction_v2)],
)
async def start_extraction_v2(
    job_id: UUID,
    job_store: Annotated[JobStore, Depends(get_job_store)],
    runner: Annotated[PipelineRunner, Depends(get_pipeline_runner)],
    request: Annotated[Optional[ExtractV2Request], Body()] = None,
) -> ExtractV2Accepted:
    """Queue the pipeline and return without waiting for it.

    Uses the job's document paths unless the body names files explicitly.
    """
    await _get_job_or_404(job_store, job_id)

    file_paths = list(request.file_paths or []) if request is not None else []
    if not file_paths:
        file_paths = await job_store.list_file_paths(job_id)
    if not file_paths:
        raise _http_error(status.HTTP_400_BAD_REQUEST, "NoFiles", "No file paths to process")

    handle = await _submit(runner, job_id, file_paths)
    return ExtractV2Accepted(
        job_id=str(job_id),
        file_count=len(file_paths),
        run_id=handle.run_id,
    )


@router.get(
    "/{job_id}/extract-v2",
    response_model=ExtractV2Result,
    summary="Get the latest extraction v2 result",
    operation_id="get_extraction_v2",
    dependencies=[Depends(require_extraction_v2)],
)
async def get_extraction_v2(
    job_id: UUID,
    job_store: Annotated[JobStore, Depends(get_job_store)],
) -> ExtractV2Result:
    job = await _get_job_or_404(job_store, job_id)

    data = await job_store.get_latest_v2_data(job_id)
    if data is None:
        data = await job_store.get_latest_extraction_data(job_id)
    if data is None:
        raise _http_error(
            status.HTTP_404_NOT_FOUND, "ExtractionNotFound", f"No extraction found for job {job_id}"
        )

    return ExtractV2Result(
        job_id=str(job_id),
        v2=data.get("v2"),
        job=JobSummary.model_validate(job, from_attributes=True),
    )


@router.post(
    "/{job_id}/reprocess",
    response_model=ReprocessResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Discard stored page text and rerun extraction",
    operation_id="reprocess_job",
)
async def reprocess_job(
    job_id: UUID,
    job_store: Annotated[JobStore, Depends(get_job_store)],
    runner: Annotated[PipelineRunner, Depends(get_pipeline_runner)],
) -> ReprocessResponse:
    await _get_job_or_404(job_store, job_id)

    file_paths = await job_store.list_file_paths(job_id)
    if not file_paths:
        raise _http_error(status.HTTP_400_BAD_REQUEST, "NoFiles", "No file paths to process")

    try:
        handle = runner.reserve(str(job_id), len(file_paths))
    except RunAlreadyActiveError as e:
        raise _queue_failure(e, str(job_id))

    try:
        await job_store.purge_pages(job_id)
        await job_store.update_status(job_id, JobStatus.UPLOADED, error=None)
    except Exception as e:
        runner.release(handle, str(e))
        raise

    handle = await _start(runner, handle, file_paths)
    return ReprocessResponse(queued=len(file_paths), run_id=handle.run_id)


@router.get(
    "/{job_id}/status",
    response_model=JobStatusResponse,
    summary="Get job status and latest run",
    operation_id="get_job_status",
)
async def get_job_status(
    job_id: UUID,
    job_store: Annotated[JobStore, Depends(get_job_store)],
    runner: Annotated[PipelineRunner, Depends(get_pipeline_runner)],
) -> JobStatusResponse:
    job = await _get_job_or_404(job_store, job_id)
    return JobStatusResponse(
        job_id=str(job_id),
        status=job.status,
        error=job.error,
        run=_run_status(runner.latest_for_job(str(job_id))),
    )


@router.get(
    "/{job_id}/events",
    summary="Stream job progress as Server-Sent Events",
    operation_id="stream_job_events",
)
async def stream_job_events(
    job_id: UUID,
    job_store: Annotated[JobStore, Depends(get_job_store)],
    notifier: Annotated[ProgressNotifier, Depends(get_progress_notifier)],
    app_settings: Annotated[Settings, Depends(get_settings)],
) -> StreamingResponse:
    await _get_job_or_404(job_store, job_id)
    return StreamingResponse(
        notifier.stream_sse(
            str(job_id),
            heartbeat_seconds=app_settings.pipeline.sse_heartbeat_seconds,
        ),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
