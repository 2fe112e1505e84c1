"""Centralized dependency injection for the FastAPI application.

The job store, progress notifier and run queue are process-wide singletons:
runs outlive the requests that start them, and SSE clients must see events
from runs started by other requests.
"""

from typing import Optional

from roofreview.core.config import Settings, settings
from roofreview.core.database import async_session_maker
from roofreview.core.unified_llm import UnifiedLLMClient, create_llm_client_from_settings
from roofreview.pipeline.orchestrator import ExtractionV2Orchestrator
from roofreview.pipeline.runner import PipelineRunner
from roofreview.services.job_store import JobStore
from roofreview.services.ocr.ocr_service import OCRService
from roofreview.services.progress import ProgressNotifier

_job_store_instance: Optional[JobStore] = None
_notifier_instance: Optional[ProgressNotifier] = None
_runner_instance: Optional[PipelineRunner] = None


def get_settings() -> Settings:
    return settings


def get_job_store() -> JobStore:
    """Get the process-wide job store.

    Returns:
        JobStore: Store opening one session per operation
    """
    global _job_store_instance
    if _job_store_instance is None:
        _job_store_instance = JobStore(async_session_maker)
    return _job_store_instance


def get_progress_notifier() -> ProgressNotifier:
    global _notifier_instance
    if _notifier_instance is None:
        _notifier_instance = ProgressNotifier()
    return _notifier_instance


def get_llm_client() -> Optional[UnifiedLLMClient]:
    """LLM client for the totals fallback and verification, or None."""
    return create_llm_client_from_settings(settings.llm)


def get_extractor_llm_client() -> Optional[UnifiedLLMClient]:
    """LLM client for the line-item extractors, honouring the model override."""
    return create_llm_client_from_settings(settings.llm, model_override=settings.llm.extractor_model)


def build_orchestrator(job_id: str) -> ExtractionV2Orchestrator:
    """Build an orchestrator wired to the process-wide collaborators."""
    return ExtractionV2Orchestrator(
        job_id,
        job_store=get_job_store(),
        ocr_service=OCRService.from_settings(settings.ocr),
        notifier=get_progress_notifier(),
        llm_client=get_llm_client(),
        extractor_llm_client=get_extractor_llm_client(),
    )


def get_pipeline_runner() -> PipelineRunner:
    """Get the process-wide run queue.

    Returns:
        PipelineRunner: Queue bounded by ``MAX_CONCURRENT_RUNS``
    """
    global _runner_instance
    if _runner_instance is None:
        _runner_instance = PipelineRunner(
            build_orchestrator,
            job_store=get_job_store(),
            notifier=get_progress_notifier(),
            max_concurrent_runs=settings.pipeline.max_concurrent_runs,
        )
    return _runner_instance


async def shutdown_pipeline_runner() -> None:
    global _runner_instance
    if _runner_instance is not None:
        await _runner_instance.shutdown()
        _runner_instance = None
