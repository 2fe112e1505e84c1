"""Pytest configuration and shared fixtures."""

from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Sequence
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from roofreview.core.exceptions import JobNotFoundError
from roofreview.database.models import Job, JobStatus
from roofreview.main import app
from roofreview.models.extraction import ExtractionRecordData, V2Extraction, merge_v2
from roofreview.models.pages import PageText, sort_pages
from roofreview.services.progress import ProgressNotifier


class FakeLLMClient:
    """Scripted stand-in for UnifiedLLMClient.

    Answers come from ``handler(contents)`` when given, otherwise from
    ``responses`` in order, then ``default``. Exceptions are raised.
    """

    def __init__(
        self,
        responses: Optional[Sequence[Any]] = None,
        handler: Optional[Callable[[str], Any]] = None,
        default: Any = "[]",
    ):
        self.responses = list(responses or [])
        self.handler = handler
        self.default = default
        self.calls: List[Dict[str, Any]] = []

    async def generate_content(self, contents, system_instruction=None, generation_config=None):
        self.calls.append(
            {
                "contents": contents,
                "system_instruction": system_instruction,
                "generation_config": generation_config,
            }
        )
        if self.handler is not None:
            result = self.handler(contents)
        elif self.responses:
            result = self.responses.pop(0)
        else:
            result = self.default
        if isinstance(result, Exception):
            raise result
        return result


class RecordingNotifier(ProgressNotifier):
    """ProgressNotifier that also keeps every emitted event."""

    def __init__(self):
        super().__init__()
        self.events = []

    def emit(self, job_id, stage, progress, message, status="PROCESSING"):
        event = super().emit(job_id, stage, progress, message, status=status)
        self.events.append(event)
        return event

    @property
    def stages(self) -> List[str]:
        return [event.stage for event in self.events]


class InMemoryJobStore:
    """Dict-backed JobStore with the same async interface."""

    def __init__(self):
        self.jobs: Dict[str, Job] = {}
        self.file_paths: Dict[str, List[str]] = {}
        self.pages: Dict[str, List[PageText]] = {}
        self.extractions: Dict[str, List[Dict[str, Any]]] = {}
        self.status_history: Dict[str, List[JobStatus]] = {}

    def add_job(self, file_paths: Sequence[str] = (), **fields) -> Job:
        fields.setdefault("status", JobStatus.UPLOADED.value)
        job = Job(id=uuid4(), **fields)
        job_id = str(job.id)
        self.jobs[job_id] = job
        self.file_paths[job_id] = list(file_paths)
        self.status_history[job_id] = []
        return job

    def add_extraction(self, job_id, data: Dict[str, Any]) -> None:
        self.extractions.setdefault(str(job_id), []).append(dict(data))

    async def create_job(self, file_paths, customer_name=None, claim_number=None) -> Job:
        return self.add_job(file_paths, customer_name=customer_name, claim_number=claim_number)

    async def get_job(self, job_id) -> Optional[Job]:
        return self.jobs.get(str(job_id))

    async def list_file_paths(self, job_id) -> List[str]:
        return [path for path in self.file_paths.get(str(job_id), []) if path]

    async def get_pages(self, job_id) -> List[PageText]:
        return sort_pages(self.pages.get(str(job_id), []))

    async def store_pages(self, job_id, pages) -> int:
        self.pages[str(job_id)] = sort_pages(pages)
        return len(pages)

    async def purge_pages(self, job_id) -> int:
        return len(self.pages.pop(str(job_id), []))

    async def get_latest_extraction_data(self, job_id) -> Optional[Dict[str, Any]]:
        records = self.extractions.get(str(job_id))
        return dict(records[-1]) if records else None

    async def get_latest_v2_data(self, job_id) -> Optional[Dict[str, Any]]:
        for data in reversed(self.extractions.get(str(job_id), [])[-5:]):
            if ExtractionRecordData.has_v2(data):
                return dict(data)
        return None

    async def save_v2_extraction(self, job_id, v2: V2Extraction) -> Dict[str, Any]:
        records = self.extractions.setdefault(str(job_id), [])
        merged = merge_v2(records[-1] if records else None, v2)
        if records:
            records[-1] = merged
        else:
            records.append(merged)
        return merged

    async def mirror_job_fields(self, job_id, fields: Dict[str, Any]) -> Dict[str, Any]:
        job = self.jobs.get(str(job_id))
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        applied = {key: value for key, value in fields.items() if value is not None}
        for key, value in applied.items():
            setattr(job, key, value)
        return applied

    async def update_status(self, job_id, status: JobStatus, error=None) -> None:
        job = self.jobs.get(str(job_id))
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        job.status = status.value
        job.error = error
        self.status_history[str(job_id)].append(status)

    async def find_jobs_without_v2(self) -> List[str]:
        pending = []
        for job_id in self.jobs:
            records = self.extractions.get(job_id)
            if not records or not ExtractionRecordData.has_v2(records[-1]):
                pending.append(job_id)
        return pending


@pytest.fixture
def fake_llm() -> Callable[..., FakeLLMClient]:
    """Factory for scripted LLM clients.

    Returns:
        Callable: FakeLLMClient constructor
    """
    return FakeLLMClient


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def job_store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def estimate_pages() -> List[PageText]:
    """Three pages: totals, roof report measurements and a blank page."""
    return [
        PageText(page_number=1, raw_text="Summary for Dwelling\nRCV $5,000"),
        PageText(page_number=2, raw_text="Roof measurements\nEave 100 LF\nRake 50 LF"),
        PageText(page_number=3, raw_text=""),
    ]


@pytest.fixture
def v2_settings() -> SimpleNamespace:
    """Settings stand-in with extraction v2 enabled and a short heartbeat."""
    return SimpleNamespace(
        extraction_v2_enabled=True,
        pipeline=SimpleNamespace(sse_heartbeat_seconds=0.05),
    )


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}
