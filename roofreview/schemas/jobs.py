"""Request and response models for the jobs API."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field

from roofreview.models.base import CamelModel


class JobCreateRequest(CamelModel):
    """Create a job from already-uploaded files."""

    file_paths: List[str] = Field(..., min_length=1, description="Storage paths or URLs of the job's files")
    customer_name: Optional[str] = None
    claim_number: Optional[str] = None


class ExtractV2Request(CamelModel):
    """Optional explicit file list; the job's documents are used otherwise."""

    file_paths: Optional[List[str]] = None


class JobSummary(CamelModel):
    """Roof fields mirrored onto the job by the last extraction."""

    roof_squares: Optional[float] = None
    roof_stories: Optional[int] = None
    rake_length: Optional[float] = None
    eave_length: Optional[float] = None
    ridge_hip_length: Optional[float] = None
    valley_length: Optional[float] = None
    roof_slope: Optional[str] = None
    roof_material: Optional[str] = None


class JobResponse(JobSummary):
    id: UUID
    status: str
    error: Optional[str] = None
    customer_name: Optional[str] = None
    claim_number: Optional[str] = None
    original_estimate: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ExtractV2Accepted(CamelModel):
    ok: bool = True
    job_id: str
    file_count: int
    run_id: str


class ExtractV2Result(CamelModel):
    job_id: str
    v2: Optional[Dict[str, Any]] = None
    job: JobSummary


class ReprocessResponse(CamelModel):
    success: bool = True
    queued: int
    run_id: str


class RunStatus(CamelModel):
    run_id: str
    job_id: str
    file_count: int
    state: str
    error: Optional[str] = None
    submitted_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class JobStatusResponse(CamelModel):
    job_id: str
    status: str
    error: Optional[str] = None
    run: Optional[RunStatus] = None
