"""Job store used by the pipeline and the API.

Runs outlive the request that started them, so every operation opens and
closes its own session instead of borrowing a request-scoped one.
"""

from typing import Any, Dict, List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roofreview.core.exceptions import DatabaseError, JobNotFoundError
from roofreview.database.models import Job, JobStatus
from roofreview.models.extraction import V2Extraction, merge_v2
from roofreview.models.pages import PageText, sort_pages
from roofreview.repositories.extraction_repository import ExtractionRepository
from roofreview.repositories.job_repository import JobRepository
from roofreview.repositories.page_repository import PageRepository
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

JobId = Union[str, UUID]


def _as_uuid(job_id: JobId) -> UUID:
    return job_id if isinstance(job_id, UUID) else UUID(str(job_id))


class JobStore:
    """Session-per-operation access to jobs, pages and extraction records."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def create_job(
        self,
        file_paths: Sequence[str],
        customer_name: Optional[str] = None,
        claim_number: Optional[str] = None,
    ) -> Job:
        async with self.session_maker() as session:
            return await JobRepository(session).create_with_documents(
                file_paths, customer_name=customer_name, claim_number=claim_number
            )

    async def get_job(self, job_id: JobId) -> Optional[Job]:
        async with self.session_maker() as session:
            return await JobRepository(session).get_by_id(_as_uuid(job_id))

    async def list_file_paths(self, job_id: JobId) -> List[str]:
        async with self.session_maker() as session:
            paths = await JobRepository(session).get_file_paths(_as_uuid(job_id))
        return [path for path in paths if path]

    async def get_pages(self, job_id: JobId) -> List[PageText]:
        async with self.session_maker() as session:
            return await PageRepository(session).get_pages(_as_uuid(job_id))

    async def store_pages(self, job_id: JobId, pages: Sequence[PageText]) -> int:
        async with self.session_maker() as session:
            return await PageRepository(session).replace_pages(_as_uuid(job_id), sort_pages(pages))

    async def purge_pages(self, job_id: JobId) -> int:
        async with self.session_maker() as session:
            removed = await PageRepository(session).delete_for_job(_as_uuid(job_id))
        LOGGER.info("Purged stored pages", extra={"job_id": str(job_id), "removed": removed})
        return removed

    async def get_latest_extraction_data(self, job_id: JobId) -> Optional[Dict[str, Any]]:
        async with self.session_maker() as session:
            latest = await ExtractionRepository(session).get_latest(_as_uuid(job_id))
        return dict(latest.extracted_data or {}) if latest is not None else None

    async def get_latest_v2_data(self, job_id: JobId) -> Optional[Dict[str, Any]]:
        """Extraction blob of the most recent record that carries ``v2``."""
        async with self.session_maker() as session:
            record = await ExtractionRepository(session).get_latest_with_v2(_as_uuid(job_id))
        return dict(record.extracted_data) if record is not None else None

    async def save_v2_extraction(self, job_id: JobId, v2: V2Extraction) -> Dict[str, Any]:
        """Merge ``v2`` into the latest extraction record, keeping sibling keys."""
        async with self.session_maker() as session:
            repository = ExtractionRepository(session)
            latest = await repository.get_latest(_as_uuid(job_id))
            merged = merge_v2(latest.extracted_data if latest is not None else None, v2)
            await repository.upsert_latest(_as_uuid(job_id), merged)
        return merged

    async def mirror_job_fields(self, job_id: JobId, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Copy summary values onto the job row; None values are skipped."""
        applied = {key: value for key, value in fields.items() if value is not None}
        if not applied:
            return applied
        async with self.session_maker() as session:
            job = await JobRepository(session).update(_as_uuid(job_id), **applied)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return applied

    async def update_status(
        self,
        job_id: JobId,
        status: JobStatus,
        error: Optional[str] = None,
    ) -> None:
        try:
            async with self.session_maker() as session:
                job = await JobRepository(session).update_status(_as_uuid(job_id), status, error=error)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to update status of job {job_id}", original_error=e) from e
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        LOGGER.info(
            f"Job status -> {status.value}",
            extra={"job_id": str(job_id), "status": status.value},
        )

    async def find_jobs_without_v2(self) -> List[str]:
        async with self.session_maker() as session:
            job_ids = await ExtractionRepository(session).find_job_ids_without_v2()
        return [str(job_id) for job_id in job_ids]
