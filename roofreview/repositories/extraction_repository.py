from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from roofreview.database.models import Extraction, Job
from roofreview.models.extraction import ExtractionRecordData
from roofreview.repositories.base_repository import BaseRepository


class ExtractionRepository(BaseRepository[Extraction]):
    """Per-job extraction records; the latest record is the current one."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Extraction)

    async def get_latest(self, job_id: UUID) -> Optional[Extraction]:
        query = (
            select(Extraction)
            .where(Extraction.job_id == job_id)
            .order_by(Extraction.extracted_at.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_latest_with_v2(self, job_id: UUID, window: int = 5) -> Optional[Extraction]:
        """Most recent of the last ``window`` records that carries a v2 payload."""
        query = (
            select(Extraction)
            .where(Extraction.job_id == job_id)
            .order_by(Extraction.extracted_at.desc())
            .limit(window)
        )
        result = await self.session.execute(query)
        for record in result.scalars().all():
            if ExtractionRecordData.has_v2(record.extracted_data):
                return record
        return None

    async def upsert_latest(self, job_id: UUID, data: Dict[str, Any]) -> Extraction:
        """Overwrite the latest record's data, creating a record if none exists."""
        latest = await self.get_latest(job_id)
        if latest is None:
            return await self.create(job_id=job_id, extracted_data=data)

        try:
            # Reassign so the JSON column is flagged dirty
            latest.extracted_data = data
            await self.session.commit()
            return latest
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error saving extraction for job {job_id}: {str(e)}",
                exc_info=True
            )
            raise

    async def find_job_ids_without_v2(self, limit: int = 1000) -> List[UUID]:
        """Jobs whose latest extraction has no ``v2`` payload (or that have none)."""
        query = select(Job.id).order_by(Job.created_at.asc()).limit(limit)
        job_ids = (await self.session.execute(query)).scalars().all()

        missing = []
        for job_id in job_ids:
            latest = await self.get_latest(job_id)
            if latest is None or not ExtractionRecordData.has_v2(latest.extracted_data):
                missing.append(job_id)
        return missing
