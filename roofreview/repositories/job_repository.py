"""Repository for jobs and their uploaded documents."""

import os
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from roofreview.database.models import Job, JobDocument, JobStatus
from roofreview.repositories.base_repository import BaseRepository


class JobRepository(BaseRepository[Job]):

    def __init__(self, session: AsyncSession):
        super().__init__(session, Job)

    async def create_with_documents(
        self,
        file_paths: Sequence[str],
        customer_name: Optional[str] = None,
        claim_number: Optional[str] = None,
    ) -> Job:
        """Create a job in UPLOADED state with one document per file path."""
        try:
            job = Job(
                status=JobStatus.UPLOADED.value,
                customer_name=customer_name,
                claim_number=claim_number,
            )
            self.session.add(job)
            await self.session.flush()

            for path in file_paths:
                self.session.add(
                    JobDocument(
                        job_id=job.id,
                        file_path=path,
                        file_name=os.path.basename(path),
                        mime_type="application/pdf" if path.lower().endswith(".pdf") else None,
                    )
                )

            await self.session.commit()
            await self.session.refresh(job)
            self.logger.info(
                "Created job",
                extra={"job_id": str(job.id), "documents": len(file_paths)},
            )
            return job
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating job: {str(e)}", exc_info=True)
            raise

    async def get_file_paths(self, job_id: UUID) -> List[str]:
        """File paths of the job's documents in upload order."""
        query = (
            select(JobDocument.file_path)
            .where(JobDocument.job_id == job_id)
            .order_by(JobDocument.uploaded_at.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update_status(
        self,
        job_id: UUID,
        status: JobStatus,
        error: Optional[str] = None,
    ) -> Optional[Job]:
        return await self.update(job_id, status=status.value, error=error)
