from typing import List, Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from roofreview.database.models import DocumentPage
from roofreview.models.pages import PageText
from roofreview.repositories.base_repository import BaseRepository


class PageRepository(BaseRepository[DocumentPage]):
    """Stored OCR text per job page."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, DocumentPage)

    async def get_pages(self, job_id: UUID) -> List[PageText]:
        query = (
            select(DocumentPage)
            .where(DocumentPage.job_id == job_id)
            .order_by(DocumentPage.page_number.asc())
        )
        result = await self.session.execute(query)
        return [
            PageText(page_number=row.page_number, raw_text=row.raw_text or "")
            for row in result.scalars().all()
        ]

    async def replace_pages(self, job_id: UUID, pages: Sequence[PageText]) -> int:
        """Store ``pages`` for the job, replacing any previous rows."""
        try:
            await self.session.execute(delete(DocumentPage).where(DocumentPage.job_id == job_id))
            for page in pages:
                self.session.add(
                    DocumentPage(
                        job_id=job_id,
                        page_number=page.page_number,
                        raw_text=page.raw_text,
                    )
                )
            await self.session.commit()
            return len(pages)
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error storing pages for job {job_id}: {str(e)}",
                exc_info=True
            )
            raise

    async def delete_for_job(self, job_id: UUID) -> int:
        try:
            result = await self.session.execute(
                delete(DocumentPage).where(DocumentPage.job_id == job_id)
            )
            await self.session.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error purging pages for job {job_id}: {str(e)}",
                exc_info=True
            )
            raise
