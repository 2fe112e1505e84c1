from datetime import datetime, timezone
from typing import Generic, NoReturn, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from roofreview.utils.logging import get_logger

ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Primary-key access shared by the job, page and extraction repositories.

    Writes commit immediately: each repository lives inside one short
    session opened by the job store.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """
        Args:
            session: SQLAlchemy async session
            model: Mapped class this repository reads and writes
        """
        self.session = session
        self.model = model
        self.logger = LOGGER

    def _log_and_raise(self, action: str, error: SQLAlchemyError) -> NoReturn:
        self.logger.error(
            f"Error {action} {self.model.__name__}: {error}",
            exc_info=True,
            extra={"model": self.model.__name__},
        )
        raise error

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        try:
            result = await self.session.execute(select(self.model).where(self.model.id == id))
        except SQLAlchemyError as e:
            self._log_and_raise(f"loading {id} of", e)
        return result.scalar_one_or_none()

    async def create(self, **kwargs) -> ModelType:
        """Insert a row and commit; server defaults are loaded back."""
        instance = self.model(**kwargs)
        try:
            self.session.add(instance)
            await self.session.commit()
            await self.session.refresh(instance)
        except SQLAlchemyError as e:
            await self.session.rollback()
            self._log_and_raise("creating", e)
        return instance

    async def update(self, id: UUID, **kwargs) -> Optional[ModelType]:
        """Set the given columns and bump ``updated_at``.

        Unknown keys are ignored.

        Returns:
            The updated row, or None when ``id`` does not exist
        """
        instance = await self.get_by_id(id)
        if instance is None:
            return None

        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)
        if hasattr(instance, "updated_at"):
            instance.updated_at = datetime.now(timezone.utc)

        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            self._log_and_raise(f"updating {id} of", e)
        return instance
