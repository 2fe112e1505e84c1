"""Async SQLAlchemy engine, session factory and the schema/health client.

Jobs, their documents, stored page text and extraction records all live in
one Postgres database reached through asyncpg.
"""

from typing import Any, Dict, List

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from roofreview.core.config import settings
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the job, document, page and extraction tables."""

    pass


engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db.pool_size,
    max_overflow=settings.db.max_overflow,
    echo=settings.db.echo,
    # PgBouncer in transaction mode cannot share prepared statements
    connect_args={"statement_cache_size": 0},
)

# Pipeline runs read job rows after their session has closed
async_session_maker = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


def _register_models() -> None:
    # Importing the module attaches every table to Base.metadata
    from roofreview.database import models  # noqa: F401


class DatabaseClient:
    """Schema management and health reporting for the roofreview database."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def table_names(self) -> List[str]:
        _register_models()
        return sorted(Base.metadata.tables)

    async def connect(self) -> bool:
        """Open one connection to prove the database is reachable.

        Raises:
            Exception: Whatever the driver raised; the caller decides whether to keep serving
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            self._connected = False
            LOGGER.error("Database connection failed", exc_info=True)
            raise

        self._connected = True
        LOGGER.info("Connected to database", extra={"driver": self.engine.dialect.driver})
        return True

    async def disconnect(self) -> None:
        try:
            await self.engine.dispose()
        except Exception as e:
            LOGGER.error("Error disposing database engine", exc_info=True, extra={"error": str(e)})
            return
        self._connected = False
        LOGGER.info("Database engine disposed")

    async def create_tables(self) -> None:
        """Create missing job tables; existing tables and rows are untouched."""
        tables = self.table_names
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            LOGGER.error("Failed to create tables", exc_info=True, extra={"error": str(e)})
            raise
        LOGGER.info("Tables created or verified", extra={"tables": tables})

    async def drop_tables(self) -> None:
        """Drop every job table. Stored pages and extraction records are lost."""
        tables = self.table_names
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
        except Exception as e:
            LOGGER.error("Failed to drop tables", exc_info=True, extra={"error": str(e)})
            raise
        LOGGER.warning("Dropped tables", extra={"tables": tables})

    async def auto_migrate(self, drop_existing: bool = False) -> None:
        """Bring the schema up to the current models.

        Args:
            drop_existing: Drop every table first (data loss)
        """
        LOGGER.info("Running auto-migration", extra={"drop_existing": drop_existing})
        if drop_existing:
            await self.drop_tables()
        await self.create_tables()

    async def missing_tables(self) -> List[str]:
        """Model tables that do not exist in the connected database."""
        expected = self.table_names

        def _existing(sync_conn) -> List[str]:
            return inspect(sync_conn).get_table_names()

        async with self.engine.connect() as conn:
            existing = set(await conn.run_sync(_existing))
        return [name for name in expected if name not in existing]

    async def health_check(self) -> Dict[str, Any]:
        """Report reachability and whether the job tables exist.

        Never raises; an unreachable database is reported as ``unhealthy``.
        """
        try:
            missing = await self.missing_tables()
        except Exception as e:
            self._connected = False
            LOGGER.error("Database health check failed", extra={"error": str(e)})
            return {"status": "unhealthy", "connected": False, "error": str(e)}

        self._connected = True
        return {
            "status": "healthy" if not missing else "degraded",
            "connected": True,
            "database": self.engine.dialect.name,
            "missing_tables": missing,
        }


db_client = DatabaseClient(engine)


async def init_database(auto_migrate: bool = True, drop_existing: bool = False) -> None:
    """Connect and, unless disabled, create the job tables.

    Args:
        auto_migrate: Create missing tables on startup
        drop_existing: Drop every table first (data loss)
    """
    await db_client.connect()
    if auto_migrate:
        await db_client.auto_migrate(drop_existing=drop_existing)
    LOGGER.info("Database ready", extra={"auto_migrate": auto_migrate})


async def close_database() -> None:
    await db_client.disconnect()
