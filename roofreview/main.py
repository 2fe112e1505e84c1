"""FastAPI application for the roof review extraction service."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from roofreview.api.v1.endpoints import health
from roofreview.api.v1.router import api_router
from roofreview.core.config import settings
from roofreview.core.database import close_database, init_database
from roofreview.dependencies import shutdown_pipeline_runner
from roofreview.schemas.health import HealthCheckResponse
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__, level=settings.log_level)


class RootResponse(BaseModel):
    """Service banner returned by ``GET /``."""

    message: str = Field(..., description="Service status message")
    version: str = Field(..., description="Running application version")
    extraction_v2_enabled: bool = Field(..., description="Whether the v2 trigger endpoints accept runs")
    docs: str = Field(..., description="Path to the interactive API docs")
    health: str = Field(..., description="Path to the health check endpoint")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create missing tables on startup; on shutdown cancel runs, then dispose the engine.

    A database that is down at startup is logged, not fatal, so ``/health``
    can report it.
    """
    LOGGER.info(
        f"Starting {settings.app_name} {settings.app_version}",
        extra={
            "environment": settings.environment,
            "extraction_v2_enabled": settings.extraction_v2_enabled,
            "llm_provider": settings.llm.provider,
            "llm_credentials": settings.llm.has_credentials,
            "max_concurrent_runs": settings.pipeline.max_concurrent_runs,
        },
    )

    try:
        await init_database(auto_migrate=True)
    except Exception as e:
        LOGGER.error("Database unavailable at startup", exc_info=True, extra={"error": str(e)})

    yield

    await shutdown_pipeline_runner()
    try:
        await close_database()
    except Exception as e:
        LOGGER.error("Error closing database", exc_info=True, extra={"error": str(e)})
    LOGGER.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Extracts totals, roofing line items and roof measurements from insurance estimates",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_api_route(
    "/health",
    health.health_check,
    methods=["GET"],
    response_model=HealthCheckResponse,
    tags=["Health"],
    summary="Health check endpoint",
    operation_id="get_service_health_status",
)


@app.get(
    "/",
    response_model=RootResponse,
    tags=["Root"],
    summary="Service banner",
    operation_id="get_public_root_metadata",
)
async def root() -> RootResponse:
    return RootResponse(
        message="Server is running",
        version=settings.app_version,
        extraction_v2_enabled=settings.extraction_v2_enabled,
        docs="/docs",
        health="/health",
    )


app.include_router(api_router, prefix=settings.api_v1_prefix)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "roofreview.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
