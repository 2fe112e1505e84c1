"""Health check API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from roofreview.core.config import settings
from roofreview.core.database import db_client
from roofreview.dependencies import get_pipeline_runner
from roofreview.pipeline.runner import PipelineRunner
from roofreview.schemas.health import HealthCheckResponse

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check endpoint",
    description="Check if the service is running and healthy",
    operation_id="get_api_health_status",
)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    db_health = await db_client.health_check()

    return HealthCheckResponse(
        status="healthy" if db_health["status"] == "healthy" else "degraded",
        version=settings.app_version,
        service=settings.app_name,
    )


@router.get("/health/detailed", operation_id="get_api_health_detailed")
async def detailed_health(
    runner: Annotated[PipelineRunner, Depends(get_pipeline_runner)],
):
    """Detailed health check including the database and the run queue."""
    db_health = await db_client.health_check()

    return {
        "status": "healthy" if db_health["status"] == "healthy" else "degraded",
        "database": db_health,
        "pipeline": {
            "extraction_v2_enabled": settings.extraction_v2_enabled,
            "llm_credentials": settings.llm.has_credentials,
            "max_concurrent_runs": runner.max_concurrent_runs,
        },
        "version": settings.app_version,
    }
