from fastapi import APIRouter

from roofreview.api.v1.endpoints import health, jobs

api_router = APIRouter()

api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["Jobs"])

__all__ = ["api_router"]
