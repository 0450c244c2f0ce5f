"""API route registration."""

from fastapi import APIRouter
from .evaluations import router as evaluations_router
from .drafts import router as drafts_router
from .exam_types import router as exam_types_router


def register_all_routes(api_router: APIRouter):
    """Include all route modules on the main API router."""
    api_router.include_router(evaluations_router)
    api_router.include_router(drafts_router)
    api_router.include_router(exam_types_router)
