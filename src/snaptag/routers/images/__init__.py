"""Aggregated images router combining the image sub-routers."""

from fastapi import APIRouter
from .core import router as core_router
from .stats import router as stats_router
from .tagging import router as tagging_router

router = APIRouter(
    prefix="/api/v1",
    tags=["images"]
)

# Fixed paths (/images/stats, /images/sources) must be registered before
# core_router so /images/{image_id} does not capture them.
router.include_router(stats_router)
router.include_router(core_router)
router.include_router(tagging_router)
