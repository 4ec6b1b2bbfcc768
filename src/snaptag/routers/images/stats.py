"""Catalogue statistics endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from snaptag.dependencies import get_db
from snaptag.images import ImageRepository

router = APIRouter()


@router.get("/images/stats")
async def get_image_stats(db: Session = Depends(get_db)):
    """Triage counters: tagged, untagged, minimally tagged and recent untagged images."""
    stats = ImageRepository(db).triage_stats()
    return {
        "stats": stats,
        "alerts": {
            "critical": stats["untagged_images"] > 0,
            "warning": stats["minimal_tags_images"] > 0,
            "recent": stats["recent_untagged"] > 0,
        },
    }


@router.get("/images/sources")
async def list_sources(db: Session = Depends(get_db)):
    """Distinct source domains, for the search source filter."""
    return ImageRepository(db).source_domains()
