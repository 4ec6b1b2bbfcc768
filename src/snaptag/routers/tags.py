"""Router for tag vocabulary administration."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from snaptag.dependencies import get_db
from snaptag.models.requests import CreateTagRequest, MergeTagsRequest, RenameTagRequest
from snaptag.tag_store import TagStore

router = APIRouter(
    prefix="/api/v1",
    tags=["tags"]
)
logger = logging.getLogger(__name__)


@router.get("/tags")
async def list_tags(db: Session = Depends(get_db)):
    """All tags with usage counts, most used first."""
    return TagStore(db).list_tags()


@router.get("/tags/popular")
async def popular_tags(limit: int = 20, db: Session = Depends(get_db)):
    return [{"name": name, "usage_count": count} for name, count in TagStore(db).popular_tags(limit)]


@router.post("/tags", status_code=status.HTTP_201_CREATED)
async def create_tag(request: CreateTagRequest, db: Session = Depends(get_db)):
    return TagStore(db).create_tag(request.name, color=request.color)


@router.delete("/tags/{tag_id}")
async def delete_tag(tag_id: int, db: Session = Depends(get_db)):
    name = TagStore(db).delete_tag(tag_id)
    return {"deleted": tag_id, "name": name}


@router.put("/tags/{tag_id}/rename")
async def rename_tag(tag_id: int, request: RenameTagRequest, db: Session = Depends(get_db)):
    return TagStore(db).rename_tag(tag_id, request.new_name)


@router.post("/tags/merge")
async def merge_tags(request: MergeTagsRequest, db: Session = Depends(get_db)):
    """Fold the source tag into the target; images tagged with both keep one link."""
    return TagStore(db).merge_tags(request.source_tag_id, request.target_tag_id)


@router.post("/tags/recompute-counts")
async def recompute_counts(db: Session = Depends(get_db)):
    repaired = TagStore(db).recompute_usage_counts()
    return {"repaired": repaired}
