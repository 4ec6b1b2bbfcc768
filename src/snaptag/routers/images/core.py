"""Core image endpoints: search, get, delete, duplicate check."""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from snaptag.dependencies import get_db
from snaptag.duplicates import DuplicateGuard
from snaptag.images import ImageRepository, serialize_image
from snaptag.models.requests import BulkDeleteRequest, DuplicateCheckRequest
from snaptag.search import search_images

# Sub-router with no prefix/tags (inherits from parent)
router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/images/search")
async def search(
    payload: Optional[dict] = Body(default=None),
    db: Session = Depends(get_db),
):
    """Search images by free text, required tags, sources and upload date.

    The body uses the camelCase wire format: ``searchTerm``, ``tags``,
    ``sortBy``, ``sortOrder``, ``sources``, ``dateRange``, ``limit``, ``offset``.
    An empty body returns every image.
    """
    images = search_images(db, payload or {})
    return [serialize_image(image) for image in images]


@router.get("/images/untagged")
async def list_untagged(
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Images that have no global tags yet, newest first."""
    images = ImageRepository(db).list_untagged(limit=limit)
    return {
        "count": len(images),
        "images": [serialize_image(image) for image in images],
    }


@router.post("/images/check-duplicate")
async def check_duplicate(
    request: DuplicateCheckRequest,
    db: Session = Depends(get_db),
):
    match = DuplicateGuard(db).find_duplicate(
        source_url=request.source_url,
        content_hash=request.content_hash,
    )
    return {
        "is_duplicate": match is not None,
        "duplicate": match.to_dict() if match else None,
    }


@router.post("/images/bulk-delete")
async def bulk_delete(
    request: BulkDeleteRequest,
    db: Session = Depends(get_db),
):
    result = ImageRepository(db).bulk_delete(request.image_ids)
    return {
        "deleted_count": len(result["deleted"]),
        "deleted": result["deleted"],
        "errors": result["errors"],
    }


@router.get("/images/{image_id}")
async def get_image(
    image_id: int,
    db: Session = Depends(get_db),
):
    return serialize_image(ImageRepository(db).get(image_id))


@router.delete("/images/{image_id}")
async def delete_image(
    image_id: int,
    db: Session = Depends(get_db),
):
    filename = ImageRepository(db).delete(image_id)
    return {"deleted": image_id, "filename": filename}
