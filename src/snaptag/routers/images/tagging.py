"""Tag editing and suggestion endpoints for images."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from snaptag.dependencies import get_db, get_suggestion_engine
from snaptag.images import ImageRepository, serialize_image
from snaptag.models.requests import ApplySuggestionsRequest, BulkSuggestionsRequest, UpdateTagsRequest
from snaptag.suggestions import SuggestionEngine
from snaptag.tag_store import TagStore

router = APIRouter()
logger = logging.getLogger(__name__)


@router.put("/images/{image_id}/tags")
async def update_image_tags(
    image_id: int,
    request: UpdateTagsRequest,
    db: Session = Depends(get_db),
):
    """Replace both tag namespaces of an image; title/description are optional edits."""
    image = ImageRepository(db).edit(
        image_id,
        tags=request.tags,
        focused_tags=request.focused_tags,
        title=request.title,
        description=request.description,
    )
    return serialize_image(image)


@router.get("/images/{image_id}/suggestions")
async def get_suggestions(
    image_id: int,
    db: Session = Depends(get_db),
    engine: SuggestionEngine = Depends(get_suggestion_engine),
):
    """Ranked tag suggestions, excluding tags the image already has."""
    image = ImageRepository(db).get(image_id)
    suggestions = engine.suggest(image)
    return {
        "image_id": image_id,
        "existing_tags": image.effective_tag_names,
        "suggestions": [s.to_dict() for s in suggestions],
    }


@router.post("/images/bulk-suggestions")
async def bulk_suggestions(
    request: BulkSuggestionsRequest,
    engine: SuggestionEngine = Depends(get_suggestion_engine),
):
    results = engine.bulk_suggest(request.image_ids, include_tagged=request.include_tagged)
    return {
        "processed": len(results),
        "suggestions": {
            str(image_id): [s.to_dict() for s in suggestions]
            for image_id, suggestions in results.items()
        },
    }


@router.post("/images/{image_id}/apply-suggestions")
async def apply_suggestions(
    image_id: int,
    request: ApplySuggestionsRequest,
    db: Session = Depends(get_db),
):
    """Add accepted suggestions to the image's global tags, keeping existing ones."""
    TagStore(db).link_tags(image_id, request.tags)
    logger.info("Applied %d suggested tags to image %s", len(request.tags), image_id)
    return serialize_image(ImageRepository(db).get(image_id))
