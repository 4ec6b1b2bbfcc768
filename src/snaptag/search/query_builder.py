"""Query builder for image search.

Turns a :class:`SearchRequest` into a single SQLAlchemy query:

- Filter predicates (free text, required tags, sources, date range)
- Allow-listed ordering with an id tie-breaker
- Optional caller-imposed pagination
- Eager loading of both tag namespaces for the response
"""

import logging
from typing import List, Optional

import pydantic
from sqlalchemy.orm import Query, Session, selectinload

from snaptag.database import read_guard
from snaptag.exceptions import ValidationError
from snaptag.metadata import Image
from snaptag.models.requests import SearchRequest
from snaptag.search.filter_builder import to_clause
from snaptag.search.predicates import Predicate, build_predicate

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "upload_date": Image.upload_date,
    "title": Image.title,
    "name": Image.title,
    "filename": Image.filename,
    "file_size": Image.file_size,
    "width": Image.width,
    "height": Image.height,
}
DEFAULT_SORT = "upload_date"


def parse_search_request(payload) -> SearchRequest:
    """Validate a raw search body, reporting problems as ValidationError."""
    if isinstance(payload, SearchRequest):
        return payload
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Search request must be a JSON object")
    try:
        return SearchRequest.model_validate(payload)
    except pydantic.ValidationError as exc:
        messages = "; ".join(err.get("msg", "") for err in exc.errors())
        raise ValidationError(f"Invalid search request: {messages}") from exc


def request_predicate(request: SearchRequest) -> Optional[Predicate]:
    date_range = request.date_range
    return build_predicate(
        search_term=request.search_term,
        tags=request.tags,
        sources=request.sources,
        start=date_range.start if date_range else None,
        end=date_range.end if date_range else None,
    )


class SearchQueryBuilder:
    """Encapsulates ordering and pagination rules for image search."""

    def __init__(self, db: Session, sort_by: Optional[str] = None, sort_order: Optional[str] = None):
        """Initialize the builder with normalized ordering preferences.

        Args:
            db: SQLAlchemy database session
            sort_by: Column name; anything outside the allow-list falls back to upload_date
            sort_order: "asc" or "desc" in any case; anything else means "desc"
        """
        self.db = db

        self.sort_order = (sort_order or "desc").lower()
        if self.sort_order not in ("asc", "desc"):
            self.sort_order = "desc"

        self.sort_by = (sort_by or DEFAULT_SORT).lower()
        if self.sort_by not in SORT_COLUMNS:
            # Unknown columns mean the default ordering, direction included.
            self.sort_by = DEFAULT_SORT
            self.sort_order = "desc"

    def order_clauses(self) -> list:
        column = SORT_COLUMNS[self.sort_by]
        if self.sort_order == "asc":
            return [column.asc(), Image.id.asc()]
        return [column.desc(), Image.id.desc()]

    def build(self, predicate: Optional[Predicate]) -> Query:
        query = self.db.query(Image).options(
            selectinload(Image.tags),
            selectinload(Image.focused_tags),
        )
        if predicate is not None:
            query = query.filter(to_clause(predicate))
        return query.order_by(*self.order_clauses())

    @staticmethod
    def paginate(query: Query, limit: Optional[int], offset: int = 0) -> Query:
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)
        return query


def search_images(db: Session, payload) -> List[Image]:
    """Run an image search and return matching images with tags loaded.

    Args:
        db: SQLAlchemy database session
        payload: SearchRequest or a raw dict in the wire format

    Returns:
        Images in the requested order. With no filters every image is returned.

    Raises:
        ValidationError: malformed request (e.g. ``tags`` is not an array)
        StoreError: the database failed; the search is not retried
    """
    request = parse_search_request(payload)
    predicate = request_predicate(request)

    builder = SearchQueryBuilder(db, request.sort_by, request.sort_order)
    query = builder.paginate(builder.build(predicate), request.limit, request.offset)

    with read_guard():
        images = query.all()

    logger.info(
        "Search term=%r tags=%s sources=%s -> %d images",
        request.search_term, request.tags, request.sources, len(images),
    )
    return images
