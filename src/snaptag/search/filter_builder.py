"""Translate search predicates into SQLAlchemy filter expressions.

Tag namespaces are probed with correlated EXISTS / scalar subqueries so the
outer query stays one row per image and never fans out across tag rows.
"""

from sqlalchemy import and_, exists, false, func, or_, select, true
from sqlalchemy.sql.elements import ColumnElement

from snaptag.metadata import FocusedTag, Image, ImageTag, Tag, tag_name_key
from snaptag.search.predicates import (
    AllOf,
    AnyOf,
    DateRange,
    ExactPhrase,
    Predicate,
    SourceMatch,
    TagCountThreshold,
    TokenMatch,
)

LIKE_ESCAPE = "\\"

CONTENT_COLUMNS = {
    "title": Image.title,
    "description": Image.description,
    "filename": Image.filename,
    "original_name": Image.original_name,
}


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so ``value`` matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def contains_pattern(value: str) -> str:
    return f"%{escape_like(value)}%"


def _field_contains(field_name: str, needle: str) -> ColumnElement:
    pattern = contains_pattern(needle)
    if field_name in CONTENT_COLUMNS:
        return CONTENT_COLUMNS[field_name].ilike(pattern, escape=LIKE_ESCAPE)
    # Tag names are matched against keys folded in Python, so non-ASCII
    # case folding does not depend on the database.
    key_pattern = contains_pattern(needle.lower())
    if field_name == "tag":
        return exists().where(
            ImageTag.image_id == Image.id,
            ImageTag.tag_id == Tag.id,
            Tag.name_key.like(key_pattern, escape=LIKE_ESCAPE),
        )
    if field_name == "focused_tag":
        return exists().where(
            FocusedTag.image_id == Image.id,
            FocusedTag.name_key.like(key_pattern, escape=LIKE_ESCAPE),
        )
    raise ValueError(f"Unknown search field: {field_name}")


def _tag_count_clause(predicate: TagCountThreshold) -> ColumnElement:
    keys = [tag_name_key(name) for name in predicate.tags]

    global_matches = (
        select(func.count(func.distinct(Tag.name_key)))
        .select_from(ImageTag)
        .join(Tag, Tag.id == ImageTag.tag_id)
        .where(ImageTag.image_id == Image.id, Tag.name_key.in_(keys))
        .correlate(Image)
        .scalar_subquery()
    )
    focused_matches = (
        select(func.count(func.distinct(FocusedTag.name_key)))
        .where(FocusedTag.image_id == Image.id, FocusedTag.name_key.in_(keys))
        .correlate(Image)
        .scalar_subquery()
    )
    return (global_matches + focused_matches) >= predicate.threshold


def to_clause(predicate: Predicate) -> ColumnElement:
    """Translate a predicate tree into a WHERE clause over ``Image``."""
    if isinstance(predicate, ExactPhrase):
        return or_(*[_field_contains(name, predicate.term) for name in predicate.fields])

    if isinstance(predicate, TokenMatch):
        return or_(*[_field_contains(name, predicate.token) for name in predicate.fields])

    if isinstance(predicate, TagCountThreshold):
        return _tag_count_clause(predicate)

    if isinstance(predicate, SourceMatch):
        return or_(*[
            Image.source_url.ilike(contains_pattern(pattern), escape=LIKE_ESCAPE)
            for pattern in predicate.patterns
        ])

    if isinstance(predicate, DateRange):
        conditions = [Image.upload_date.isnot(None)]
        if predicate.start is not None:
            conditions.append(Image.upload_date >= predicate.start)
        if predicate.end is not None:
            conditions.append(Image.upload_date <= predicate.end)
        return and_(*conditions)

    if isinstance(predicate, AnyOf):
        if not predicate.children:
            return false()
        return or_(*[to_clause(child) for child in predicate.children])

    if isinstance(predicate, AllOf):
        if not predicate.children:
            return true()
        return and_(*[to_clause(child) for child in predicate.children])

    raise TypeError(f"Unknown predicate node: {predicate!r}")
