"""Tag vocabulary and image link storage.

All writes for one image happen inside a single transaction so an image never
ends up with a half-replaced tag set. Tag creation is an atomic
insert-if-absent keyed on the case-folded name, which makes concurrent
creation of the same tag converge on one row.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from snaptag.database import read_guard, transaction
from snaptag.exceptions import Conflict, NotFound, StoreError, ValidationError
from snaptag.metadata import FocusedTag, Image, ImageTag, Tag, tag_name_key

logger = logging.getLogger(__name__)


def insert_ignore(db: Session, model, values: dict, conflict_columns: List[str]) -> int:
    """Insert one row unless it collides on ``conflict_columns``.

    Returns the number of rows written (0 or 1).
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        return _insert_in_savepoint(db, model, values)

    stmt = insert(model.__table__).values(**values).on_conflict_do_nothing(index_elements=conflict_columns)
    result = db.execute(stmt)
    return result.rowcount or 0


def _insert_in_savepoint(db: Session, model, values: dict) -> int:
    from sqlalchemy import insert

    try:
        with db.begin_nested():
            db.execute(insert(model.__table__).values(**values))
    except IntegrityError:
        return 0
    return 1


def validate_tag_name(name) -> str:
    if not isinstance(name, str):
        raise ValidationError("Tag name must be a string")
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError("Tag name cannot be empty")
    if "," in cleaned:
        raise ValidationError("Tag names cannot contain commas. Please create separate tags instead.")
    if len(cleaned) > 255:
        raise ValidationError("Tag name is too long")
    return cleaned


def unique_tag_names(names: Iterable[str]) -> List[str]:
    """Validate names and drop case-insensitive repeats, keeping first spelling."""
    if names is None:
        return []
    if isinstance(names, str) or not isinstance(names, (list, tuple, set)):
        raise ValidationError("Tags must be a list of strings")
    seen = set()
    result = []
    for raw in names:
        cleaned = validate_tag_name(raw)
        key = tag_name_key(cleaned)
        if key not in seen:
            seen.add(key)
            result.append(cleaned)
    return result


def coerce_focused_entry(entry) -> dict:
    """Normalize a focused-tag payload (mapping or pydantic model)."""
    if hasattr(entry, "model_dump"):
        entry = entry.model_dump()
    if not isinstance(entry, dict):
        raise ValidationError("Focused tag entries must be objects")

    tag_name = entry.get("tag_name")
    if not isinstance(tag_name, str) or not tag_name.strip():
        raise ValidationError("Focused tag requires a tag_name")

    def _coord(key: str, required: bool) -> Optional[float]:
        value = entry.get(key)
        if value is None:
            if required:
                raise ValidationError(f"Focused tag '{tag_name}' is missing {key}")
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Focused tag '{tag_name}' has a non-numeric {key}")

    return {
        "tag_name": tag_name.strip(),
        "x_coordinate": _coord("x_coordinate", True),
        "y_coordinate": _coord("y_coordinate", True),
        "width": _coord("width", False),
        "height": _coord("height", False),
    }


class TagStore:
    """Owns the tag vocabulary plus the global and focused link relations."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Vocabulary
    # ------------------------------------------------------------------

    def get_or_create_tag(self, name: str) -> int:
        """Return the id of the tag named ``name``, creating it when absent."""
        with transaction(self.db):
            return self._get_or_create_tag_id(name)

    def _get_or_create_tag_id(self, name: str) -> int:
        cleaned = validate_tag_name(name)
        key = tag_name_key(cleaned)
        created = insert_ignore(
            self.db,
            Tag,
            {"name": cleaned, "name_key": key, "usage_count": 0},
            ["name_key"],
        )
        tag_id = self.db.query(Tag.id).filter(Tag.name_key == key).scalar()
        if tag_id is None:
            raise StoreError(f"Tag '{cleaned}' vanished after insert")
        if created:
            logger.info("Created tag %r (id=%s)", cleaned, tag_id)
        return tag_id

    def get_tag(self, tag_id: int) -> Tag:
        with read_guard():
            tag = self.db.query(Tag).filter(Tag.id == tag_id).first()
        if not tag:
            raise NotFound(f"Tag {tag_id} not found")
        return tag

    def find_tag(self, name: str) -> Optional[Tag]:
        with read_guard():
            return self.db.query(Tag).filter(Tag.name_key == tag_name_key(name)).first()

    def list_tags(self) -> List[dict]:
        """All tags with usage counted from the link table."""
        usage = func.count(ImageTag.id)
        with read_guard():
            rows = (
                self.db.query(Tag, usage.label("usage_count"))
                .outerjoin(ImageTag, ImageTag.tag_id == Tag.id)
                .group_by(Tag.id)
                .order_by(usage.desc(), Tag.name.asc())
                .all()
            )
        return [
            {
                "id": tag.id,
                "name": tag.name,
                "color": tag.color,
                "created_at": tag.created_at,
                "usage_count": int(count or 0),
            }
            for tag, count in rows
        ]

    def popular_tags(self, limit: int = 20, exclude_image_id: Optional[int] = None) -> List[tuple]:
        """Most used tags as (name, usage) pairs, aggregated from links."""
        usage = func.count(ImageTag.id)
        query = self.db.query(Tag.name, usage).join(ImageTag, ImageTag.tag_id == Tag.id)
        if exclude_image_id is not None:
            query = query.filter(ImageTag.image_id != exclude_image_id)
        with read_guard():
            rows = query.group_by(Tag.id, Tag.name).order_by(usage.desc(), Tag.name.asc()).limit(limit).all()
        return [(name, int(count)) for name, count in rows]

    def vocabulary(self) -> List[str]:
        """Every tag name, most used first."""
        with read_guard():
            rows = self.db.query(Tag.name).order_by(Tag.usage_count.desc(), Tag.name.asc()).all()
        return [row[0] for row in rows]

    def create_tag(self, name: str, color: Optional[str] = None) -> dict:
        cleaned = validate_tag_name(name)
        key = tag_name_key(cleaned)
        with transaction(self.db):
            created = insert_ignore(
                self.db,
                Tag,
                {"name": cleaned, "name_key": key, "color": color, "usage_count": 0},
                ["name_key"],
            )
            if not created:
                raise Conflict(f'Tag "{cleaned}" already exists')
            tag = self.db.query(Tag).filter(Tag.name_key == key).one()
            payload = {
                "id": tag.id,
                "name": tag.name,
                "color": tag.color,
                "created_at": tag.created_at,
                "usage_count": 0,
            }
        logger.info("Created tag %r", cleaned)
        return payload

    def rename_tag(self, tag_id: int, new_name: str) -> dict:
        cleaned = validate_tag_name(new_name)
        key = tag_name_key(cleaned)
        with transaction(self.db):
            tag = self.get_tag(tag_id)
            clash = self.db.query(Tag.id).filter(Tag.name_key == key, Tag.id != tag_id).first()
            if clash:
                raise Conflict(f'Tag "{cleaned}" already exists')
            old_name = tag.name
            tag.name = cleaned
            tag.name_key = key
        logger.info("Renamed tag %s: %r -> %r", tag_id, old_name, cleaned)
        return {"id": tag_id, "old_name": old_name, "name": cleaned}

    def delete_tag(self, tag_id: int) -> str:
        """Delete a tag and every image link that references it."""
        with transaction(self.db):
            tag = self.get_tag(tag_id)
            name = tag.name
            removed = (
                self.db.query(ImageTag)
                .filter(ImageTag.tag_id == tag_id)
                .delete(synchronize_session=False)
            )
            self.db.query(Tag).filter(Tag.id == tag_id).delete(synchronize_session=False)
        self.db.expire_all()
        logger.info("Deleted tag %r and %d image links", name, removed)
        return name

    def merge_tags(self, source_id: int, target_id: int) -> dict:
        """Move every image from ``source_id`` onto ``target_id`` and drop the source."""
        if source_id == target_id:
            raise ValidationError("Cannot merge a tag with itself")

        with transaction(self.db):
            source = self.get_tag(source_id)
            target = self.get_tag(target_id)
            source_name, target_name = source.name, target.name

            affected = (
                self.db.query(func.count(func.distinct(ImageTag.image_id)))
                .filter(ImageTag.tag_id == source_id)
                .scalar()
            ) or 0

            target_images = select(ImageTag.image_id).where(ImageTag.tag_id == target_id)
            duplicates = [
                row[0]
                for row in self.db.query(ImageTag.image_id)
                .filter(ImageTag.tag_id == source_id, ImageTag.image_id.in_(target_images))
                .all()
            ]
            if duplicates:
                self.db.query(ImageTag).filter(
                    ImageTag.tag_id == source_id,
                    ImageTag.image_id.in_(duplicates),
                ).delete(synchronize_session=False)

            self.db.query(ImageTag).filter(ImageTag.tag_id == source_id).update(
                {ImageTag.tag_id: target_id}, synchronize_session=False
            )
            self.db.query(Tag).filter(Tag.id == source_id).delete(synchronize_session=False)
            self._refresh_usage_count(target_id)

        self.db.expire_all()
        logger.info("Merged tag %r into %r (%d images)", source_name, target_name, affected)
        return {
            "source": source_name,
            "target": target_name,
            "affected_image_count": int(affected),
            "duplicate_image_count": len(duplicates),
            "merged_image_count": int(affected) - len(duplicates),
        }

    def recompute_usage_counts(self) -> int:
        """Rebuild every usage counter from the link table; returns rows repaired."""
        actual = func.count(ImageTag.id)
        with transaction(self.db):
            rows = (
                self.db.query(Tag.id, Tag.usage_count, actual)
                .outerjoin(ImageTag, ImageTag.tag_id == Tag.id)
                .group_by(Tag.id, Tag.usage_count)
                .all()
            )
            repaired = 0
            for tag_id, stored, count in rows:
                if (stored or 0) != count:
                    self.db.query(Tag).filter(Tag.id == tag_id).update(
                        {Tag.usage_count: count}, synchronize_session=False
                    )
                    repaired += 1
        self.db.expire_all()
        if repaired:
            logger.warning("Repaired usage counters on %d tags", repaired)
        return repaired

    def _refresh_usage_count(self, tag_id: int) -> None:
        count = self.db.query(func.count(ImageTag.id)).filter(ImageTag.tag_id == tag_id).scalar() or 0
        self.db.query(Tag).filter(Tag.id == tag_id).update({Tag.usage_count: count}, synchronize_session=False)

    # ------------------------------------------------------------------
    # Image links
    # ------------------------------------------------------------------

    def link_tags(self, image_id: int, names: Iterable[str]) -> List[int]:
        """Attach global tags to an image; links that already exist are left alone."""
        with transaction(self.db):
            self._require_image(image_id)
            tag_ids = self.attach_tags(image_id, names)
        self.db.expire_all()
        return tag_ids

    def link_focused_tags(self, image_id: int, entries: Iterable) -> int:
        """Store positional tags verbatim; returns the number of rows written."""
        with transaction(self.db):
            self._require_image(image_id)
            written = self.attach_focused_tags(image_id, entries)
        self.db.expire_all()
        return written

    def unlink_tags(self, image_id: int, names: Iterable[str]) -> int:
        """Detach the named global tags from an image."""
        keys = [tag_name_key(name) for name in unique_tag_names(names)]
        if not keys:
            return 0
        with transaction(self.db):
            self._require_image(image_id)
            tag_ids = [
                row[0]
                for row in self.db.query(ImageTag.tag_id)
                .join(Tag, Tag.id == ImageTag.tag_id)
                .filter(ImageTag.image_id == image_id, Tag.name_key.in_(keys))
                .all()
            ]
            removed = self._remove_links(image_id, tag_ids)
        self.db.expire_all()
        return removed

    def replace_tags(self, image_id: int, names: Iterable[str], focused_entries: Iterable = ()) -> None:
        """Swap both tag namespaces of an image in one transaction."""
        unique_names = unique_tag_names(names)
        entries = [coerce_focused_entry(entry) for entry in (focused_entries or [])]

        with transaction(self.db):
            self._require_image(image_id)
            current = [row[0] for row in self.db.query(ImageTag.tag_id).filter(ImageTag.image_id == image_id).all()]
            self._remove_links(image_id, current)
            self.db.query(FocusedTag).filter(FocusedTag.image_id == image_id).delete(synchronize_session=False)
            self.attach_tags(image_id, unique_names)
            self.attach_focused_tags(image_id, entries)
        self.db.expire_all()
        logger.info(
            "Replaced tags on image %s: %d global, %d focused",
            image_id, len(unique_names), len(entries),
        )

    def remove_all_links(self, image_id: int) -> None:
        """Drop both namespaces for an image inside the caller's transaction."""
        current = [row[0] for row in self.db.query(ImageTag.tag_id).filter(ImageTag.image_id == image_id).all()]
        self._remove_links(image_id, current)
        self.db.query(FocusedTag).filter(FocusedTag.image_id == image_id).delete(synchronize_session=False)

    def effective_tags(self, image_id: int) -> List[str]:
        return self._require_image(image_id).effective_tag_names

    def _require_image(self, image_id: int) -> Image:
        image = self.db.query(Image).filter(Image.id == image_id).first()
        if not image:
            raise NotFound(f"Image {image_id} not found")
        return image

    def attach_tags(self, image_id: int, names: Iterable[str]) -> List[int]:
        tag_ids = []
        for name in unique_tag_names(names):
            tag_id = self._get_or_create_tag_id(name)
            linked = insert_ignore(
                self.db,
                ImageTag,
                {"image_id": image_id, "tag_id": tag_id},
                ["image_id", "tag_id"],
            )
            if linked:
                self.db.query(Tag).filter(Tag.id == tag_id).update(
                    {Tag.usage_count: Tag.usage_count + 1}, synchronize_session=False
                )
            tag_ids.append(tag_id)
        return tag_ids

    def attach_focused_tags(self, image_id: int, entries: Iterable) -> int:
        written = 0
        for entry in entries or []:
            values = coerce_focused_entry(entry)
            self.db.add(FocusedTag(image_id=image_id, name_key=tag_name_key(values["tag_name"]), **values))
            written += 1
        self.db.flush()
        return written

    def _remove_links(self, image_id: int, tag_ids: List[int]) -> int:
        if not tag_ids:
            return 0
        removed = (
            self.db.query(ImageTag)
            .filter(ImageTag.image_id == image_id, ImageTag.tag_id.in_(tag_ids))
            .delete(synchronize_session=False)
        )
        self.db.query(Tag).filter(Tag.id.in_(tag_ids)).update(
            {Tag.usage_count: case((Tag.usage_count > 0, Tag.usage_count - 1), else_=0)},
            synchronize_session=False,
        )
        return removed
