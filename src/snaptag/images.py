"""Image records: creation, edits, deletion and triage views."""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional
from urllib.parse import urlparse

from sqlalchemy import exists, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from snaptag.database import read_guard, transaction
from snaptag.duplicates import DuplicateGuard
from snaptag.exceptions import Conflict, NotFound, ValidationError
from snaptag.metadata import Image, ImageTag
from snaptag.tag_store import TagStore, coerce_focused_entry, unique_tag_names

logger = logging.getLogger(__name__)

IMAGE_FIELDS = (
    "filename",
    "original_name",
    "mime_type",
    "file_size",
    "file_hash",
    "width",
    "height",
    "title",
    "description",
    "source_url",
    "upload_date",
)

RECENT_UNTAGGED_DAYS = 7


def source_domain(url: Optional[str]) -> Optional[str]:
    """Hostname of ``url`` without a leading ``www.``; None when unparseable."""
    if not url:
        return None
    value = url.strip()
    if "://" not in value:
        value = f"http://{value}"
    try:
        host = urlparse(value).hostname
    except ValueError:
        return None
    if not host:
        return None
    if host.startswith("www."):
        host = host[4:]
    return host or None


def serialize_image(image: Image) -> dict:
    """API representation with both tag namespaces resolved."""
    return {
        "id": image.id,
        "filename": image.filename,
        "original_name": image.original_name,
        "title": image.title,
        "description": image.description,
        "mime_type": image.mime_type,
        "file_size": image.file_size,
        "width": image.width,
        "height": image.height,
        "source_url": image.source_url,
        "file_hash": image.file_hash,
        "upload_date": image.upload_date.isoformat() if image.upload_date else None,
        "created_at": image.created_at.isoformat() if image.created_at else None,
        "tags": image.tag_names,
        "focused_tags": [ft.to_dict() for ft in image.focused_tags],
    }


class ImageRepository:
    def __init__(self, db: Session, guard: Optional[DuplicateGuard] = None, tag_store: Optional[TagStore] = None):
        self.db = db
        self.guard = guard or DuplicateGuard(db)
        self.tag_store = tag_store or TagStore(db)

    def get(self, image_id: int) -> Image:
        with read_guard():
            image = self.db.query(Image).filter(Image.id == image_id).first()
        if not image:
            raise NotFound(f"Image {image_id} not found")
        return image

    def create(self, payload, tags: Iterable[str] = (), focused_tags: Iterable = ()) -> Image:
        """Persist a new image with its tags, refusing duplicates.

        ``payload`` is a mapping (or pydantic model) of image columns.
        """
        if hasattr(payload, "model_dump"):
            payload = payload.model_dump(exclude_none=True)
        values = {key: payload[key] for key in IMAGE_FIELDS if payload.get(key) is not None}
        filename = (values.get("filename") or "").strip()
        if not filename:
            raise ValidationError("Image filename is required")
        values["filename"] = filename
        values.setdefault("original_name", filename)
        if values.get("file_hash"):
            values["file_hash"] = values["file_hash"].strip().lower()
        # Stored the same way the guard compares it
        if "source_url" in values:
            values["source_url"] = values["source_url"].strip() or None

        names = unique_tag_names(list(tags or []))
        entries = [coerce_focused_entry(entry) for entry in (focused_tags or [])]

        self.guard.ensure_unique(source_url=values.get("source_url"), content_hash=values.get("file_hash"))

        with transaction(self.db):
            image = Image(**values)
            self.db.add(image)
            try:
                self.db.flush()
            except IntegrityError as exc:
                raise Conflict(f"Image with hash {values.get('file_hash')} already exists") from exc
            self.tag_store.attach_tags(image.id, names)
            self.tag_store.attach_focused_tags(image.id, entries)
            image_id = image.id

        logger.info("Created image %s (%s) with %d tags", image_id, filename, len(names))
        return self.get(image_id)

    def update_metadata(self, image_id: int, title: Optional[str] = None, description: Optional[str] = None) -> Image:
        with transaction(self.db):
            image = self.get(image_id)
            if title is not None:
                image.title = title
            if description is not None:
                image.description = description
        return self.get(image_id)

    def edit(
        self,
        image_id: int,
        tags: Iterable[str] = (),
        focused_tags: Iterable = (),
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Image:
        """Replace both tag namespaces and apply optional text edits together.

        Input is validated before anything is written, and the writes share
        one transaction, so a rejected edit leaves the image as it was.
        """
        names = unique_tag_names(list(tags or []))
        entries = [coerce_focused_entry(entry) for entry in (focused_tags or [])]

        with transaction(self.db):
            image = self.get(image_id)
            if title is not None:
                image.title = title
            if description is not None:
                image.description = description
            self.tag_store.remove_all_links(image_id)
            self.tag_store.attach_tags(image_id, names)
            self.tag_store.attach_focused_tags(image_id, entries)
        self.db.expire_all()
        logger.info("Edited image %s: %d global, %d focused tags", image_id, len(names), len(entries))
        return self.get(image_id)

    def delete(self, image_id: int) -> str:
        """Delete an image, its links and focused tags; returns the filename."""
        with transaction(self.db):
            image = self.get(image_id)
            filename = image.filename
            self.tag_store.remove_all_links(image_id)
            self.db.query(Image).filter(Image.id == image_id).delete(synchronize_session=False)
        self.db.expire_all()
        logger.info("Deleted image %s (%s)", image_id, filename)
        return filename

    def bulk_delete(self, image_ids: Iterable[int]) -> dict:
        """Delete each id independently; one failure does not stop the rest."""
        ids = list(image_ids or [])
        if not ids:
            raise ValidationError("image_ids must be a non-empty list")

        deleted, errors = [], []
        for image_id in ids:
            try:
                self.delete(image_id)
                deleted.append(image_id)
            except NotFound as exc:
                errors.append({"id": image_id, "error": exc.message})
        logger.info("Bulk delete: %d deleted, %d failed", len(deleted), len(errors))
        return {"deleted": deleted, "errors": errors}

    def list_untagged(self, limit: Optional[int] = None) -> List[Image]:
        """Images without any global tag, newest first."""
        linked = exists().where(ImageTag.image_id == Image.id)
        query = self.db.query(Image).filter(~linked).order_by(Image.created_at.desc(), Image.id.desc())
        if limit:
            query = query.limit(limit)
        with read_guard():
            return query.all()

    def list_ids(self) -> List[int]:
        with read_guard():
            return [row[0] for row in self.db.query(Image.id).order_by(Image.id.asc()).all()]

    def triage_stats(self, now: Optional[datetime] = None) -> dict:
        """Counts of tagged, untagged and thinly tagged images."""
        now = now or datetime.utcnow()
        tag_count = func.count(ImageTag.id)
        with read_guard():
            per_image = (
                self.db.query(Image.id, Image.created_at, tag_count.label("tag_count"))
                .outerjoin(ImageTag, ImageTag.image_id == Image.id)
                .group_by(Image.id, Image.created_at)
                .all()
            )
            tags_in_use = self.db.query(func.count(func.distinct(ImageTag.tag_id))).scalar() or 0
            avg_file_size = self.db.query(func.avg(Image.file_size)).scalar()
            latest_upload = self.db.query(func.max(Image.upload_date)).scalar()

        cutoff = now - timedelta(days=RECENT_UNTAGGED_DAYS)
        total = len(per_image)
        untagged = sum(1 for _, _, count in per_image if count == 0)
        minimal = sum(1 for _, _, count in per_image if 1 <= count <= 2)
        recent_untagged = sum(
            1 for _, created_at, count in per_image
            if count == 0 and created_at is not None and created_at >= cutoff
        )
        tagged = total - untagged
        percentage = int((tagged * 100 / total) + 0.5) if total else 100

        return {
            "total_images": total,
            "tagged_images": tagged,
            "untagged_images": untagged,
            "minimal_tags_images": minimal,
            "recent_untagged": recent_untagged,
            "tagged_percentage": percentage,
            "needs_attention": untagged + minimal,
            "total_tags": int(tags_in_use),
            "avg_file_size": float(avg_file_size) if avg_file_size is not None else None,
            "latest_upload": latest_upload.isoformat() if latest_upload else None,
        }

    def source_domains(self) -> List[str]:
        """Distinct source domains, sorted."""
        with read_guard():
            rows = (
                self.db.query(Image.source_url)
                .filter(Image.source_url.isnot(None), Image.source_url != "")
                .distinct()
                .all()
            )
        domains = {source_domain(row[0]) for row in rows}
        return sorted(domain for domain in domains if domain)
