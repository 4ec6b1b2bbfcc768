"""Duplicate detection for incoming images.

The guard is a pre-check consulted before an image row is created. URL
equality is advisory; content hash equality is also backed by a unique index
on ``images.file_hash``.
"""

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Optional, Union

from sqlalchemy.orm import Session

from snaptag.database import read_guard
from snaptag.exceptions import Conflict
from snaptag.metadata import Image

logger = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class DuplicateMatch:
    """An existing image that an incoming payload collides with."""

    kind: str  # 'url' or 'hash'
    image_id: int
    filename: str
    created_at: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "image_id": self.image_id,
            "filename": self.filename,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def compute_content_hash(data: Union[bytes, bytearray, BinaryIO]) -> str:
    """Return the sha256 hex digest of raw bytes or a binary stream."""
    digest = hashlib.sha256()
    if isinstance(data, (bytes, bytearray, memoryview)):
        digest.update(data)
        return digest.hexdigest()

    for chunk in iter(lambda: data.read(HASH_CHUNK_SIZE), b""):
        digest.update(chunk)
    return digest.hexdigest()


class DuplicateGuard:
    def __init__(self, db: Session):
        self.db = db

    def find_by_url(self, source_url: Optional[str]) -> Optional[DuplicateMatch]:
        source_url = (source_url or "").strip()
        if not source_url:
            return None
        with read_guard():
            image = (
                self.db.query(Image)
                .filter(Image.source_url == source_url)
                .order_by(Image.created_at.desc(), Image.id.desc())
                .first()
            )
        return self._to_match("url", image)

    def find_by_hash(self, content_hash: Optional[str]) -> Optional[DuplicateMatch]:
        content_hash = (content_hash or "").strip().lower()
        if not content_hash:
            return None
        with read_guard():
            image = (
                self.db.query(Image)
                .filter(Image.file_hash == content_hash)
                .order_by(Image.created_at.desc(), Image.id.desc())
                .first()
            )
        return self._to_match("hash", image)

    def find_duplicate(
        self,
        source_url: Optional[str] = None,
        content_hash: Optional[str] = None,
    ) -> Optional[DuplicateMatch]:
        """Return the first collision found, checking the URL before the hash."""
        match = self.find_by_url(source_url) or self.find_by_hash(content_hash)
        if match:
            logger.info(
                "Duplicate detected by %s: existing image %s (%s)",
                match.kind, match.image_id, match.filename,
            )
        return match

    def ensure_unique(self, source_url: Optional[str] = None, content_hash: Optional[str] = None) -> None:
        match = self.find_duplicate(source_url=source_url, content_hash=content_hash)
        if match:
            raise Conflict(
                f"Image already exists (matched by {match.kind}): {match.filename}",
                duplicate=match,
            )

    @staticmethod
    def _to_match(kind: str, image: Optional[Image]) -> Optional[DuplicateMatch]:
        if image is None:
            return None
        return DuplicateMatch(
            kind=kind,
            image_id=image.id,
            filename=image.filename,
            created_at=image.created_at,
        )
