"""Catalogue storage models: images, tags and both tag namespaces."""

from datetime import datetime

from sqlalchemy import Column, String, Integer, BigInteger, Float, DateTime, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


def tag_name_key(name: str) -> str:
    """Case-folded lookup key used for tag uniqueness."""
    return (name or "").strip().lower()


class Image(Base):
    """A catalogued image and its descriptive metadata."""

    __tablename__ = "images"

    id = Column(Integer, primary_key=True)

    # File information
    filename = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False, default="")
    mime_type = Column(String(100))
    file_size = Column(BigInteger)
    file_hash = Column(String(64), unique=True, index=True)  # sha256 hex; null for legacy rows

    # Image properties
    width = Column(Integer)
    height = Column(Integer)

    # Descriptive metadata
    title = Column(Text)
    description = Column(Text)
    source_url = Column(Text, index=True)

    upload_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    tag_links = relationship("ImageTag", back_populates="image", cascade="all, delete-orphan", passive_deletes=True)
    tags = relationship("Tag", secondary="image_tags", viewonly=True, order_by="Tag.name")
    focused_tags = relationship(
        "FocusedTag",
        back_populates="image",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="FocusedTag.id",
    )

    @property
    def tag_names(self) -> list:
        return [tag.name for tag in self.tags]

    @property
    def effective_tag_names(self) -> list:
        """Union of global and focused tag names, case-insensitively unique."""
        seen = set()
        names = []
        for name in self.tag_names + [ft.tag_name for ft in self.focused_tags]:
            key = tag_name_key(name)
            if key and key not in seen:
                seen.add(key)
                names.append(name)
        return names


class Tag(Base):
    """Shared vocabulary entry linked to many images."""

    __tablename__ = "tags"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)  # Stored as entered
    name_key = Column(String(255), nullable=False, unique=True)  # lower(name)
    color = Column(String(7))  # '#rrggbb'
    usage_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    image_links = relationship("ImageTag", back_populates="tag", cascade="all, delete-orphan", passive_deletes=True)


class ImageTag(Base):
    """Global tag link; an image holds a given tag at most once."""

    __tablename__ = "image_tags"

    id = Column(Integer, primary_key=True)
    image_id = Column(Integer, ForeignKey("images.id", ondelete="CASCADE"), nullable=False, index=True)
    tag_id = Column(Integer, ForeignKey("tags.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    image = relationship("Image", back_populates="tag_links")
    tag = relationship("Tag", back_populates="image_links")

    __table_args__ = (
        UniqueConstraint("image_id", "tag_id", name="uq_image_tags_image_tag"),
    )


class FocusedTag(Base):
    """Positional annotation scoped to a single image.

    Coordinates are image-relative; width/height describe a region, a bare
    x/y describes a point. Names are not linked to the tags table.
    """

    __tablename__ = "focused_tags"

    id = Column(Integer, primary_key=True)
    image_id = Column(Integer, ForeignKey("images.id", ondelete="CASCADE"), nullable=False)
    tag_name = Column(String(255), nullable=False)
    name_key = Column(String(255), nullable=False)  # tag_name_key(tag_name)
    x_coordinate = Column(Float, nullable=False)
    y_coordinate = Column(Float, nullable=False)
    width = Column(Float)
    height = Column(Float)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    image = relationship("Image", back_populates="focused_tags")

    __table_args__ = (
        Index("idx_focused_tags_image", "image_id"),
        Index("idx_focused_tags_name_key", "name_key"),
    )

    def to_dict(self) -> dict:
        return {
            "tag_name": self.tag_name,
            "x_coordinate": self.x_coordinate,
            "y_coordinate": self.y_coordinate,
            "width": self.width,
            "height": self.height,
        }
