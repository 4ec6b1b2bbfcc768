"""Test configuration and fixtures."""

import os

# Keep module-level engines off any real database during tests.
os.environ.setdefault("SNAPTAG_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SNAPTAG_VISION_API_KEY", "")

import io
from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from snaptag.database import build_engine
from snaptag.images import ImageRepository
from snaptag.metadata import Base
from snaptag.tag_store import TagStore


@pytest.fixture
def test_db():
    """Create test database."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def tag_store(test_db: Session) -> TagStore:
    return TagStore(test_db)


@pytest.fixture
def make_image(test_db: Session):
    """Factory creating catalogued images through the repository."""
    repo = ImageRepository(test_db)
    counter = {"n": 0}

    def _make(filename=None, tags=(), focused=(), **fields):
        counter["n"] += 1
        payload = {
            "filename": filename or f"image_{counter['n']}.jpg",
            "upload_date": fields.pop("upload_date", datetime(2024, 1, counter["n"] % 28 + 1, 12, 0)),
        }
        payload.update(fields)
        focused_entries = [
            {"tag_name": name, "x_coordinate": 0.5, "y_coordinate": 0.5} if isinstance(name, str) else name
            for name in focused
        ]
        return repo.create(payload, tags=list(tags), focused_tags=focused_entries)

    return _make


@pytest.fixture
def scenario_image(make_image):
    """Image with global tags timber/exterior and a focused window tag."""
    return make_image(
        filename="house_a.jpg",
        title="House A",
        tags=["timber", "exterior"],
        focused=["window"],
    )


@pytest.fixture
def sample_image_data():
    """Generate sample image data for testing."""
    from PIL import Image

    img = Image.new('RGB', (120, 80), color='red')
    buffer = io.BytesIO()
    img.save(buffer, format='JPEG')
    return buffer.getvalue()
