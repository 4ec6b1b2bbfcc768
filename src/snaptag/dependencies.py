"""Shared dependencies for FastAPI endpoints."""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from snaptag.database import get_db
from snaptag.images import ImageRepository
from snaptag.settings import settings
from snaptag.suggestions import SuggestionConfig, SuggestionEngine, VisualOracle
from snaptag.tag_store import TagStore


@lru_cache(maxsize=1)
def get_suggestion_config() -> SuggestionConfig:
    """Suggestion settings, loaded once per process (vocabulary file included)."""
    return SuggestionConfig.from_settings(settings)


def get_tag_store(db: Session = Depends(get_db)) -> TagStore:
    return TagStore(db)


def get_image_repository(db: Session = Depends(get_db)) -> ImageRepository:
    return ImageRepository(db)


def get_suggestion_engine(db: Session = Depends(get_db)) -> SuggestionEngine:
    return SuggestionEngine(
        db,
        config=get_suggestion_config(),
        oracle=VisualOracle.from_settings(settings),
    )
