"""Test configuration loading."""

from snaptag.database import get_engine_kwargs
from snaptag.settings import Settings


def test_env_prefix(monkeypatch):
    """Test settings read SNAPTAG_* variables."""
    monkeypatch.setenv("SNAPTAG_SUGGESTION_LIMIT", "5")
    monkeypatch.setenv("SNAPTAG_VISION_API_KEY", "sk-live")
    monkeypatch.setenv("SNAPTAG_ENVIRONMENT", "prod")

    settings = Settings()

    assert settings.suggestion_limit == 5
    assert settings.vision_enabled
    assert settings.is_production


def test_vision_disabled_without_key(monkeypatch):
    monkeypatch.setenv("SNAPTAG_VISION_API_KEY", "  ")
    assert not Settings().vision_enabled


def test_excluded_tags_default():
    assert Settings().suggestion_excluded_tags == ["precedent", "archier", "texture", "materials"]


def test_engine_kwargs_by_dialect():
    """Test pool sizing only applies to server databases."""
    sqlite_kwargs = get_engine_kwargs("sqlite:///catalogue.db")
    assert "pool_size" not in sqlite_kwargs
    assert sqlite_kwargs["connect_args"] == {"check_same_thread": False}

    pg_kwargs = get_engine_kwargs("postgresql://localhost/snaptag")
    assert "pool_size" in pg_kwargs
    assert "connect_timeout" in pg_kwargs["connect_args"]
