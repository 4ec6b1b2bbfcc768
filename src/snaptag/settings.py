"""Application settings and environment configuration."""

from typing import List, Optional
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[2]
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        env_prefix="SNAPTAG_",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_name: str = "SnapTag"
    debug: bool = False
    environment: str = "dev"  # 'dev' or 'prod'
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql://localhost/snaptag"
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800
    db_pool_pre_ping: bool = True
    db_connect_timeout: int = 10

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_workers: int = 4
    app_url: str = "http://localhost:8080"

    # Visual oracle (OpenAI-compatible chat completions endpoint).
    # Leaving the key unset disables the visual signal entirely.
    vision_api_key: Optional[str] = None
    vision_api_base: str = "https://api.openai.com/v1"
    vision_model: str = "gpt-4o-mini"
    # Upper bound for a single oracle request; None waits indefinitely.
    vision_timeout_seconds: Optional[float] = 30.0

    # Suggestions
    suggestion_limit: int = 8
    # Internal filing tags never offered as suggestions.
    suggestion_excluded_tags: List[str] = ["precedent", "archier", "texture", "materials"]
    # Optional YAML file replacing the built-in keyword tables.
    suggestion_vocabulary_file: Optional[str] = None
    # Max images handled by one batch suggestion run.
    batch_size: int = 50

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "prod"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "dev"

    @property
    def vision_enabled(self) -> bool:
        return bool((self.vision_api_key or "").strip())


settings = Settings()
