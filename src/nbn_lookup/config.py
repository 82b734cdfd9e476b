"""
Application configuration using Pydantic Settings.

All settings are loaded from environment variables or .env file.
Nothing about the upstream dataset or cache policy is hardcoded.
"""

from pathlib import Path
from typing import Annotated, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DAY_SECONDS = 86400


class DatabaseSettings(BaseSettings):
    """Cache database connection settings."""

    url: str = "sqlite:///./data/nbn_cache.db"

    model_config = SettingsConfigDict(env_prefix="DATABASE_")


class SourceSettings(BaseSettings):
    """Upstream snapshot dataset (per-suburb GeoJSON files)."""

    base_url: str = "https://raw.githubusercontent.com/LukePrior/nbn-upgrade-map/main/results"
    file_extension: str = "geojson"
    max_concurrency: int = 4
    # None means no per-request timeout
    timeout: Optional[float] = None
    user_agent: str = "nbn-lookup/0.1"

    model_config = SettingsConfigDict(env_prefix="SOURCE_")

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("file_extension")
    @classmethod
    def strip_leading_dot(cls, v: str) -> str:
        return v.lstrip(".")

    @field_validator("max_concurrency")
    @classmethod
    def positive_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_concurrency must be at least 1")
        return v


class CacheSettings(BaseSettings):
    """Freshness and eviction policy for cached suburb files."""

    ttl_days: float = 7
    expiry_days: float = 28
    max_entries: int = 100
    sweep_on_startup: bool = True

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    @field_validator("ttl_days", "expiry_days")
    @classmethod
    def positive_days(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("cache ages must be positive")
        return v

    @field_validator("max_entries")
    @classmethod
    def positive_entries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_entries must be at least 1")
        return v

    @model_validator(mode="after")
    def expiry_not_before_ttl(self) -> "CacheSettings":
        if self.expiry_days < self.ttl_days:
            raise ValueError("expiry_days must not be shorter than ttl_days")
        return self

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_days * DAY_SECONDS

    @property
    def expiry_seconds(self) -> float:
        return self.expiry_days * DAY_SECONDS


class APISettings(BaseSettings):
    """FastAPI server settings."""

    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    model_config = SettingsConfigDict(env_prefix="API_")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_origins(cls, v: str | list[str] | None) -> list[str]:
        if v is None or v == "":
            return ["*"]
        if isinstance(v, str):
            return [o.strip() for o in v.split(",") if o.strip()]
        return v


class PathSettings(BaseSettings):
    """File path configuration."""

    data_dir: str = "data"

    model_config = SettingsConfigDict(env_prefix="")

    def ensure_dirs(self) -> None:
        """Create all configured directories if they don't exist."""
        for field_name in self.__class__.model_fields:
            path = Path(getattr(self, field_name))
            path.mkdir(parents=True, exist_ok=True)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = "INFO"
    file: str = "logs/nbn_lookup.log"

    model_config = SettingsConfigDict(env_prefix="LOG_")


class Settings(BaseSettings):
    """Main application settings — aggregates all sub-settings."""

    database: DatabaseSettings = DatabaseSettings()
    source: SourceSettings = SourceSettings()
    cache: CacheSettings = CacheSettings()
    api: APISettings = APISettings()
    paths: PathSettings = PathSettings()
    logging: LoggingSettings = LoggingSettings()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def setup(self) -> None:
        """Initialize application: create data and log directories."""
        self.paths.ensure_dirs()
        log_dir = Path(self.logging.file).parent
        log_dir.mkdir(parents=True, exist_ok=True)


# Global settings instance — import this in other modules
settings = Settings()
