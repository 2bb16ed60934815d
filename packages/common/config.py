"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FSRS_WEIGHTS: tuple[float, ...] = (
    0.4,
    0.6,
    2.4,
    5.8,
    4.93,
    0.94,
    0.86,
    0.01,
    1.49,
    0.14,
    0.94,
    2.18,
    0.05,
    0.34,
    1.26,
    0.29,
    2.61,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CORPUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_path: str = Field(
        default=str(Path("~/.corpus/corpus.db").expanduser()),
        description="SQLite database file, or ':memory:'",
    )

    # Scheduling
    timezone: str = Field(
        default="UTC",
        description="IANA timezone that decides where one study day ends",
    )
    request_retention: float = Field(
        default=0.9,
        description="Target probability of recall at the due date",
    )
    maximum_interval: int = Field(
        default=36500,
        description="Longest interval in days the scheduler may assign",
    )
    fsrs_weights: tuple[float, ...] = Field(
        default=DEFAULT_FSRS_WEIGHTS,
        description="The 17 memory model weights",
    )
    review_session_limit: int = Field(
        default=50,
        description="Default number of cards fetched for a review session",
    )

    # Search
    search_limit: int = Field(default=20, description="Default number of search hits")

    # Seed data
    seed_file: str | None = Field(
        default=None,
        description="YAML file with pillars, domains, topics and sample cards",
    )

    # API configuration
    api_host: str = Field(default="127.0.0.1", description="API host")
    api_port: int = Field(default=8000, description="API port")
    debug: bool = Field(default=False, description="Debug mode")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate the timezone name against the tz database."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v}") from exc
        return v

    @field_validator("request_retention")
    @classmethod
    def validate_retention(cls, v: float) -> float:
        """Validate retention is a probability strictly between 0 and 1."""
        if not 0.0 < v < 1.0:
            raise ValueError("request_retention must be between 0 and 1 (exclusive)")
        return v

    @field_validator("fsrs_weights")
    @classmethod
    def validate_weights(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        """Validate the weight vector length."""
        if len(v) != 17:
            raise ValueError(f"fsrs_weights must contain 17 values, got {len(v)}")
        return v

    @field_validator("maximum_interval", "review_session_limit", "search_limit")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        """Validate integer settings that must be positive."""
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        """Timezone object for day-boundary computations."""
        return ZoneInfo(self.timezone)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
