from functools import lru_cache
from typing import Annotated, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_prefix="APP_",
    )

    # =========================
    # Environment
    # =========================
    environment: Literal["development", "test", "staging", "production"] = "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    # =========================
    # API
    # =========================
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    cors_origins: Annotated[list[str], NoDecode] = Field(default_factory=list)

    # =========================
    # Database
    # =========================
    database_url: str = "sqlite:///./firegrid.db"

    # =========================
    # Row source
    # =========================
    row_source_base_url: str | None = None
    row_source_timeout_seconds: int = 30
    row_source_page_size: int = 100
    row_source_max_rows: int = 500

    # =========================
    # Dashboard editing
    # =========================
    autosave_debounce_seconds: float = 1.5
    save_status_saved_seconds: float = 2.0
    save_status_error_seconds: float = 3.0
    grid_timezone: str = "UTC"
    widget_data_concurrency_limit: int = 6

    # ============================================================
    # Validators
    # ============================================================

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: str | list[str] | None) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            raw_items = [item.strip() for item in value.split(",")]
            return [item for item in raw_items if item]
        return value

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_postgres_urls(cls, value: str | None) -> str | None:
        if value and value.startswith(("postgres://", "postgresql://")):
            return value.replace("postgres://", "postgresql+psycopg://", 1).replace(
                "postgresql://", "postgresql+psycopg://", 1
            )
        return value

    @field_validator("grid_timezone")
    @classmethod
    def validate_grid_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{value}'") from exc
        return value

    @field_validator("autosave_debounce_seconds", "save_status_saved_seconds", "save_status_error_seconds")
    @classmethod
    def validate_delays(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Delays cannot be negative")
        return value

    @model_validator(mode="after")
    def validate_production_rules(self) -> "Settings":
        if self.is_production:
            if self.database_url.startswith("sqlite"):
                raise ValueError("SQLite is not allowed in production")

            if self.log_level == "DEBUG":
                raise ValueError("DEBUG logging is not allowed in production")

            if "*" in self.cors_origins:
                raise ValueError("Wildcard CORS is not allowed in production")

        return self

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.grid_timezone)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
