from functools import lru_cache
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseModel):
    """
    Configuration for lagged table construction.
    Defines HOW tables are laid out, never WHICH lags are built.
    """

    # ---- Column layout ----
    lag_column_template: str = Field(
        default="{feature}_lag_{lag}",
        description="Template for generated predictor columns",
    )
    horizon_column: str = "horizon"
    date_index_name: str = "date"

    # ---- Row policy ----
    drop_incomplete_rows: bool = Field(
        default=True,
        description="Drop leading rows without a full lag history and trailing rows without an outcome",
    )

    # ---- Execution ----
    max_workers: int = Field(default=1, ge=1)
    warn_on_empty: bool = True

    @field_validator("lag_column_template")
    @classmethod
    def validate_template(cls, v: str):
        """The template must encode both the feature and the lag."""
        if "{feature}" not in v or "{lag}" not in v:
            raise ValueError("lag_column_template must contain '{feature}' and '{lag}' placeholders.")
        return v

    @classmethod
    def from_settings(cls, settings: Optional["Settings"] = None) -> "EngineConfig":
        settings = settings or get_settings()
        return cls(max_workers=settings.max_workers)


class Settings(BaseSettings):
    app_name: str = "direct-lags"
    environment: str = "development"
    log_level: str = "INFO"

    max_workers: int = 1

    model_config = SettingsConfigDict(
        env_prefix="DIRECT_LAGS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

@lru_cache()
def get_settings() -> Settings:
    return Settings()
