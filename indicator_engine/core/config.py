"""
Application Configuration

All settings loaded from environment variables.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from indicator_engine.schemas.market import Timeframe


class Settings(BaseSettings):
    """Indicator engine settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Indicator Engine"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"

    # Output formatting
    indicator_precision: int = Field(default=3, ge=0, le=12)

    # Request defaults
    default_timeframe: Timeframe = Timeframe.H1
    default_bars: int = Field(default=200, ge=1)

    # Warmup sizing (history fetched on top of the requested bars)
    warmup_buffer_ratio: float = Field(default=1.2, ge=1.0)
    default_warmup: int = Field(default=50, ge=0)

    # Ichimoku history trim margin, in candles
    history_margin: int = Field(default=10, ge=0)

    # Data provider
    max_data_points: int = Field(default=5000, ge=1)
    mock_seed: int = 42


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
