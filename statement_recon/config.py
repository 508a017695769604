"""
Configuration management using Pydantic Settings.
All parameters are loaded from environment variables with sensible defaults.
"""

import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_BASE_PATH = Path(os.environ.get(
    "STATEMENT_RECON_BASE_PATH",
    Path.home() / ".statement_recon",
))
ENV_FILE_PATH = APP_BASE_PATH / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: str = Field(default="development")
    app_debug: bool = Field(default=False)
    app_log_level: str = Field(default="INFO")

    # Server
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)

    # Layout parser defaults (templates may override)
    default_template: str = Field(default="dbs_pdf_v1")
    default_row_tolerance: float = Field(default=5.0, gt=0)
    default_column_tolerance: float = Field(default=15.0, gt=0)

    # Transfer detection
    detect_date_tolerance_days: int = Field(default=1)
    detect_amount_tolerance_percent: float = Field(default=1.0)
    suggest_date_tolerance_days: int = Field(default=2)
    suggest_amount_tolerance_percent: float = Field(default=2.0)
    transfer_confidence_cap: float = Field(default=0.95)
    transfer_suggestion_limit: int = Field(default=5)
    transfer_keywords_version: str = Field(default="v1")

    # Categorization
    category_match_threshold: float = Field(default=0.7)

    # Storage
    log_dir: Path = Field(default=APP_BASE_PATH / "logs")
    reports_dir: Path = Field(default=APP_BASE_PATH / "reports")
    log_to_file: bool = Field(default=False)

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
