"""
Application configuration using pydantic-settings.

Loads configuration from environment variables with sensible defaults.
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGERLENS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Line tokenizer
    min_line_length: int = 4
    max_code_length: int = 20
    max_scan_values: int = 4

    # Validation tolerances (currency units)
    balance_tolerance: float = 1.0
    inversion_tolerance: float = 0.01

    # Hierarchy confidence fallback
    flat_fallback_ratio: float = 0.10
    flat_fallback_min_rows: int = 5

    # Keyword tables (None = packaged ledger_keywords.yaml)
    keywords_path: Optional[Path] = None

    # API limits
    max_lines_per_document: int = 20_000
    batch_concurrency: int = 4


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
