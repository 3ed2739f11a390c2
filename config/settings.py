"""
Configuration Settings

Centralized configuration management using Pydantic and environment variables.
"""
from typing import Dict, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All values can be overridden in the .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Appraisal district endpoints
    hays_cad_base_url: str = "https://esearch.hayscad.com"
    travis_cad_base_url: str = "https://stage.traviscad.org"
    williamson_cad_base_url: str = "https://www.wcad.org"

    # HTTP settings
    user_agent: str = "CentralTexas-Scraper/1.0"
    http_timeout_seconds: float = 30.0
    http_max_retries: int = 3
    backoff_base_ms: int = 1000
    backoff_max_ms: int = 30000

    # Session settings (cookie-based sources)
    session_ttl_minutes: int = 15

    # Rate limiting (defaults apply to any domain without an override)
    rate_limit_requests_per_second: float = 0.5
    rate_limit_window_ms: int = 2000
    rate_limit_domain_overrides: Dict[str, Dict[str, float]] = {
        "hayscad.com": {"requests_per_second": 0.5, "window_ms": 2000},
        "traviscad.org": {"requests_per_second": 0.5, "window_ms": 2000},
        "wcad.org": {"requests_per_second": 0.5, "window_ms": 2000},
    }

    # Geographic settings (Central Texas bounding box)
    region_min_latitude: float = 29.0
    region_max_latitude: float = 31.0
    region_min_longitude: float = -99.0
    region_max_longitude: float = -97.0
    default_state: str = "TX"

    # Ingestion settings
    batch_max_workers: int = 4
    tax_year: Optional[int] = None
    persist_invalid_records: bool = True

    # Database settings
    database_url: str = "sqlite:///data/cadharvest.db"
    database_echo: bool = False  # Set to True for SQL query logging

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"

    # Application settings
    environment: str = "development"


# Singleton instance
settings = Settings()
