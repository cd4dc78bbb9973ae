"""Configuration management using pydantic-settings."""
from typing import Dict, List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Row store
    database_url: str = "sqlite:///./city_explorer.db"
    database_echo: bool = False

    # Upstream provider credentials
    geocode_api_key: Optional[str] = None
    weather_api_key: Optional[str] = None
    eventbrite_api_key: Optional[str] = None
    movie_api_key: Optional[str] = None
    yelp_api_key: Optional[str] = None

    # Upstream request limits
    request_timeout_seconds: float = 10.0
    max_concurrent_requests: int = 10

    # Cache behaviour
    # Off by default: concurrent cold misses on one key each fetch independently
    coalesce_misses: bool = False
    ttl_overrides_seconds: Dict[str, int] = {}

    # Transport
    port: int = 3000
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
