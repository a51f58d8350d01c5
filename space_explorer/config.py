"""Application settings loaded from environment variables.

Values come from (highest priority first):
1. OS environment variables
2. a local .env file
3. the defaults below
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Proxy configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Upstream
    nasa_api_key: SecretStr = SecretStr("DEMO_KEY")
    nasa_base_url: str = "https://api.nasa.gov"
    nasa_images_url: str = "https://images-api.nasa.gov"
    epic_archive_url: str = "https://epic.gsfc.nasa.gov/archive"
    upstream_timeout_seconds: float = 30.0

    # Server
    environment: Literal["development", "production"] = "development"
    host: str = "0.0.0.0"
    port: int = 5001
    cors_origins: str = "http://localhost:3000,http://localhost:5173"
    log_level: str = "INFO"

    # Rate limiting
    rate_limit_window_seconds: int = 60
    rate_limit_max_requests: int = 30
    nasa_rate_limit_max_requests: int = 10
    trust_proxy_headers: bool = False

    # Message fragments that mark an upstream failure as rate limiting
    rate_limit_indicators: List[str] = ["rate limit", "429", "too many requests"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _validate_cors_origins(cls, v):
        """Store origins as a comma-separated string."""
        if isinstance(v, list):
            return ",".join(v)
        return str(v) if v else ""

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    return Settings()
