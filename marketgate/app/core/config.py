import json
import re
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate comma or whitespace separated hosts.
    if raw.startswith(("[", '"', "'")):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()
            if not raw or raw == "[]":
                return []
            if raw == "*":
                return ["*"]

    origins: list[str] = []
    for part in (p for p in re.split(r"[,\s]+", raw) if p):
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
        else:
            # Browsers send the scheme in Origin, so accept both.
            origins.append(f"http://{part}")
            origins.append(f"https://{part}")

    return list(dict.fromkeys(origins))


class Settings(BaseSettings):
    """Gateway settings loaded from environment variables or a .env file."""

    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # CoinGlass upstream
    coinglass_base_url: str = "https://open-api-v4.coinglass.com"
    coinglass_api_key: str = Field(default="", validation_alias="COINGLASS_API_KEY")
    coinglass_user_agent: str = "CryptoDashboard/1.0"
    upstream_default_exchange: str = "binance"
    upstream_cache_seconds: int = 60  # Identical queries inside this window are served from cache
    cache_stale_while_revalidate_seconds: int = 30

    # HTTP client, bounded so a slow upstream cannot hold requests forever
    httpx_timeout: float = 10.0
    httpx_connect_timeout: float = 5.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Rate limiting (Hobbyist plan quota)
    rate_limit_requests_per_minute: int = 30
    rate_limit_window_seconds: int = 60
    rate_limit_cleanup_interval_seconds: int = 300

    # Status used for the plan-limited fallback envelope
    plan_limited_status_code: int = 200

    # Inbound query defaults
    default_interval: str = "4h"
    default_limit: str = "100"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator(
        "rate_limit_requests_per_minute",
        "rate_limit_window_seconds",
        "rate_limit_cleanup_interval_seconds",
    )
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("httpx_timeout", "httpx_connect_timeout", "httpx_pool_timeout")
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("upstream_cache_seconds", "cache_stale_while_revalidate_seconds")
    @classmethod
    def validate_cache_window(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Cache windows cannot be negative")
        return v

    @field_validator("plan_limited_status_code")
    @classmethod
    def validate_plan_limited_status(cls, v: int) -> int:
        """Only 2xx and 4xx make sense for a client-renderable fallback."""
        if not (200 <= v < 300 or 400 <= v < 500):
            raise ValueError("plan_limited_status_code must be a 2xx or 4xx status")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


# Global settings instance
settings = Settings()
