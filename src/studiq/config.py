# src/studiq/config.py
"""
Application settings, loaded from the environment and an optional `.env` file.

Cache sizing per data class lives next to the cache itself
(`studiq.infrastructure.cache.CACHE_PROFILES`); everything that differs between
deployments is read here.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment / DB
    ENV: str = Field(default="dev")
    DATABASE_URL: str = Field(default="sqlite:///./studiq.db")

    # Upstream market data (CoinGecko)
    COINGECKO_BASE_URL: str = "https://api.coingecko.com/api/v3"
    CRYPTO_API_KEY: str | None = None
    COINGECKO_MIN_INTERVAL_SECONDS: float = 6.0
    COINGECKO_TIMEOUT_SECONDS: float = 10.0

    # Markets endpoint consumed by the refresh coordinator
    MARKETS_API_URL: str = "http://localhost:8000/api/crypto/markets"
    MARKET_CACHE_TTL_SECONDS: float = 30.0
    MARKET_AUTO_REFRESH_SECONDS: float = 60.0
    MARKET_REQUEST_TIMEOUT_SECONDS: float = 15.0
    MARKET_DEFAULT_PER_PAGE: int = 25

    # Client-side storage key for the favourites list
    FAVORITES_STORAGE_KEY: str = "crypto-favorites"

    # Per-client limits on the public markets/prices endpoints
    RATE_LIMIT_WINDOW_SECONDS: float = 60.0
    RATE_LIMIT_MAX_REQUESTS: int = 10

    # API
    CORS_ORIGINS: str = "*"

    # Observability
    METRICS_ENABLED: bool = True


settings = Settings()
