"""
Centralized configuration management for the crypto analysis pipeline.

Configuration is layered the same way everywhere in the service:

Tier 1: Code Defaults (settings.py)
- Default values for endpoints, cache lifetimes and limits
- Version controlled, visible in PRs

Tier 2: Environment Variables (.env)
- Secrets and credentials (API keys)
- Can override any Tier 1 setting for local development

Example Override Pattern:
- Default in code: LLM BASE_URL = "http://localhost:1234/v1"
- Override in .env: LLM_BASE_URL=http://192.168.2.3:1234/v1

This module uses pydantic-settings to manage configuration from environment
variables and .env files, providing a structured and validated way to
access settings throughout the application.
"""
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """
    Configuration for the Language Model client.

    Any OpenAI-compatible chat completions server works (LM Studio, vLLM,
    OpenRouter, OpenAI itself).
    """
    model_config = SettingsConfigDict(env_prefix='LLM_')

    BASE_URL: str = "http://localhost:1234/v1"
    DEFAULT_MODEL: str = "meta-llama-3.1-8b-instruct"

    # Local servers ignore the key but the client refuses to start without one
    API_KEY: Optional[str] = None
    PLACEHOLDER_API_KEY: str = "not-needed"

    TIMEOUT_SECONDS: float = 60.0
    TEMPERATURE: Optional[float] = None


class DataSettings(BaseSettings):
    """
    Configuration for the exchange and news gateways.
    """
    model_config = SettingsConfigDict(env_prefix='DATA_')

    # Binance spot market data. Public endpoints allow 6000 request weight per
    # minute per IP; a klines call with limit <= 100 costs 1, <= 500 costs 2.
    BINANCE_BASE_URL: str = "https://api.binance.com/api/v3"
    QUOTE_ASSET: str = "USDT"
    CANDLE_LIMIT: int = 200
    TIMEFRAMES: List[str] = ["15m", "1h", "1d"]
    MARKET_CACHE_TTL_SECONDS: int = 300  # 5 minutes
    BINANCE_RATE_LIMIT: int = 20  # requests per second

    # CryptoCompare news. The free tier is limited to roughly 100k calls/month.
    NEWS_BASE_URL: str = "https://min-api.cryptocompare.com/data/v2/news/"
    NEWS_LANGUAGE: str = "EN"
    CRYPTOCOMPARE_API_KEY: Optional[str] = None
    NEWS_CACHE_TTL_SECONDS: int = 900  # 15 minutes
    NEWS_RATE_LIMIT: int = 50  # requests per minute

    REQUEST_TIMEOUT_SECONDS: float = 10.0

    @field_validator("CANDLE_LIMIT")
    @classmethod
    def _cap_candle_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("CANDLE_LIMIT must be positive")
        return min(value, 200)


class AnalysisSettings(BaseSettings):
    """
    Configuration for the sentiment and recommendation engines.
    """
    model_config = SettingsConfigDict(env_prefix='ANALYSIS_')

    SENTIMENT_CACHE_TTL_SECONDS: int = 900
    RECOMMENDATION_CACHE_TTL_SECONDS: int = 900
    CACHE_MAX_ENTRIES: int = 256
    MAX_HEADLINES: int = 20
    RECOMMENDATION_TIMEFRAMES: int = 5  # most recent timeframe entries sent to the model


class APISettings(BaseSettings):
    """
    Configuration for the FastAPI application.
    """
    model_config = SettingsConfigDict(env_prefix='API_')

    CORS_ALLOWED_ORIGINS: List[str] = ["*"]
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    PROBE_TIMEOUT_SECONDS: float = 5.0


class Settings(BaseSettings):
    """
    Main settings object that aggregates all other settings.
    """
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    llm: LLMSettings = LLMSettings()
    data: DataSettings = DataSettings()
    analysis: AnalysisSettings = AnalysisSettings()
    api: APISettings = APISettings()

    LOG_LEVEL: str = "INFO"


settings = Settings()
