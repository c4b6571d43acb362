"""
Application configuration with environment variable support.
"""
from __future__ import annotations

import os
from types import MappingProxyType
from typing import Dict, Mapping

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Credentials and collaborator endpoints, read from env and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    X_BEARER_TOKEN: str = ""
    X_API_BASE_URL: str = "https://api.x.com"
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    HTTP_TIMEOUT_SECONDS: float = 15.0
    X_MAX_RETRIES: int = 1
    X_BACKOFF_SECONDS: float = 1.0
    PORT: int = 8000


settings = Settings()


def _get_env_float(key: str, default: float) -> float:
    """Get float value from environment variable with fallback."""
    try:
        return float(os.getenv(key, default))
    except (ValueError, TypeError):
        return default


def _get_env_int(key: str, default: int) -> int:
    """Get integer value from environment variable with fallback."""
    try:
        return int(os.getenv(key, default))
    except (ValueError, TypeError):
        return default


def _get_env_list(key: str, default: list[str], separator: str = ",") -> list[str]:
    """Get list value from environment variable with fallback."""
    value = os.getenv(key)
    if not value:
        return default
    return [item.strip() for item in value.split(separator) if item.strip()]


def _get_env_mapping(key: str, base: Dict[str, str]) -> Mapping[str, str]:
    """
    Merge `TICKER:value` pairs from an environment variable into a base table.

    Args:
        key: Environment variable name, e.g. TOKEN_PROJECT_NAMES_EXTRA
        base: Static default table

    Returns:
        Read-only mapping keyed by upper-cased ticker
    """
    merged = dict(base)
    for pair in _get_env_list(key, []):
        ticker, sep, value = pair.partition(":")
        if sep and ticker.strip() and value.strip():
            merged[ticker.strip().upper()] = value.strip()
    return MappingProxyType(merged)


# Search Settings
DEFAULT_MAX_POSTS: int = _get_env_int("DEFAULT_MAX_POSTS", 50)
SEARCH_MAX_RESULTS: int = _get_env_int("SEARCH_MAX_RESULTS", 100)

# Ranking Settings
COMPACT_TEXT_LENGTH: int = _get_env_int("COMPACT_TEXT_LENGTH", 220)
DEDUP_KEY_LENGTH: int = _get_env_int("DEDUP_KEY_LENGTH", 100)
# Once the selection holds AUTHOR_CAP_MIN_RESULTS posts, an author with
# AUTHOR_CAP accepted posts is skipped (backfill may still use them).
AUTHOR_CAP: int = _get_env_int("AUTHOR_CAP", 2)
AUTHOR_CAP_MIN_RESULTS: int = _get_env_int("AUTHOR_CAP_MIN_RESULTS", 6)

# Decision Settings
MIN_CONFIDENCE: float = _get_env_float("MIN_CONFIDENCE", 0.6)
MAX_COMPLETION_TOKENS: int = _get_env_int("MAX_COMPLETION_TOKENS", 400)

# Curated ticker tables. Only listed tickers get a project name or official
# account; nothing is guessed for unlisted tickers.
_DEFAULT_PROJECT_NAMES: Dict[str, str] = {
    "BTC": "Bitcoin",
    "ETH": "Ethereum",
    "SOL": "Solana",
    "LINK": "Chainlink",
    "VVV": "AskVenice",
    "HYPER": "HyperliquidX",
    "AAVE": "Aave",
}

_DEFAULT_OFFICIAL_HANDLES: Dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "LINK": "chainlink",
    "VVV": "AskVenice",
    "HYPER": "HyperliquidX",
    "AAVE": "aave",
}

TOKEN_PROJECT_NAMES: Mapping[str, str] = _get_env_mapping(
    "TOKEN_PROJECT_NAMES_EXTRA", _DEFAULT_PROJECT_NAMES
)
TOKEN_OFFICIAL_HANDLES: Mapping[str, str] = _get_env_mapping(
    "TOKEN_OFFICIAL_HANDLES_EXTRA", _DEFAULT_OFFICIAL_HANDLES
)

# CORS Configuration
CORS_ALLOW_ORIGINS: list[str] = _get_env_list("CORS_ALLOW_ORIGINS", ["*"])

# Logging Configuration
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv(
    "LOG_FORMAT",
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
