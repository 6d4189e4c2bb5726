# pulse_feed/config/settings.py

"""Central configuration for the pulse_feed retailer pipeline."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_str(name: str, default: str | None = None) -> str | None:
    """Return a stripped env value, or *default* when unset/blank."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_float(name: str, default: float) -> float:
    """Parse a float env var, falling back to *default* on bad input."""
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if value != value or value in (float("inf"), float("-inf")):
        return default
    return value


def _env_int(name: str, default: int) -> int:
    """Parse an integer env var, falling back to *default*."""
    return int(_env_float(name, float(default)))


def _env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean env var (1/true/yes/on)."""
    raw = _env_str(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _env_optional_int(name: str) -> int | None:
    """Parse an optional positive integer env var (``None`` if unset)."""
    raw = _env_str(name)
    if raw is None:
        return None
    try:
        value = int(float(raw))
    except ValueError:
        return None
    return max(1, value)


class Settings:
    """Central configuration for the pulse_feed retailer pipeline."""

    # --- Retailer search provider ---
    SERPAPI_KEY: str | None = _env_str("SERPAPI_KEY")
    SERPAPI_ENDPOINT: str = _env_str(
        "SERPAPI_ENDPOINT", "https://serpapi.com/search.json"
    ) or "https://serpapi.com/search.json"
    RETAILER_TIMEOUT: float = _env_float("RETAILER_TIMEOUT", 8.0)
    USER_AGENT: str = "ProductPulseBot/1.0"

    # --- Lookup cache ---
    LOOKUP_CACHE_TTL: float = (
        max(0.0, _env_float("RETAIL_LOOKUP_CACHE_TTL_MS", 900_000.0))
        / 1000.0
    )                                   # Seconds
    LOOKUP_CACHE_SIZE: int = max(
        1, _env_int("RETAIL_LOOKUP_CACHE_SIZE", 256)
    )
    HOT_QUERY_CAPACITY: int = 50        # Tracked canonical keys

    # --- Enrichment ---
    CONFIDENCE_THRESHOLD: float = min(
        1.0,
        max(
            0.0,
            _env_float("RETAIL_LOOKUP_CONFIDENCE_THRESHOLD", 0.45),
        ),
    )
    MAX_RETAILER_LINKS: int = max(
        1, _env_int("RETAIL_LOOKUP_MAX_LINKS", 3)
    )
    LOOKUP_BUDGET: int | None = _env_optional_int(
        "RETAIL_LOOKUP_LIMIT"
    )                                   # None = one per product
    DEFAULT_LOOKUP_CONFIDENCE: float = 0.55

    # --- Generation ---
    MIN_RESULTS: int = 2
    MAX_RESULTS: int = 4
    AI_MAX_ATTEMPTS: int = max(1, _env_int("AI_MAX_ATTEMPTS", 2))

    # --- Media probing ---
    MEDIA_PROBE_TIMEOUT: float = (
        min(
            7000.0,
            max(500.0, _env_float("MEDIA_PROBE_TIMEOUT_MS", 2500.0)),
        )
        / 1000.0
    )                                   # Seconds

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json",
        "Accept-Language": "en-US,en;q=0.9",
        "User-Agent": USER_AGENT,
    }

    # --- Logging ---
    LOG_LEVEL: str = _env_str("PULSE_FEED_LOG_LEVEL", "DEBUG") or "DEBUG"
    LOG_METRIC_EVENTS: bool = _env_bool("PULSE_FEED_LOG_METRICS")

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = BASE_DIR / "logs"
