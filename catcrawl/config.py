"""Configuration and constants for the category crawler.

Most values can be overridden through ``CATCRAWL_*`` environment variables,
also read from a local ``.env`` file.
"""

import os
from typing import Dict, FrozenSet, List

from dotenv import load_dotenv

__all__ = [
    "BASE_URL",
    "SOURCE_NAME",
    "DEFAULT_START_URLS",
    "HEADERS",
    "REQUEST_TIMEOUT",
    "MAX_CONCURRENCY",
    "MAX_RETRIES",
    "RETRY_BACKOFF_BASE",
    "MAX_RETRY_BACKOFF",
    "RETRY_STATUS_CODES",
    "MAX_REQUESTS_PER_CRAWL",
    "DELAY_MIN",
    "DELAY_MAX",
    "OUTPUT_DIR",
    "OUTPUT_FORMATS",
]

load_dotenv()  # Environment overrides from a local .env file


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


BASE_URL = os.getenv("CATCRAWL_BASE_URL", "https://www.thomann.de")
SOURCE_NAME = "Thomann"

# Main pages carrying the top-level category navigation
DEFAULT_START_URLS: List[str] = [
    f"{BASE_URL}/de/index.html",
]

HEADERS: Dict[str, str] = {
    "User-Agent": "catcrawl category discovery (+https://github.com/catcrawl/catcrawl)",
    "Accept-Language": "de-DE,de;q=0.9,en;q=0.5",
}

# Per-request timeout (seconds)
REQUEST_TIMEOUT = _env_float("CATCRAWL_REQUEST_TIMEOUT", 30.0)

# Worker pool size for in-flight fetches
MAX_CONCURRENCY = _env_int("CATCRAWL_MAX_CONCURRENCY", 5)

# Retry settings with exponential backoff
MAX_RETRIES = _env_int("CATCRAWL_MAX_RETRIES", 3)
RETRY_BACKOFF_BASE = 2.0  # 2^attempt seconds
MAX_RETRY_BACKOFF = 60.0
RETRY_STATUS_CODES: FrozenSet[int] = frozenset({429, 500, 502, 503, 504})

# Safety limit on requests enqueued in one run (seeds included)
MAX_REQUESTS_PER_CRAWL = _env_int("CATCRAWL_MAX_REQUESTS", 50)

# Polite delay after each successful fetch (seconds)
DELAY_MIN = _env_float("CATCRAWL_DELAY_MIN", 0.0)
DELAY_MAX = _env_float("CATCRAWL_DELAY_MAX", 0.0)

# Dataset exports
OUTPUT_DIR = os.getenv("CATCRAWL_OUTPUT_DIR", "data/datasets")
OUTPUT_FORMATS = ("json", "csv")
