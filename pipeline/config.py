"""
Runtime knobs for the discovery pipeline.

Values come from the environment (a local .env is honoured). Credentials for
individual integrations are read by the clients that need them.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


# Source fan-out
SOURCE_TIMEOUT_S = _env_float("SOURCE_TIMEOUT_S", 20.0)
SOURCE_PAGE_DELAY_S = _env_float("SOURCE_PAGE_DELAY_S", 1.0)
SOURCE_MAX_PAGES = _env_int("SOURCE_MAX_PAGES", 2)
SOURCE_PAGE_SIZE = _env_int("SOURCE_PAGE_SIZE", 25)
USER_AGENT = os.getenv("USER_AGENT", "Mozilla/5.0 (compatible; LeadFinder/1.0)")

# Enrichment
ANALYSIS_DELAY_S = _env_float("ANALYSIS_DELAY_S", 0.5)
OPENAI_TIMEOUT_S = _env_float("OPENAI_TIMEOUT_S", 30.0)

# Quota
DISCOVERY_MONTHLY_LIMIT = _env_int("DISCOVERY_MONTHLY_LIMIT", 100)
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
