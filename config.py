"""
Central configuration — reads from .env file.

Every component takes these values as constructor defaults, so tests and
callers can override a single setting without touching the environment.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ── Catalog (Open Food Facts) ─────────────────────────────────────────────────
# v2 API: GET {base}/product/{barcode}.json and GET {base}/search
CATALOG_BASE_URL: str   = os.getenv("CATALOG_BASE_URL", "https://world.openfoodfacts.org/api/v2").rstrip("/")
# Open Food Facts asks every client to identify itself
CATALOG_USER_AGENT: str = os.getenv("CATALOG_USER_AGENT", "labelcheck/0.1")

# ── Resilience ────────────────────────────────────────────────────────────────
CACHE_TTL_SECS: float        = float(os.getenv("CACHE_TTL_SECS", "300"))
REQUEST_TIMEOUT_SECS: float  = float(os.getenv("REQUEST_TIMEOUT_SECS", "10"))
MAX_RETRIES: int             = int(os.getenv("MAX_RETRIES", "3"))
# Backoff between attempts is RETRY_BASE_DELAY_SECS * 2^n → 1s, 2s, 4s
RETRY_BASE_DELAY_SECS: float = float(os.getenv("RETRY_BASE_DELAY_SECS", "1.0"))

# ── Connectivity gate ─────────────────────────────────────────────────────────
# CONNECTIVITY_CHECK=false skips the DNS probe and assumes we're online.
# FORCE_OFFLINE=true makes every uncached lookup fail fast with OfflineError.
CONNECTIVITY_CHECK: bool         = os.getenv("CONNECTIVITY_CHECK", "true").lower() == "true"
FORCE_OFFLINE: bool              = os.getenv("FORCE_OFFLINE", "false").lower() == "true"
CONNECTIVITY_TIMEOUT_SECS: float = float(os.getenv("CONNECTIVITY_TIMEOUT_SECS", "3"))

# ── Search ────────────────────────────────────────────────────────────────────
SEARCH_PAGE_SIZE: int = int(os.getenv("SEARCH_PAGE_SIZE", "20"))

# ── Health-condition rules ────────────────────────────────────────────────────
_BUNDLED_CONDITIONS = Path(__file__).parent / "rules" / "health_conditions.json"
CONDITIONS_FILE: str = os.getenv("CONDITIONS_FILE", "").strip() or str(_BUNDLED_CONDITIONS)

# Comma-separated condition ids used when the CLI gets no -c flags,
# e.g. "diabetes,heart_disease". Empty → general healthy eating.
DEFAULT_CONDITIONS: list[str] = [
    x.strip()
    for x in os.getenv("DEFAULT_CONDITIONS", "").split(",")
    if x.strip()
]

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_FILE: str | None = os.getenv("LOG_FILE", "").strip() or None
