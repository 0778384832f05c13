"""Configuration: environment loading and engine constants."""

import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_DIR = Path(__file__).resolve().parent.parent

load_dotenv(PROJECT_DIR / ".env")

# =============================================================================
# Catalog (booking API)
# =============================================================================

CATALOG_BASE_URL = os.getenv("CATALOG_BASE_URL", "").rstrip("/")
CATALOG_TOKEN = os.getenv("CATALOG_TOKEN", "").strip()
CATALOG_TIMEOUT = float(os.getenv("CATALOG_TIMEOUT", "10"))
CATALOG_READ_RETRIES = int(os.getenv("CATALOG_READ_RETRIES", "2"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# =============================================================================
# Dialogue engine
# =============================================================================

CONTEXT_TTL_SECONDS = 10 * 60
SLOT_LOOKAHEAD_DAYS = 5
MAX_SLOT_OPTIONS = 10
DISPLAY_LIMIT = 6
