import os
from pathlib import Path

from .constants import DATA_DIR, DB_FILE_NAME

BASE_DIR = Path(__file__).resolve().parent
DATA_PATH = BASE_DIR / DATA_DIR
DB_PATH = Path(os.environ.get("REFURB_DB_PATH", DATA_PATH / DB_FILE_NAME))

QUERY_TIMEOUT_SECONDS = float(os.environ.get("REFURB_QUERY_TIMEOUT", "30"))
ENGINE_MAX_WORKERS = int(os.environ.get("REFURB_MAX_WORKERS", "4"))

# Unset means insights come from the rule-based fallback only.
INSIGHTS_URL = os.environ.get("REFURB_INSIGHTS_URL") or None
INSIGHTS_TIMEOUT_SECONDS = float(os.environ.get("REFURB_INSIGHTS_TIMEOUT", "15"))

LOG_LEVEL = os.environ.get("REFURB_LOG_LEVEL", "INFO").upper()
