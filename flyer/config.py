"""Configuration and constants for the flyer builder."""

import os
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv

__all__ = [
    "PROJECT_ROOT",
    "HIERARCHY_PATH",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "STORAGE_BUCKET",
    "STORAGE_BACKEND",
    "LOCAL_STORAGE_ROOT",
    "REQUEST_TIMEOUT",
    "MAX_SAVE_ATTEMPTS",
    "COUNTRY_FILES",
    "STORAGE_ROOT_PREFIX",
    "UNASSIGNED_SHOP",
    "DEFAULT_FILE_STEM",
    "UNIT_OPTIONS",
    "FLASK_HOST",
    "FLASK_PORT",
    "FLASK_DEBUG",
]

# Determine project root (parent of 'flyer' directory)
_THIS_DIR = Path(__file__).parent
PROJECT_ROOT = _THIS_DIR.parent

# Load environment variables from .env file (explicitly specify path)
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")

# Hierarchy template (category -> subcategory -> placement tree)
HIERARCHY_PATH = os.getenv("HIERARCHY_PATH", str(_THIS_DIR / "data" / "hierarchy.json"))

# Supabase storage. The public URL variable is accepted as a fallback so the
# same .env works for the browser build and the server.
SUPABASE_URL = os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "cap-data")

# "supabase" or "local"
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "supabase").lower()
LOCAL_STORAGE_ROOT = os.getenv("LOCAL_STORAGE_ROOT", str(PROJECT_ROOT / "public" / "data"))

# Request timeouts (seconds) for storage calls
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "15"))

# How many file names to try before a create-only save gives up
MAX_SAVE_ATTEMPTS = int(os.getenv("MAX_SAVE_ATTEMPTS", "20"))

# Master catalog file per country code
COUNTRY_FILES: Dict[str, str] = {
    "sk": "slovakia",
    "cz": "czechia",
    "pl": "poland",
}

# Object layout inside the bucket
STORAGE_ROOT_PREFIX = "databazy"
UNASSIGNED_SHOP = "nezaradene"
DEFAULT_FILE_STEM = "letak"

UNIT_OPTIONS: List[str] = ["g", "kg", "ml", "l", "ks", "bal"]

# Flask app settings (allow env overrides; default debug off for safety)
# Render sets PORT dynamically; fall back to FLASK_PORT or 5000 for local.
FLASK_HOST = os.getenv("FLASK_HOST", "0.0.0.0")
FLASK_PORT = int(os.getenv("FLASK_PORT", os.getenv("PORT", "5000")))
FLASK_DEBUG = os.getenv("FLASK_DEBUG", "False").lower() == "true"
