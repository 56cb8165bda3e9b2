"""
Configuration for the Portaria front desk.

Everything is read from environment variables with sensible defaults, so the
same code runs against the in-memory backend in tests, a JSON file on a
single front-desk machine, or the hosted Supabase project in production.

Backends:
- STORE_BACKEND: "memory", "local" (JSON file) or "supabase"
- STORAGE_MODE: "memory", "local" (photos on disk), "supabase" (Storage
  bucket) or "r2"
"""

import os

# =============================================================================
# Backend selection
# =============================================================================

STORE_BACKEND = os.getenv("STORE_BACKEND", "local")
STORAGE_MODE = os.getenv("STORAGE_MODE", "local")

# Local backend paths
DATA_DIR = os.getenv("DATA_DIR", "data")
PHOTOS_DIR = os.getenv("PHOTOS_DIR", os.path.join(DATA_DIR, "photos"))
EVENT_LOG_DIR = os.getenv("EVENT_LOG_DIR", "logs")

# =============================================================================
# Supabase (database + Storage)
# =============================================================================

SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
PHOTOS_BUCKET = os.getenv("PHOTOS_BUCKET", "photos")

# Table names as created by the hosted schema
VISITORS_TABLE = "Visitor"
ACCESS_LOGS_TABLE = "AccessLog"

HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))

# =============================================================================
# Cloudflare R2 (optional photo storage)
# =============================================================================

R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID", "")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID", "")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY", "")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "")
R2_PUBLIC_URL = os.getenv("R2_PUBLIC_URL", "").rstrip("/")

# =============================================================================
# Workflow settings
# =============================================================================

# CPF has 11 digits once punctuation is stripped
MIN_NATIONAL_ID_LENGTH = int(os.getenv("MIN_NATIONAL_ID_LENGTH", "11"))

# Recent-entries list on the front-desk screen
RECENT_LOG_LIMIT = int(os.getenv("RECENT_LOG_LIMIT", "20"))
POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", "30"))


def is_supabase_configured() -> bool:
    """Check if the Supabase project URL and key are set."""
    return bool(SUPABASE_URL and SUPABASE_ANON_KEY)


def can_write_r2() -> bool:
    """Check if R2 write credentials are configured."""
    return bool(R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY and R2_BUCKET_NAME)
