"""
KV Pages - Configuration
All settings loaded from environment variables with sensible defaults.

The web app itself is stateless.  Pages live in whatever key-value backend
``KV_BACKEND`` selects; the in-memory backend is only meant for tests and
quick local runs.
"""

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
_ = load_dotenv()

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------
APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = int(os.getenv("APP_PORT", "8000"))
APP_ENV = os.getenv("APP_ENV", "development")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")

if APP_ENV == "production" and SECRET_KEY == "change-me-in-production":
    raise RuntimeError(
        "SECRET_KEY must be changed from the default value in production. "
        "Set the SECRET_KEY environment variable to a random secret."
    )

# ---------------------------------------------------------------------------
# Authentication (single shared password guarding the page list)
# ---------------------------------------------------------------------------
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")  # MUST be set in .env
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "auth")
# Session max age in seconds, default 7 days
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(60 * 60 * 24 * 7)))

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

# ---------------------------------------------------------------------------
# Logging (stdout only)
# ---------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------------
# Key-value backend
# ---------------------------------------------------------------------------
# memory | sqlite | cloudflare
KV_BACKEND = os.getenv("KV_BACKEND", "sqlite").lower()

KV_SQLITE_PATH = Path(
    os.getenv("KV_SQLITE_PATH", os.path.join(tempfile.gettempdir(), "kvpages.db"))
)

# Cloudflare Workers KV (REST API)
CF_API_BASE_URL = os.getenv(
    "CF_API_BASE_URL", "https://api.cloudflare.com/client/v4"
)
CF_ACCOUNT_ID = os.getenv("CF_ACCOUNT_ID", "")
CF_KV_NAMESPACE_ID = os.getenv("CF_KV_NAMESPACE_ID", "")
CF_API_TOKEN = os.getenv("CF_API_TOKEN", "")

# ---------------------------------------------------------------------------
# Upload limits
# ---------------------------------------------------------------------------
# Workers KV caps values at 25 MiB; base64 inflates payloads by a third.
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "18"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024

# ---------------------------------------------------------------------------
# Sync poller
# ---------------------------------------------------------------------------
# Remote host exposing /list and /{filename}.  Empty disables the poller.
SYNC_SOURCE_URL = os.getenv("SYNC_SOURCE_URL", "")
SYNC_LOCAL_DIR = Path(
    os.getenv("SYNC_LOCAL_DIR", os.path.join(tempfile.gettempdir(), "kvpages-sync"))
)
SYNC_INTERVAL = int(os.getenv("SYNC_INTERVAL", "60"))  # seconds
SYNC_LIST_PATH = os.getenv("SYNC_LIST_PATH", "/list")
