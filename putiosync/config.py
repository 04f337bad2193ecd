"""
Configuration settings for the put.io sync tool.
"""
import os
import tempfile
from pathlib import Path


def env_int(key: str, default: int) -> int:
    """Read an integer override from the environment."""
    value = os.environ.get(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {value!r}") from None


# Base directories
BASE_DIR = Path(os.environ.get("PUTIOSYNC_HOME", Path.home() / ".putiosync"))
LOG_DIR = BASE_DIR / "logs"

# Default files
LOG_FILE = LOG_DIR / "sync.log"

# put.io API settings
API_BASE_URL = "https://api.put.io/v2"
TOKEN_ENV_VAR = "PUT_IO_TOKEN"
TOKEN_HELP_URL = "https://app.put.io/settings/account"
PER_PAGE = 1000
REQUEST_TIMEOUT = 30  # Seconds, for listing and metadata calls

# Download settings
DOWNLOAD_CONCURRENCY = env_int("PUTIOSYNC_CONCURRENCY", 3)
DOWNLOAD_TIMEOUT = 60  # Seconds between bytes, not total transfer time
CHUNK_SIZE = 1024 * 1024

# Retry settings (byte fetches only, listing errors are never retried)
MAX_RETRIES = 3
RETRY_BACKOFF_FACTOR = 2  # For exponential backoff

# Staging area, each run gets a private directory below it
STAGING_ROOT = Path(
    os.environ.get("PUTIOSYNC_STAGING_DIR", Path(tempfile.gettempdir()) / "putiosync")
)
