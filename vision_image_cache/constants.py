"""
Vision Image Cache Global Constants

Centralized location for all system-wide constants used across the application.
"""

from datetime import datetime, timezone

# Sentinel returned by the resolution pipeline when no strategy produced an image
UNRESOLVED_PAYLOAD = ""

# Inline payload prefix (data URI)
DATA_URI_PREFIX = "data:"

# Durable cache defaults
DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_TRANSIENT_CAPACITY = 100

# Network defaults
DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0
DEFAULT_FALLBACK_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

# Preload defaults
DEFAULT_BATCH_SIZE = 15
DEFAULT_BATCH_DELAY_SECONDS = 0.05


# Timestamp Functions
def get_current_timestamp() -> datetime:
    """Get current timestamp with UTC timezone.

    Returns:
        datetime: Current UTC timestamp

    Note: Use this function instead of a constant to get real-time timestamps.
    """
    return datetime.now(timezone.utc)


# Application Constants
APP_NAME = "Vision Image Cache"
APP_VERSION = "1.0.0"
