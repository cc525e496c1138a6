"""Configuration for the Zulip bot runtime."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


def _get_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent
LOGS_DIR = Path(os.getenv("LOGS_DIR", str(BASE_DIR / "logs")))
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
BETTERSTACK_SOURCE_TOKEN = os.getenv("BETTERSTACK_SOURCE_TOKEN")
BETTERSTACK_INGEST_HOST = os.getenv("BETTERSTACK_INGEST_HOST")

# Zulip credentials
ZULIP_EMAIL = os.getenv("ZULIP_EMAIL")
ZULIP_API_KEY = os.getenv("ZULIP_API_KEY")
ZULIP_API_URL = os.getenv("ZULIP_API_URL", "https://api.zulip.com/v1").rstrip("/")

# Event queue registration
EVENT_TYPES = [t.strip() for t in os.getenv("EVENT_TYPES", "message,presence").split(",") if t.strip()]
APPLY_MARKDOWN = _get_bool("APPLY_MARKDOWN")

# HTTP settings
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "30"))  # seconds for ordinary calls
LONG_POLL_TIMEOUT = int(os.getenv("LONG_POLL_TIMEOUT", "600"))  # seconds for blocking event fetches
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))  # 429 retries per request
MAX_RETRY_WAIT = float(os.getenv("MAX_RETRY_WAIT", "5"))  # upper bound on a single Retry-After wait

# Poll loop
POLL_FALLBACK_INTERVAL = int(os.getenv("POLL_FALLBACK_INTERVAL", "1"))  # used when no rate limit header
ERROR_BACKOFF_SECONDS = float(os.getenv("ERROR_BACKOFF_SECONDS", "1"))
DEREGISTER_ON_STOP = _get_bool("DEREGISTER_ON_STOP", "true")

# Bot behaviour
BOT_AUTO_REPLY = _get_bool("BOT_AUTO_REPLY")


def validate_config():
    """Validate required configuration."""
    errors = []

    if not ZULIP_EMAIL:
        errors.append("ZULIP_EMAIL is required")

    if not ZULIP_API_KEY:
        errors.append("ZULIP_API_KEY is required")

    if not ZULIP_API_URL.startswith(("http://", "https://")):
        errors.append(f"ZULIP_API_URL must be an http(s) URL: {ZULIP_API_URL}")

    if not EVENT_TYPES:
        errors.append("EVENT_TYPES must name at least one event type")

    if POLL_FALLBACK_INTERVAL < 1:
        errors.append(f"POLL_FALLBACK_INTERVAL must be at least 1: {POLL_FALLBACK_INTERVAL}")

    if ERROR_BACKOFF_SECONDS < 0:
        errors.append(f"ERROR_BACKOFF_SECONDS must not be negative: {ERROR_BACKOFF_SECONDS}")

    if errors:
        raise ValueError("Config errors:\n  " + "\n  ".join(errors))
