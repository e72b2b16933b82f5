"""Application configuration loaded from environment variables."""

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
SESSION_DIR = Path(os.getenv("DDB_SESSION_DIR", Path.home() / ".config" / "ddb-mcp"))
SESSION_PATH = Path(os.getenv("DDB_SESSION_PATH", SESSION_DIR / "session.json"))
DOWNLOAD_DIR = Path(os.getenv("DDB_DOWNLOAD_DIR", Path.home() / "Downloads"))
SCREENSHOT_DIR = Path(os.getenv("DDB_SCREENSHOT_DIR", tempfile.gettempdir()))

# Session manager
SESSION_MANAGER_HOST = os.getenv("SESSION_MANAGER_HOST", "127.0.0.1")
SESSION_MANAGER_PORT = int(os.getenv("SESSION_MANAGER_PORT", "8025"))
SESSION_MANAGER_URL = f"http://{SESSION_MANAGER_HOST}:{SESSION_MANAGER_PORT}"

# Browser
BROWSER_ENGINE = os.getenv("DDB_BROWSER_ENGINE", "chromium").lower()
BROWSER_HEADLESS = os.getenv("DDB_BROWSER_HEADLESS", "false").lower() == "true"
BROWSER_TIMEOUT = int(os.getenv("DDB_BROWSER_TIMEOUT", "30000"))

# Timeouts (ms) for individual navigations
PROBE_TIMEOUT = 15000
PAGE_TIMEOUT = BROWSER_TIMEOUT
BOOK_TIMEOUT = 45000
BOOK_RENDER_TIMEOUT = 15000

# Login redirect wait (seconds)
LOGIN_TIMEOUT = float(os.getenv("DDB_LOGIN_TIMEOUT", "180"))
LOGIN_POLL_INTERVAL = 2.0

# Settle delays (seconds) after navigation, for client-side rendering
PROBE_SETTLE = 2.0
PAGE_SETTLE = 2.0
SEARCH_SETTLE = 1.5
BOOK_SETTLE = 3.0

LOG_LEVEL = os.getenv("DDB_LOG_LEVEL", "INFO").upper()


def ensure_dirs():
    """Create required directories if they don't exist."""
    SESSION_PATH.parent.mkdir(parents=True, exist_ok=True)
    DOWNLOAD_DIR.mkdir(parents=True, exist_ok=True)
