"""Persist and restore the authenticated browser storage state."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from playwright.async_api import BrowserContext

from ..config import SESSION_PATH

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class SessionStore:
    """A single Playwright ``storage_state`` file bound to one account.

    The file only says a session existed at some point. Whether the site
    still accepts it is decided by the auth probe.
    """

    def __init__(self, path: Path | str = SESSION_PATH):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def context_options(self) -> dict:
        """Keyword arguments for ``browser.new_context`` to restore the session."""
        if self.exists():
            return {"storage_state": str(self.path)}
        return {}

    async def save(self, context: BrowserContext) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        await context.storage_state(path=str(self.path))
        logger.info(f"[STORE] Session saved to {self.path}")
        return self.path

    def cookie_count(self) -> int:
        if not self.exists():
            return 0
        try:
            state = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"[STORE] Could not read {self.path}: {e}")
            return 0
        return len(state.get("cookies", [])) if isinstance(state, dict) else 0

    def saved_at(self) -> Optional[str]:
        if not self.exists():
            return None
        mtime = self.path.stat().st_mtime
        return datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat()
