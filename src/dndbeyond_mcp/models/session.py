"""Pydantic models for session state."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class SessionStatus(BaseModel):
    """Current state of the browser session."""

    browser_running: bool = False
    auth_state: str = "unknown"  # unknown, checking, authenticated, unauthenticated
    session_saved: bool = False
    session_path: str = ""
    saved_at: Optional[str] = None
    cookie_count: int = 0
    current_url: Optional[str] = None
    login_in_progress: bool = False


class LoginResult(BaseModel):
    authenticated: bool = False
    already_authenticated: bool = False
    session_path: str = ""
    message: str = ""

    def render(self) -> str:
        if self.session_path:
            return f"{self.message}\nSession file: {self.session_path}"
        return self.message
