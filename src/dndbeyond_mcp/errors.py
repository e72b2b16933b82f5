"""Exceptions raised by the session engine.

Each class maps to one HTTP status at the Session Manager boundary
(see ``session_manager.manager``). An empty extraction is not an error:
parsers return zero-result records instead.
"""

from __future__ import annotations


class DDBError(Exception):
    """Base class for failures surfaced to the caller."""

    status = 500


class InvalidInput(DDBError):
    """Rejected before any navigation happens."""

    status = 400


class Unauthenticated(DDBError):
    """The session probe failed; the caller has to run ddb_login."""

    status = 401

    def __init__(self, message: str = "Not logged in. Please run ddb_login first."):
        super().__init__(message)


class NavigationTimeout(DDBError):
    """A single navigation or wait exceeded its timeout."""

    status = 504


class LoginTimeout(DDBError):
    status = 504


class LoginCancelled(DDBError):
    status = 409


class LoginFailed(DDBError):
    """The redirect settled but the landing page doesn't look signed in."""

    status = 500


class UpstreamAPIFailure(DDBError):
    """The character service returned a non-success response."""

    status = 502

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class SessionBusy(DDBError):
    """A login holds the browser while it waits on the user."""

    status = 409
