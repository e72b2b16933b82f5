"""MCP tools for managing the D&D Beyond browser session."""

from __future__ import annotations

import httpx
from mcp.server.fastmcp.exceptions import ToolError

from ..config import LOGIN_TIMEOUT, SESSION_MANAGER_URL

# Login blocks while the user signs in, so it gets the redirect ceiling plus slack
LOGIN_CALL_TIMEOUT = LOGIN_TIMEOUT + 60.0
DEFAULT_CALL_TIMEOUT = 120.0


async def _call_session_manager(
    method: str,
    path: str,
    json_body: dict | None = None,
    timeout: float = DEFAULT_CALL_TIMEOUT,
) -> dict:
    """Make a request to the session manager HTTP service."""
    url = f"{SESSION_MANAGER_URL}{path}"
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            if method == "GET":
                resp = await client.get(url)
            else:
                resp = await client.post(url, json=json_body or {})

            if resp.status_code >= 400:
                try:
                    data = resp.json()
                except ValueError:
                    data = {}
                return {
                    "error": data.get("error", f"HTTP {resp.status_code}"),
                    "kind": data.get("kind", ""),
                }
            return resp.json()

    except httpx.ConnectError:
        return {
            "error": "Session Manager is not reachable at "
            f"{SESSION_MANAGER_URL}. It should auto-start with the MCP server. "
            "If running standalone: python -m dndbeyond_mcp.session_manager"
        }
    except httpx.TimeoutException:
        return {"error": "Session Manager timed out. The browser may still be loading."}
    except Exception as e:
        return {"error": f"Failed to connect to Session Manager: {e}"}


async def call_tool(prefix: str, path: str, json_body: dict | None = None, timeout: float = DEFAULT_CALL_TIMEOUT) -> str:
    """POST to the session manager and return its text, or raise ``ToolError``."""
    result = await _call_session_manager("POST", path, json_body, timeout=timeout)
    if "error" in result:
        raise ToolError(f"{prefix}: {result['error']}")
    return result.get("text", "")


async def login() -> str:
    """Log in to D&D Beyond.

    Opens the login page in the visible browser window and waits (up to
    three minutes) for the user to finish signing in. If the saved
    session is still valid, returns immediately without opening the
    login page. The session is saved to disk on success.

    Returns:
        Login status message.
    """
    return await call_tool("Login failed", "/login", timeout=LOGIN_CALL_TIMEOUT)


async def cancel_login() -> str:
    """Abort a login that is waiting for the user to sign in."""
    return await call_tool("Failed to cancel login", "/login/cancel")


async def session_status() -> str:
    """Report whether the browser is running and the session is signed in.

    Returns:
        JSON-formatted session status.
    """
    result = await _call_session_manager("GET", "/status")

    if "error" in result:
        raise ToolError(f"Failed to get session status: {result['error']}")

    return result.get("text", "")


async def close_browser() -> str:
    """Close the browser. The saved session stays on disk for next time."""
    return await call_tool("Failed to close browser", "/close")
