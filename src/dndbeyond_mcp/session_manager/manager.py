"""Session Manager HTTP service.

Runs as a lightweight local web server that bridges the MCP server
to the shared D&D Beyond browser. Owns the browser lifecycle, the
saved session and every operation that touches the page.

Endpoints:
    GET  /status             - Return session state (never blocks)
    POST /login              - Open the login page and wait for the redirect
    POST /login/cancel       - Abort a pending login
    POST /close              - Close the browser, keep the saved session
    POST /characters         - List the account's characters
    POST /character          - Character JSON (or scraped sheet)
    POST /character/download - Write character JSON to disk
    POST /campaign           - Campaign detail and roster
    POST /campaigns          - List the account's campaigns
    POST /navigate           - Open a dndbeyond.com URL and return its text
    POST /interact           - Click, fill or screenshot on the current page
    POST /current-page       - Text of the current page
    POST /search             - Search the site or a category listing
    POST /library            - List owned sourcebooks
    POST /book               - Read a sourcebook section
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Awaitable, Callable

from aiohttp import web
from pydantic import BaseModel

from ..config import BROWSER_ENGINE, BROWSER_HEADLESS, SESSION_MANAGER_HOST, SESSION_MANAGER_PORT, ensure_dirs
from ..errors import DDBError, InvalidInput
from .auth import AuthController
from .browser import BrowserRuntime
from .router import OperationRouter
from .store import SessionStore

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class SessionManager:
    """Owns the store, browser runtime, auth controller and router."""

    def __init__(
        self,
        store: SessionStore | None = None,
        runtime: BrowserRuntime | None = None,
        auth: AuthController | None = None,
        router: OperationRouter | None = None,
    ):
        self.store = store or SessionStore()
        self.runtime = runtime or BrowserRuntime(self.store, engine=BROWSER_ENGINE, headless=BROWSER_HEADLESS)
        self.auth = auth or AuthController(self.store)
        self.router = router or OperationRouter(self.runtime, self.auth)

    async def cleanup(self):
        """Release the browser. The saved session file stays on disk."""
        self.auth.cancel_login()
        await self.runtime.release()


# ── Responses ────────────────────────────────────────────────────────────────


def to_text(result: Any) -> str:
    """Serialize an operation result for the tool layer."""
    if isinstance(result, str):
        return result
    render = getattr(result, "render", None)
    if callable(render):
        return render()
    if isinstance(result, BaseModel):
        return result.model_dump_json(indent=2, exclude_none=True, by_alias=True)
    return json.dumps(result, indent=2)


def _error_response(error: Exception) -> web.Response:
    if isinstance(error, DDBError):
        status = error.status
        if status >= 500:
            logger.error(f"[SERVICE] {type(error).__name__}: {error}")
        else:
            logger.info(f"[SERVICE] {type(error).__name__}: {error}")
    else:
        status = 500
        logger.error(f"[SERVICE] Unexpected failure: {error}", exc_info=True)
    return web.json_response({"error": str(error) or type(error).__name__, "kind": type(error).__name__}, status=status)


async def _body(request: web.Request) -> dict:
    if not request.content_length:
        return {}
    try:
        body = await request.json()
    except ValueError as e:
        raise InvalidInput(f"Request body is not valid JSON: {e}") from e
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object.")
    return body


Operation = Callable[[SessionManager, dict], Awaitable[Any]]


def _endpoint(operation: Operation):
    """Wrap a router call in the JSON request/response protocol."""

    async def handler(request: web.Request) -> web.Response:
        mgr: SessionManager = request.app["manager"]
        try:
            body = await _body(request)
            result = await operation(mgr, body)
        except Exception as e:
            return _error_response(e)
        return web.json_response({"text": to_text(result)})

    return handler


def _required(body: dict, key: str) -> Any:
    value = body.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInput(f"'{key}' is required.")
    return value


# ── HTTP Handlers ────────────────────────────────────────────────────────────


async def handle_status(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    status = mgr.router.status(mgr.store)
    return web.json_response({"text": to_text(status), "status": status.model_dump()})


async def handle_cancel_login(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    if mgr.router.cancel_login():
        return web.json_response({"text": "Login cancelled."})
    return web.json_response({"text": "No login in progress."})


handle_login = _endpoint(lambda mgr, body: mgr.router.login())
handle_close = _endpoint(lambda mgr, body: mgr.router.close())
handle_list_characters = _endpoint(lambda mgr, body: mgr.router.list_characters())
handle_get_character = _endpoint(
    lambda mgr, body: mgr.router.get_character(
        _required(body, "character_id"), bool(body.get("fallback_scrape", False))
    )
)
handle_download_character = _endpoint(
    lambda mgr, body: mgr.router.download_character(_required(body, "character_id"), body.get("output_path"))
)
handle_get_campaign = _endpoint(lambda mgr, body: mgr.router.get_campaign(_required(body, "campaign_id")))
handle_list_campaigns = _endpoint(lambda mgr, body: mgr.router.list_campaigns())
handle_navigate = _endpoint(lambda mgr, body: mgr.router.navigate(_required(body, "url")))
handle_interact = _endpoint(
    lambda mgr, body: mgr.router.interact(
        _required(body, "action"), body.get("selector") or "", body.get("value")
    )
)
handle_current_page = _endpoint(lambda mgr, body: mgr.router.current_page())
handle_search = _endpoint(
    lambda mgr, body: mgr.router.search(_required(body, "query"), body.get("category") or "all")
)
handle_list_library = _endpoint(lambda mgr, body: mgr.router.list_library())
handle_read_book = _endpoint(
    lambda mgr, body: mgr.router.read_book(_required(body, "book_slug"), body.get("chapter_slug"))
)


# ── App Factory ──────────────────────────────────────────────────────────────


async def on_cleanup(app: web.Application):
    mgr: SessionManager = app["manager"]
    await mgr.cleanup()
    logger.info("Session Manager stopped.")


def create_app(manager: SessionManager | None = None) -> web.Application:
    app = web.Application()
    app["manager"] = manager or SessionManager()
    app.on_cleanup.append(on_cleanup)

    app.router.add_get("/status", handle_status)
    app.router.add_post("/login", handle_login)
    app.router.add_post("/login/cancel", handle_cancel_login)
    app.router.add_post("/close", handle_close)
    app.router.add_post("/characters", handle_list_characters)
    app.router.add_post("/character", handle_get_character)
    app.router.add_post("/character/download", handle_download_character)
    app.router.add_post("/campaign", handle_get_campaign)
    app.router.add_post("/campaigns", handle_list_campaigns)
    app.router.add_post("/navigate", handle_navigate)
    app.router.add_post("/interact", handle_interact)
    app.router.add_post("/current-page", handle_current_page)
    app.router.add_post("/search", handle_search)
    app.router.add_post("/library", handle_list_library)
    app.router.add_post("/book", handle_read_book)

    return app


def main():
    """Run the session manager as a standalone HTTP service."""
    ensure_dirs()
    app = create_app()
    logger.info(f"Session Manager starting on {SESSION_MANAGER_HOST}:{SESSION_MANAGER_PORT}")
    web.run_app(app, host=SESSION_MANAGER_HOST, port=SESSION_MANAGER_PORT, print=None)


if __name__ == "__main__":
    main()
