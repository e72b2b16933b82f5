import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import test_utils

from dndbeyond_mcp.errors import (
    InvalidInput,
    LoginCancelled,
    LoginTimeout,
    NavigationTimeout,
    SessionBusy,
    Unauthenticated,
    UpstreamAPIFailure,
)
from dndbeyond_mcp.models.character import Character, CharacterList
from dndbeyond_mcp.models.library import BookContent
from dndbeyond_mcp.session_manager.manager import SessionManager, create_app, to_text

from conftest import FakePage, FakeRuntime


def _manager(store, make_auth, router=None, runtime=None):
    runtime = runtime or FakeRuntime(FakePage())
    return SessionManager(store=store, runtime=runtime, auth=make_auth(), router=router)


def test_to_text():
    assert to_text("plain") == "plain"
    assert json.loads(to_text({"data": {"id": 1}})) == {"data": {"id": 1}}

    listing = CharacterList(count=1, characters=[Character(name="Thorin", class_name="Fighter")])
    data = json.loads(to_text(listing))
    assert data["characters"][0] == {"name": "Thorin", "class": "Fighter"}

    book = BookContent(slug="phb", url="https://www.dndbeyond.com/sources/phb", text="Hello")
    assert to_text(book) == "# phb\nURL: https://www.dndbeyond.com/sources/phb\n\nHello"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, status",
    [
        (InvalidInput("bad"), 400),
        (Unauthenticated(), 401),
        (LoginCancelled("cancelled"), 409),
        (SessionBusy("login in progress"), 409),
        (UpstreamAPIFailure("API returned 500: oops", 500), 502),
        (NavigationTimeout("slow"), 504),
        (LoginTimeout("too slow"), 504),
        (RuntimeError("boom"), 500),
    ],
)
async def test_errors_map_to_status_codes(store, make_auth, error, status):
    router = MagicMock()
    router.list_characters = AsyncMock(side_effect=error)
    app = create_app(_manager(store, make_auth, router=router))

    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        resp = await client.post("/characters")
        body = await resp.json()

    assert resp.status == status
    assert body["kind"] == type(error).__name__
    assert body["error"]


@pytest.mark.asyncio
async def test_success_wraps_text(store, make_auth):
    router = MagicMock()
    router.get_character = AsyncMock(return_value={"success": True, "data": {"name": "Thorin"}})
    app = create_app(_manager(store, make_auth, router=router))

    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        resp = await client.post("/character", json={"character_id": "101", "fallback_scrape": True})
        body = await resp.json()

    assert resp.status == 200
    assert json.loads(body["text"])["data"]["name"] == "Thorin"
    router.get_character.assert_awaited_once_with("101", True)


@pytest.mark.asyncio
async def test_missing_parameter_is_invalid_input(store, make_auth):
    router = MagicMock()
    router.get_campaign = AsyncMock()
    app = create_app(_manager(store, make_auth, router=router))

    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        resp = await client.post("/campaign", json={})
        body = await resp.json()

    assert resp.status == 400
    assert body["kind"] == "InvalidInput"
    router.get_campaign.assert_not_called()


@pytest.mark.asyncio
async def test_malformed_body_is_invalid_input(store, make_auth):
    app = create_app(_manager(store, make_auth, router=MagicMock()))

    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        resp = await client.post("/search", data="{not json", headers={"Content-Type": "application/json"})

    assert resp.status == 400


@pytest.mark.asyncio
async def test_navigate_to_foreign_host_is_rejected_end_to_end(store, make_auth, make_router):
    router, page, runtime = make_router()
    app = create_app(_manager(store, make_auth, router=router, runtime=runtime))

    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        resp = await client.post("/navigate", json={"url": "https://evil.example.com/"})
        body = await resp.json()

    assert resp.status == 400
    assert body["kind"] == "InvalidInput"
    assert page.visited == []


@pytest.mark.asyncio
async def test_status_and_cancel_do_not_need_the_browser(store, make_auth):
    runtime = FakeRuntime(FakePage(url="https://www.dndbeyond.com/characters"))
    mgr = _manager(store, make_auth, runtime=runtime)
    app = create_app(mgr)

    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        status = await (await client.get("/status")).json()
        cancel = await (await client.post("/login/cancel")).json()

    assert status["status"]["browser_running"] is True
    assert status["status"]["auth_state"] == "unknown"
    assert status["status"]["current_url"] == "https://www.dndbeyond.com/characters"
    assert status["status"]["session_saved"] is False
    assert cancel["text"] == "No login in progress."


@pytest.mark.asyncio
async def test_app_cleanup_releases_browser(store, make_auth):
    runtime = FakeRuntime(FakePage())
    app = create_app(_manager(store, make_auth, runtime=runtime))

    async with test_utils.TestClient(test_utils.TestServer(app)):
        pass

    assert runtime.release_count == 1
