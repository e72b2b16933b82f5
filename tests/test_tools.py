from unittest.mock import AsyncMock, patch

import httpx
import pytest
from mcp.server.fastmcp.exceptions import ToolError

from dndbeyond_mcp.tools import (
    campaign_tools,
    character_tools,
    library_tools,
    navigation_tools,
    search_tools,
    session_tools,
)

NOT_LOGGED_IN = {"error": "Not logged in. Please run ddb_login first.", "kind": "Unauthenticated"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call, prefix",
    [
        (lambda: session_tools.login(), "Login failed"),
        (lambda: character_tools.list_characters(), "Failed to list characters"),
        (lambda: character_tools.get_character("101"), "Failed to get character"),
        (lambda: character_tools.download_character("101"), "Download failed"),
        (lambda: campaign_tools.get_campaign("555"), "Failed to get campaign"),
        (lambda: campaign_tools.list_campaigns(), "Failed to list campaigns"),
        (lambda: navigation_tools.navigate("https://www.dndbeyond.com/"), "Navigation failed"),
        (lambda: navigation_tools.interact("click", "#go"), "Interaction failed"),
        (lambda: navigation_tools.current_page(), "Failed to get page content"),
        (lambda: search_tools.search("Fireball", "spells"), "Search failed"),
        (lambda: library_tools.list_library(), "Failed to list library"),
        (lambda: library_tools.read_book("phb"), "Failed to read book"),
    ],
)
async def test_errors_raise_tool_error_with_operation_prefix(call, prefix):
    with patch.object(session_tools, "_call_session_manager", AsyncMock(return_value=NOT_LOGGED_IN)):
        with pytest.raises(ToolError) as excinfo:
            await call()

    assert str(excinfo.value) == f"{prefix}: Not logged in. Please run ddb_login first."


@pytest.mark.asyncio
async def test_success_returns_text():
    mock = AsyncMock(return_value={"text": '{"count": 1}'})
    with patch.object(session_tools, "_call_session_manager", mock):
        text = await search_tools.search("Fireball", "spells")

    assert text == '{"count": 1}'
    mock.assert_awaited_once_with(
        "POST", "/search", {"query": "Fireball", "category": "spells"}, timeout=session_tools.DEFAULT_CALL_TIMEOUT
    )


@pytest.mark.asyncio
async def test_login_waits_longer_than_the_redirect_ceiling():
    mock = AsyncMock(return_value={"text": "Already logged in."})
    with patch.object(session_tools, "_call_session_manager", mock):
        await session_tools.login()

    assert mock.await_args.kwargs["timeout"] > session_tools.LOGIN_TIMEOUT


@pytest.mark.asyncio
async def test_optional_arguments_are_only_sent_when_given():
    mock = AsyncMock(return_value={"text": "ok"})
    with patch.object(session_tools, "_call_session_manager", mock):
        await library_tools.read_book("phb")
        await library_tools.read_book("phb", "spells")
        await navigation_tools.interact("screenshot")

    bodies = [c.args[2] for c in mock.await_args_list]
    assert bodies[0] == {"book_slug": "phb"}
    assert bodies[1] == {"book_slug": "phb", "chapter_slug": "spells"}
    assert bodies[2] == {"action": "screenshot", "selector": ""}


@pytest.mark.asyncio
async def test_unreachable_session_manager_is_a_tool_error():
    with patch.object(httpx.AsyncClient, "post", AsyncMock(side_effect=httpx.ConnectError("refused"))):
        with pytest.raises(ToolError, match="^Failed to list library: Session Manager is not reachable"):
            await library_tools.list_library()


@pytest.mark.asyncio
async def test_session_status_uses_get():
    mock = AsyncMock(return_value={"text": '{"browser_running": false}'})
    with patch.object(session_tools, "_call_session_manager", mock):
        assert await session_tools.session_status() == '{"browser_running": false}'

    assert mock.await_args.args[:2] == ("GET", "/status")
