import pytest

from dndbeyond_mcp.session_manager.challenge import is_challenge_page, wait_for_challenge_resolution
from dndbeyond_mcp.session_manager.store import SessionStore

from conftest import FakeContext, FakePage


def test_missing_session_file(tmp_path):
    store = SessionStore(tmp_path / "nope" / "session.json")

    assert not store.exists()
    assert store.context_options() == {}
    assert store.cookie_count() == 0
    assert store.saved_at() is None


@pytest.mark.asyncio
async def test_save_creates_directory_and_restores(tmp_path):
    store = SessionStore(tmp_path / "ddb-mcp" / "session.json")
    context = FakeContext(cookies=[{"name": "a"}, {"name": "b"}])

    path = await store.save(context)

    assert path == store.path
    assert store.exists()
    assert store.context_options() == {"storage_state": str(store.path)}
    assert store.cookie_count() == 2
    assert store.saved_at() is not None


def test_corrupt_session_file_counts_no_cookies(tmp_path):
    store = SessionStore(tmp_path / "session.json")
    store.path.write_text("{not json", encoding="utf-8")

    assert store.cookie_count() == 0


def test_challenge_page_detection():
    assert is_challenge_page("<html><head><title>Just a moment...</title></head></html>")
    assert is_challenge_page("<div id='challenge-form'></div>")
    # The beacon script ships on ordinary pages too
    ordinary = "<html><head><title>Spells</title><script src='/cdn-cgi/challenge-platform/x.js'></script></head></html>"
    assert not is_challenge_page(ordinary)


@pytest.mark.asyncio
async def test_challenge_wait_returns_immediately_without_challenge():
    page = FakePage(html="<html><head><title>Spells</title></head></html>")
    assert await wait_for_challenge_resolution(page, timeout=0.05, interval=0.01)


@pytest.mark.asyncio
async def test_challenge_wait_times_out():
    page = FakePage(html="<html><head><title>Just a moment...</title></head></html>")
    assert not await wait_for_challenge_resolution(page, timeout=0.05, interval=0.01)
