import pytest

from notevault.errors import NotFound
from notevault.navigation import NavigationController
from notevault.tree_sync import TreeSynchronizer


@pytest.fixture
def sync(provider):
    return TreeSynchronizer(provider)


@pytest.fixture
def events(sync):
    recorded = []
    sync.subscribe(lambda event, path: recorded.append((event, path)))
    return recorded


@pytest.mark.asyncio
async def test_reveal_loads_and_opens_each_ancestor_in_order(sync, provider, events):
    await sync.ensure_loaded("/")
    provider.calls.clear()
    events.clear()

    nav = NavigationController(sync)
    assert await nav.reveal("/folder1/folder2/note.md") is True

    assert provider.listed() == ["/folder1", "/folder1/folder2"]
    assert events == [
        ("loaded", "/folder1"),
        ("open", "/folder1"),
        ("loaded", "/folder1/folder2"),
        ("open", "/folder1/folder2"),
        ("select", "/folder1/folder2/note.md"),
    ]
    assert sync.selected == sync.focused == "/folder1/folder2/note.md"


@pytest.mark.asyncio
async def test_reveal_loads_root_when_missing(sync, provider):
    nav = NavigationController(sync)
    assert await nav.reveal("/b.md") is True
    assert provider.listed() == ["/"]


@pytest.mark.asyncio
async def test_reveal_skips_loaded_and_open_ancestors(sync, provider, events):
    nav = NavigationController(sync)
    await nav.reveal("/folder1/folder2/note.md")
    provider.calls.clear()
    events.clear()

    assert await nav.reveal("/folder1/folder2/other.md") is True
    assert provider.listed() == []
    assert events == [("select", "/folder1/folder2/other.md")]


@pytest.mark.asyncio
async def test_reveal_stops_at_failing_ancestor(sync, provider):
    provider.fail["/folder1/folder2"] = NotFound()
    nav = NavigationController(sync)
    assert await nav.reveal("/folder1/folder2/note.md") is False
    # expanded as far as it got, nothing rolled back
    assert sync.is_open("/folder1")
    assert not sync.is_open("/folder1/folder2")
    assert sync.selected is None


@pytest.mark.asyncio
async def test_reveal_missing_leaf_selects_nothing(sync):
    nav = NavigationController(sync)
    assert await nav.reveal("/folder1/ghost.md") is False
    assert sync.is_open("/folder1")
    assert sync.selected is None


@pytest.mark.asyncio
async def test_wait_rendered_hook_runs_between_steps(sync, events):
    async def wait_rendered(path):
        events.append(("rendered", path))

    nav = NavigationController(sync, wait_rendered=wait_rendered)
    await nav.reveal("/folder1/a.md")
    assert events[-4:] == [
        ("rendered", "/folder1"),
        ("open", "/folder1"),
        ("rendered", "/folder1"),
        ("select", "/folder1/a.md"),
    ]
