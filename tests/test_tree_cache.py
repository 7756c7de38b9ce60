"""
Tree cache tests: merge, rename, snapshot and pre-image restore.
"""

import pytest

from notevault.tree_cache import TreeCache
from notevault.tree_model import FolderState, TreeEntry


def entries(*specs):
    """``("/a", True)`` style tuples -> TreeEntry list."""
    return [TreeEntry(path, path.rsplit("/", 1)[-1], is_dir) for path, is_dir in specs]


def names(nodes):
    return [n.name for n in nodes]


@pytest.fixture
def cache():
    cache = TreeCache()
    cache.merge("/", entries(("/notes", True), ("/b.md", False), ("/A", True), ("/a.md", False)))
    cache.merge("/notes", entries(("/notes/todo.md", False), ("/notes/sub", True)))
    return cache


@pytest.mark.unit
class TestMerge:

    def test_get_children_unknown_is_none(self, cache):
        assert cache.get_children("/A") is None

    def test_root_items(self, cache):
        assert names(cache.root_items) == ["notes", "b.md", "A", "a.md"]
        assert set(cache.loaded_children) == {"/notes"}

    def test_merge_is_idempotent(self, cache):
        before = cache.build_snapshot()
        cache.merge("/notes", entries(("/notes/todo.md", False), ("/notes/sub", True)))
        assert cache.build_snapshot() == before

    def test_nested_children_warm_several_levels(self):
        cache = TreeCache()
        deep = TreeEntry("/x/y", "y", True, (TreeEntry("/x/y/z.md", "z.md", False),))
        cache.merge("/", [TreeEntry("/x", "x", True, (deep,))])
        assert names(cache.get_children("/x")) == ["y"]
        assert names(cache.get_children("/x/y")) == ["z.md"]
        assert cache.get_children("/x/y")[0].children is None

    def test_merge_replaces_listing_wholesale(self, cache):
        cache.merge("/notes", entries(("/notes/new.md", False)))
        assert names(cache.get_children("/notes")) == ["new.md"]

    def test_folder_states(self, cache):
        assert cache.folder_state("/notes") is FolderState.LOADED
        assert cache.folder_state("/A") is FolderState.NOT_LOADED
        cache.loading_folders.add("/A")
        assert cache.folder_state("/A") is FolderState.LOADING


@pytest.mark.unit
class TestSnapshot:

    def test_sorted_recursively(self, cache):
        snap = cache.build_snapshot()
        assert names(snap) == ["A", "notes", "a.md", "b.md"]
        notes = snap[1]
        assert names(notes.children) == ["sub", "todo.md"]

    def test_stub_and_empty_folder_are_distinguishable(self, cache):
        cache.merge("/A", [])
        snap = {n.path: n for n in cache.build_snapshot()}
        sub = [c for c in snap["/notes"].children if c.name == "sub"][0]
        assert snap["/A"].children == [] and snap["/A"].state is FolderState.LOADED
        assert sub.children == [] and sub.state is FolderState.NOT_LOADED

    def test_files_have_no_children(self, cache):
        snap = cache.build_snapshot()
        assert snap[-1].children is None
        assert snap[-1].state is None

    def test_snapshot_is_a_copy(self, cache):
        cache.build_snapshot()[1].name = "mutated"
        assert "mutated" not in names(cache.root_items)


@pytest.mark.unit
class TestRename:

    def test_rename_file_keeps_extension(self, cache):
        assert cache.rename("/notes/todo.md", "shopping") == "/notes/shopping.md"
        node = cache.find("/notes/shopping.md")
        assert node.name == "shopping.md"
        assert node.id == node.path
        assert cache.find("/notes/todo.md") is None

    def test_rename_folder_rekeys_loaded_descendants(self, cache):
        cache.merge("/notes/sub", entries(("/notes/sub/deep.md", False)))
        assert cache.rename("/notes", "journal") == "/journal"
        assert cache.get_children("/notes") is None
        assert [n.path for n in cache.get_children("/journal")] == ["/journal/todo.md", "/journal/sub"]
        assert [n.path for n in cache.get_children("/journal/sub")] == ["/journal/sub/deep.md"]

    def test_rename_does_not_reorder_listing(self, cache):
        cache.rename("/b.md", "zzz")
        assert names(cache.root_items) == ["notes", "zzz.md", "A", "a.md"]


@pytest.mark.unit
class TestStructuralEdits:

    def test_remove_drops_node_and_listings_below(self, cache):
        cache.merge("/notes/sub", entries(("/notes/sub/deep.md", False)))
        cache.remove("/notes")
        assert "notes" not in names(cache.root_items)
        assert cache.get_children("/notes") is None
        assert cache.get_children("/notes/sub") is None

    def test_move_carries_node_to_loaded_destination(self, cache):
        cache.merge("/A", [])
        cache.move("/notes/todo.md", "/A/todo.md")
        assert names(cache.get_children("/notes")) == ["sub"]
        assert [n.path for n in cache.get_children("/A")] == ["/A/todo.md"]

    def test_checkpoint_restore(self, cache):
        keys = cache.affected_keys("/notes")
        assert keys == {"/", "/notes"}
        pre = cache.checkpoint(keys | {"/journal"})
        cache.rename("/notes", "journal")
        cache.restore(pre)
        assert cache.get_children("/journal") is None
        assert names(cache.get_children("/notes")) == ["todo.md", "sub"]
        assert "notes" in names(cache.root_items)
