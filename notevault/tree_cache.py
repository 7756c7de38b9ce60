"""In-memory, path-keyed partial mirror of the vault's directory tree."""

from __future__ import annotations

import copy
from collections.abc import Iterable

from .tree_model import (
    ROOT,
    FolderState,
    TreeEntry,
    TreeNode,
    build_renamed_path,
    is_same_or_descendant,
    normalize_path,
    parent_path,
    rebase_path,
    sort_by_type_and_name,
)


class TreeCache:
    """Folder path -> listing of direct children, for folders fetched so far.

    The root listing lives under ``"/"``. Listings are replaced wholesale by
    ``merge``; only renames touch nodes in place.
    """

    def __init__(self) -> None:
        self._listings: dict[str, list[TreeNode]] = {}
        self.loading_folders: set[str] = set()

    @property
    def root_items(self) -> list[TreeNode]:
        return self._listings.get(ROOT, [])

    @property
    def loaded_children(self) -> dict[str, list[TreeNode]]:
        return {path: nodes for path, nodes in self._listings.items() if path != ROOT}

    def get_children(self, path: str) -> list[TreeNode] | None:
        return self._listings.get(normalize_path(path))

    def is_loaded(self, path: str) -> bool:
        return normalize_path(path) in self._listings

    def folder_state(self, path: str) -> FolderState:
        path = normalize_path(path)
        if path in self.loading_folders:
            return FolderState.LOADING
        if path in self._listings:
            return FolderState.LOADED
        return FolderState.NOT_LOADED

    def clear(self) -> None:
        self._listings.clear()
        self.loading_folders.clear()

    def merge(self, path: str, entries: Iterable[TreeEntry]) -> None:
        """Store ``entries`` as the listing of ``path``.

        Entries that arrive with nested ``children`` (depth > 1 fetches) are
        stored as listings of their own paths too.
        """
        worklist = [(normalize_path(path), list(entries))]
        while worklist:
            folder, items = worklist.pop()
            self._listings[folder] = [TreeNode.from_entry(e) for e in items]
            for entry in items:
                if entry.is_dir and entry.children is not None:
                    worklist.append((entry.path, list(entry.children)))

    def find(self, path: str) -> TreeNode | None:
        path = normalize_path(path)
        for nodes in self._listings.values():
            for node in nodes:
                if node.path == path:
                    return node
        return None

    def rename(self, old_path: str, new_name: str) -> str:
        old_path = normalize_path(old_path)
        node = self.find(old_path)
        new_path = build_renamed_path(old_path, new_name, is_dir=bool(node and node.is_dir))
        self.relocate(old_path, new_path)
        return new_path

    def relocate(self, old_path: str, new_path: str) -> None:
        """Re-path every node at or below ``old_path``, listings included."""
        old_path, new_path = normalize_path(old_path), normalize_path(new_path)
        if old_path == new_path or old_path == ROOT:
            return
        relocated = {}
        for key, nodes in self._listings.items():
            for node in nodes:
                if is_same_or_descendant(node.path, old_path):
                    node.rename_to(rebase_path(node.path, old_path, new_path))
            if is_same_or_descendant(key, old_path):
                key = rebase_path(key, old_path, new_path)
            relocated[key] = nodes
        self._listings = relocated

    def move(self, old_path: str, new_path: str) -> None:
        """Relocate ``old_path`` and carry its node over to the new parent listing."""
        old_path, new_path = normalize_path(old_path), normalize_path(new_path)
        self.relocate(old_path, new_path)
        old_listing = self._listings.get(parent_path(old_path))
        moved = None
        if old_listing is not None:
            for node in old_listing:
                if node.path == new_path:
                    moved = node
            if parent_path(old_path) != parent_path(new_path):
                old_listing[:] = [n for n in old_listing if n.path != new_path]
        if moved is not None:
            self.insert(parent_path(new_path), moved)

    def remove(self, path: str) -> None:
        """Drop ``path`` from every listing, and the listings at or below it."""
        path = normalize_path(path)
        for key in list(self._listings):
            if is_same_or_descendant(key, path) and path != ROOT:
                del self._listings[key]
                continue
            self._listings[key] = [n for n in self._listings[key] if n.path != path]

    def insert(self, parent: str, node: TreeNode) -> bool:
        """Add ``node`` to the listing of ``parent`` if that listing is loaded."""
        listing = self._listings.get(normalize_path(parent))
        if listing is None:
            return False
        listing[:] = [n for n in listing if n.path != node.path]
        listing.append(node)
        return True

    # -- pre-images ----------------------------------------------------------

    def affected_keys(self, path: str) -> set[str]:
        """Listing keys whose contents change if ``path`` moves or disappears."""
        path = normalize_path(path)
        keys = set()
        for key, nodes in self._listings.items():
            if is_same_or_descendant(key, path) and path != ROOT:
                keys.add(key)
            elif any(is_same_or_descendant(n.path, path) for n in nodes):
                keys.add(key)
        return keys

    def checkpoint(self, keys: Iterable[str]) -> dict[str, list[TreeNode] | None]:
        return {
            key: copy.deepcopy(self._listings[key]) if key in self._listings else None
            for key in map(normalize_path, keys)
        }

    def restore(self, pre_image: dict[str, list[TreeNode] | None]) -> None:
        for key, nodes in pre_image.items():
            if nodes is None:
                self._listings.pop(key, None)
            else:
                self._listings[key] = nodes

    # -- rendering -----------------------------------------------------------

    def build_snapshot(self) -> list[TreeNode]:
        """Fully resolved, sorted copy of the known tree, starting at the root."""

        def resolve(nodes: list[TreeNode], seen: frozenset) -> list[TreeNode]:
            out = []
            for node in sort_by_type_and_name(nodes):
                item = node.copy()
                if node.is_dir:
                    item.state = self.folder_state(node.path)
                    listing = self._listings.get(node.path)
                    if listing is not None and node.path not in seen:
                        item.children = resolve(listing, seen | {node.path})
                out.append(item)
            return out

        return resolve(self.root_items, frozenset({ROOT}))
