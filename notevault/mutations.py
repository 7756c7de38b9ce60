"""Optimistic structural edits to the file tree, reconciled with the server."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .errors import Conflict, InvalidPath, VaultError
from .tree_model import (
    ROOT,
    base_name,
    build_renamed_path,
    is_same_or_descendant,
    join_path,
    normalize_path,
    parent_path,
    rebase_path,
)
from .tree_sync import TreeSynchronizer

log = logging.getLogger(__name__)


class MutationCoordinator:
    """Apply rename/move/create/delete to the cache and the server.

    Every optimistic change records a pre-image of the cache listings and the
    view state it touches; a rejected request restores it. ``on_navigate`` is
    called with the path the editor should switch to when the selected file
    is renamed, moved or deleted.
    """

    def __init__(self, sync: TreeSynchronizer,
                 on_navigate: Callable[[str], None] | None = None) -> None:
        self.sync = sync
        self.on_navigate = on_navigate

    @property
    def cache(self):
        return self.sync.cache

    @property
    def provider(self):
        return self.sync.provider

    def _navigate(self, path: str) -> None:
        if self.on_navigate is not None:
            self.on_navigate(path)

    def _pre_image(self, old_path: str, new_path: str | None = None, *extra: str):
        keys = self.cache.affected_keys(old_path) | set(extra)
        if new_path is not None:
            keys |= {rebase_path(k, old_path, new_path)
                     for k in keys if is_same_or_descendant(k, old_path)}
        view = (set(self.sync.open_folders), self.sync.selected, self.sync.focused)
        return self.cache.checkpoint(keys), view

    def _rollback(self, pre_image) -> None:
        listings, (open_folders, selected, focused) = pre_image
        self.cache.restore(listings)
        self.sync.open_folders = open_folders
        self.sync.selected, self.sync.focused = selected, focused

    def _follow(self, old_path: str, new_path: str, selected: str | None) -> None:
        if selected and is_same_or_descendant(selected, old_path):
            self._navigate(rebase_path(selected, old_path, new_path))

    async def rename(self, old_path: str, new_name: str) -> str | None:
        old_path = normalize_path(old_path)
        node = self.cache.find(old_path)
        new_path = build_renamed_path(old_path, new_name, is_dir=bool(node and node.is_dir))
        if new_path == old_path:
            return new_path

        selected = self.sync.selected
        pre_image = self._pre_image(old_path, new_path)
        self.cache.rename(old_path, new_name)
        self.sync.rebase_view(old_path, new_path)
        try:
            await self.provider.rename_entry(old_path, new_path)
        except VaultError as exc:
            log.info("rename %s -> %s rejected, rolling back", old_path, new_path)
            self._rollback(pre_image)
            self.sync.report_error(old_path, exc, f"Failed to rename: {exc.message}")
            return None
        self._follow(old_path, new_path, selected)
        return new_path

    async def move(self, source_path: str, destination_parent: str,
                   new_name: str | None = None) -> str | None:
        source = normalize_path(source_path)
        destination = normalize_path(destination_parent)
        name = new_name or base_name(source)
        if source == ROOT or is_same_or_descendant(destination, source):
            self.sync.report_error(source, Conflict("Cannot move a folder into itself"),
                                   "Cannot move a folder into itself or one of its subfolders")
            return None
        new_path = join_path(destination, name)
        if new_path == source:
            return source

        old_parent = parent_path(source)
        selected = self.sync.selected
        pre_image = self._pre_image(source, new_path, old_parent, destination)
        self.cache.move(source, new_path)
        self.sync.rebase_view(source, new_path)
        try:
            await self.provider.move_entry(source, destination, name)
        except VaultError as exc:
            log.info("move %s -> %s rejected, rolling back", source, new_path)
            self._rollback(pre_image)
            self.sync.report_error(source, exc, f"Failed to move: {exc.message}")
            await self.sync.refresh_root()
            return None

        await asyncio.gather(*(self.sync.refresh_path(p) for p in {old_parent, destination}))
        self._follow(source, new_path, selected)
        return new_path

    async def create_file(self, parent: str, name: str, content: str = "") -> str | None:
        parent = normalize_path(parent)
        try:
            path = await self.provider.create_file(join_path(parent, name), content)
        except VaultError as exc:
            self.sync.report_error(parent, exc, f"Failed to create file: {exc.message}")
            return None
        await self.sync.refresh_path(parent)
        return normalize_path(path)

    async def create_folder(self, parent: str, name: str) -> str | None:
        parent = normalize_path(parent)
        try:
            path = await self.provider.create_folder(join_path(parent, name.strip()))
        except VaultError as exc:
            self.sync.report_error(parent, exc, f"Failed to create folder: {exc.message}")
            return None
        await self.sync.refresh_path(parent)
        return normalize_path(path)

    async def delete(self, path: str) -> bool:
        path = normalize_path(path)
        if path == ROOT:
            self.sync.report_error(path, InvalidPath("Cannot delete the vault root"),
                                   "Cannot delete the vault root")
            return False
        parent = parent_path(path)
        selected = self.sync.selected
        pre_image = self._pre_image(path)
        self.cache.remove(path)
        try:
            await self.provider.delete_entry(path)
        except VaultError as exc:
            log.info("delete %s rejected, rolling back", path)
            self._rollback(pre_image)
            self.sync.report_error(path, exc, f"Failed to delete: {exc.message}")
            return False

        self.sync.open_folders = {p for p in self.sync.open_folders
                                  if not is_same_or_descendant(p, path)}
        await self.sync.refresh_path(parent)
        if selected and is_same_or_descendant(selected, path):
            self.sync.select(None)
            self._navigate(parent)
        return True
