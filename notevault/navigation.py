from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from .tree_model import ROOT, get_parent_paths, normalize_path
from .tree_sync import TreeSynchronizer

log = logging.getLogger(__name__)


class NavigationController:
    """Expand every ancestor of a target path, then select the target.

    ``wait_rendered`` is awaited with a path after it is loaded or opened, for
    rendering layers that materialise nodes asynchronously.
    """

    def __init__(self, sync: TreeSynchronizer,
                 wait_rendered: Callable[[str], Awaitable[None]] | None = None) -> None:
        self.sync = sync
        self.wait_rendered = wait_rendered

    async def _settle(self, path: str) -> None:
        if self.wait_rendered is not None:
            await self.wait_rendered(path)

    async def reveal(self, target: str) -> bool:
        """Returns True once ``target`` is selected; stops at the first failed ancestor."""
        target = normalize_path(target)
        if target == ROOT:
            return False
        if not await self.sync.ensure_loaded(ROOT):
            return False

        for folder in get_parent_paths(target)[:-1]:
            if not await self.sync.ensure_loaded(folder):
                log.info("navigation to %s stopped at %s", target, folder)
                return False
            await self._settle(folder)
            node = self.sync.find_node(folder)
            if node is None or not node.is_dir:
                log.info("navigation to %s stopped: %s is not a folder", target, folder)
                return False
            if not self.sync.is_open(folder):
                self.sync.open(folder)
                await self._settle(folder)

        if self.sync.find_node(target) is None:
            return False
        self.sync.select(target)
        return True
