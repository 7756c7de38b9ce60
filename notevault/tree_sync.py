"""Fetch orchestration and view state for the lazily loaded file tree."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .errors import ServerError, VaultError
from .tree_cache import TreeCache
from .tree_model import ROOT, TreeNode, TreeProvider, is_same_or_descendant, normalize_path, rebase_path

log = logging.getLogger(__name__)

Listener = Callable[[str, str], None]


def tree_error_message(exc: VaultError) -> str:
    if exc.status_code in (401, 403):
        return "Authentication required. Please login."
    if isinstance(exc, ServerError):
        return "Server error. Please check if backend is running."
    return f"Failed to load files: {exc.message or 'Unknown error'}"


class TreeSynchronizer:
    """Gate folder fetches so each folder is fetched at most once at a time.

    Also owns what the tree view shows: which folders are open and which node
    is selected. Listeners receive ``(event, path)`` for ``loaded``, ``open``,
    ``close`` and ``select``.
    """

    def __init__(
        self,
        provider: TreeProvider,
        cache: TreeCache | None = None,
        *,
        depth: int = 1,
        on_error: Callable[[str, VaultError], None] | None = None,
    ) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else TreeCache()
        self.depth = max(1, depth)
        self.on_error = on_error
        self.errors: dict[str, str] = {}
        self.open_folders: set[str] = set()
        self.selected: str | None = None
        self.focused: str | None = None
        self._inflight: dict[str, asyncio.Task] = {}
        self._listeners: list[Listener] = []

    # -- events ----------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _emit(self, event: str, path: str) -> None:
        for listener in list(self._listeners):
            listener(event, path)

    @property
    def error(self) -> str | None:
        """Most recently reported message still outstanding.

        A fetch error stays until the same path loads; anything else stays
        until ``clear_error``.
        """
        return next(reversed(self.errors.values()), None)

    def clear_error(self, path: str | None = None) -> None:
        if path is None:
            self.errors.clear()
        else:
            self.errors.pop(normalize_path(path), None)

    def report_error(self, path: str, exc: VaultError, message: str | None = None) -> None:
        self.errors.pop(path, None)
        self.errors[path] = message or tree_error_message(exc)
        log.warning("tree operation on %s failed: %s", path, exc.message)
        if self.on_error is not None:
            self.on_error(path, exc)

    # -- fetching --------------------------------------------------------------

    def is_loading(self, path: str) -> bool:
        return normalize_path(path) in self._inflight

    def _start(self, path: str) -> asyncio.Task:
        self.cache.loading_folders.add(path)
        task = asyncio.ensure_future(self._fetch(path))
        self._inflight[path] = task
        return task

    async def _fetch(self, path: str) -> bool:
        try:
            entries = await self.provider.list_folder(path, self.depth)
            self.cache.merge(path, entries)
        except VaultError as exc:
            self.report_error(path, exc)
            return False
        finally:
            self.cache.loading_folders.discard(path)
            self._inflight.pop(path, None)
        self.errors.pop(path, None)
        self._emit("loaded", path)
        return True

    async def ensure_loaded(self, path: str) -> bool:
        """Load ``path`` unless it is cached; join a fetch already in flight.

        Returns True when the folder is loaded afterwards.
        """
        path = normalize_path(path)
        if self.cache.is_loaded(path):
            return True
        task = self._inflight.get(path) or self._start(path)
        return await asyncio.shield(task)

    async def refresh_path(self, path: str) -> bool:
        """Re-fetch ``path`` unconditionally, queued behind any fetch in flight."""
        path = normalize_path(path)
        pending = self._inflight.get(path)
        if pending is not None:
            await asyncio.wait([pending])
        task = self._inflight.get(path) or self._start(path)
        return await asyncio.shield(task)

    async def refresh_root(self) -> bool:
        return await self.refresh_path(ROOT)

    # -- view state --------------------------------------------------------------

    def snapshot(self) -> list[TreeNode]:
        return self.cache.build_snapshot()

    def find_node(self, path: str) -> TreeNode | None:
        """Locate ``path`` in the rendered snapshot."""
        path = normalize_path(path)
        stack = list(self.snapshot())
        while stack:
            node = stack.pop()
            if node.path == path:
                return node
            if node.children:
                stack.extend(node.children)
        return None

    def is_open(self, path: str) -> bool:
        return normalize_path(path) in self.open_folders

    def open(self, path: str) -> None:
        path = normalize_path(path)
        if path not in self.open_folders:
            self.open_folders.add(path)
            self._emit("open", path)

    def close(self, path: str) -> None:
        path = normalize_path(path)
        if path in self.open_folders:
            self.open_folders.discard(path)
            self._emit("close", path)

    async def toggle(self, path: str) -> bool:
        path = normalize_path(path)
        if self.is_open(path):
            self.close(path)
            return True
        self.open(path)
        return await self.ensure_loaded(path)

    def select(self, path: str | None) -> None:
        self.selected = self.focused = normalize_path(path) if path else None
        self._emit("select", self.selected or "")

    def rebase_view(self, old_path: str, new_path: str) -> None:
        self.open_folders = {
            rebase_path(p, old_path, new_path) if is_same_or_descendant(p, old_path) else p
            for p in self.open_folders
        }
        for attr in ("selected", "focused"):
            value = getattr(self, attr)
            if value and is_same_or_descendant(value, old_path):
                setattr(self, attr, rebase_path(value, old_path, new_path))

    def visible_rows(self) -> list[tuple[int, TreeNode]]:
        """Depth-first ``(depth, node)`` rows, descending only into open folders."""
        rows: list[tuple[int, TreeNode]] = []
        stack = [(0, node) for node in reversed(self.snapshot())]
        while stack:
            depth, node = stack.pop()
            rows.append((depth, node))
            if node.is_dir and node.path in self.open_folders and node.children:
                stack.extend((depth + 1, child) for child in reversed(node.children))
        return rows

    def folders_at_depth(self, depth: int) -> list[str]:
        return [node.path for d, node in self.visible_rows() if d == depth and node.is_dir]

    # -- bulk expand/collapse ------------------------------------------------------

    def collapse_all(self) -> None:
        for path in sorted(self.open_folders):
            self.close(path)

    async def _expand_levels(self, levels: int | None) -> None:
        depth = 0
        while levels is None or depth < levels:
            folders = self.folders_at_depth(depth)
            if not folders:
                break
            await asyncio.gather(*(self.ensure_loaded(p) for p in folders))
            for path in folders:
                self.open(path)
            depth += 1

    async def expand_to_level(self, levels: int) -> None:
        """Open every folder shallower than ``levels``, one depth at a time."""
        self.collapse_all()
        await self.ensure_loaded(ROOT)
        await self._expand_levels(max(0, levels))

    async def expand_all(self) -> None:
        await self.ensure_loaded(ROOT)
        await self._expand_levels(None)

    def reset(self) -> None:
        self.cache.clear()
        self.open_folders.clear()
        self.selected = self.focused = None
        self.errors.clear()
