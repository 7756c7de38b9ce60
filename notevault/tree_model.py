"""Data types and path helpers shared by the client-side file tree."""

from __future__ import annotations

import enum
import locale
from dataclasses import dataclass, field
from typing import Protocol

ROOT = "/"


class FolderState(enum.Enum):
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"


@dataclass(frozen=True)
class TreeEntry:
    """One item of a folder listing as returned by the server."""

    path: str
    name: str
    is_dir: bool
    children: tuple[TreeEntry, ...] | None = None

    @classmethod
    def from_dict(cls, data: dict) -> TreeEntry:
        children = data.get("children")
        return cls(
            path=normalize_path(data["path"]),
            name=data["name"],
            is_dir=bool(data["isDir"]),
            children=None if children is None else tuple(cls.from_dict(c) for c in children),
        )


@dataclass
class TreeNode:
    """Cache-resident node. ``children`` is a list for folders, None for files."""

    id: str
    name: str
    path: str
    is_dir: bool
    children: list[TreeNode] | None = None
    state: FolderState | None = None

    @classmethod
    def from_entry(cls, entry: TreeEntry) -> TreeNode:
        return cls(
            id=entry.path,
            name=entry.name,
            path=entry.path,
            is_dir=entry.is_dir,
            children=[] if entry.is_dir else None,
            state=FolderState.NOT_LOADED if entry.is_dir else None,
        )

    def copy(self) -> TreeNode:
        return TreeNode(self.id, self.name, self.path, self.is_dir,
                        [] if self.is_dir else None, self.state)

    def rename_to(self, path: str) -> None:
        self.id = self.path = path
        self.name = base_name(path)


class TreeProvider(Protocol):
    """What the tree layer needs from the server."""

    async def list_folder(self, path: str, depth: int = 1) -> list[TreeEntry]: ...

    async def create_file(self, path: str, content: str = "") -> str: ...

    async def create_folder(self, path: str) -> str: ...

    async def rename_entry(self, old_path: str, new_path: str) -> None: ...

    async def move_entry(self, source_path: str, destination_parent_path: str,
                         new_name: str) -> None: ...

    async def delete_entry(self, path: str) -> None: ...


def normalize_path(path: str | None) -> str:
    if not path:
        return ROOT
    parts = [p for p in path.replace("\\", "/").split("/") if p and p != "."]
    return "/" + "/".join(parts)


def parent_path(path: str) -> str:
    path = normalize_path(path)
    head = path.rsplit("/", 1)[0]
    return head or ROOT


def base_name(path: str) -> str:
    return normalize_path(path).rsplit("/", 1)[-1]


def join_path(parent: str, name: str) -> str:
    return normalize_path(normalize_path(parent) + "/" + name)


def get_parent_paths(path: str) -> list[str]:
    """``/a/b/c.md`` -> ``["/a", "/a/b", "/a/b/c.md"]`` (leaf included)."""
    parts = [p for p in (path or "").split("/") if p]
    return ["/" + "/".join(parts[:i]) for i in range(1, len(parts) + 1)]


def is_same_or_descendant(path: str, ancestor: str) -> bool:
    path, ancestor = normalize_path(path), normalize_path(ancestor)
    if ancestor == ROOT:
        return True
    return path == ancestor or path.startswith(ancestor + "/")


def rebase_path(path: str, old_prefix: str, new_prefix: str) -> str:
    if path == old_prefix:
        return new_prefix
    return new_prefix + path[len(old_prefix):]


def split_extension(name: str) -> tuple[str, str]:
    # a leading dot marks a hidden file, not an extension
    dot = name.rfind(".")
    if dot <= 0:
        return name, ""
    return name[:dot], name[dot:]


def build_renamed_path(old_path: str, new_name: str, is_dir: bool = False) -> str:
    """Swap the base name of ``old_path`` for ``new_name``.

    Files keep their extension; typing it again does not duplicate it.
    """
    old_path = normalize_path(old_path)
    new_name = new_name.strip().strip("/")
    if is_dir:
        return join_path(parent_path(old_path), new_name)
    _, ext = split_extension(base_name(old_path))
    if ext and new_name.lower().endswith(ext.lower()) and len(new_name) > len(ext):
        new_name = new_name[:-len(ext)]
    return join_path(parent_path(old_path), new_name + ext)


def _name_key(name: str) -> str:
    return locale.strxfrm(name.casefold())


def sort_key(item) -> tuple:
    return (not item.is_dir, _name_key(item.name))


def sort_by_type_and_name(items):
    return sorted(items, key=sort_key)
