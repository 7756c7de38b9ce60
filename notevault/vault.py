import logging
import os
import re
import shutil
import tempfile
import time
from pathlib import Path

from werkzeug.security import safe_join

from .errors import BadRequest, Conflict, InvalidPath, NotFound, ServerError

log = logging.getLogger(__name__)

_TASK_RE = re.compile(r"^(\s*[-*+]\s+\[)([ xX])(\]\s+)(.*?)\s*$")


def atomic_write(target: Path, text: str) -> None:
    """Write ``text`` to ``target`` through a sibling temp file and ``os.replace``.

    Readers see either the old file or the new one, never a partial write.
    """
    fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        os.replace(tmp, target)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


class Vault:

    def __init__(self, root, excluded_dirs=(), index_ttl: float = 600):
        self.root = Path(root).resolve()
        self.excluded_dirs = set(excluded_dirs)
        self.index_ttl = index_ttl
        self._index_cache: dict = {"entries": None, "ts": 0.0}

    # -- paths -------------------------------------------------------------

    def safe_path(self, raw_path: str | None) -> Path:
        if not raw_path:
            return self.root
        cleaned = raw_path.replace("\\", "/").lstrip("/")
        if not cleaned:
            return self.root
        joined = safe_join(str(self.root), cleaned)
        if joined is None:
            raise InvalidPath()
        candidate = Path(joined)
        # symlinks are neither listed nor followed
        try:
            resolved = candidate.resolve()
        except (OSError, RuntimeError):
            raise InvalidPath() from None
        if resolved != candidate:
            raise InvalidPath()
        try:
            rel = candidate.relative_to(self.root)
        except ValueError:
            raise InvalidPath() from None
        if any(part in self.excluded_dirs for part in rel.parts):
            raise InvalidPath()
        return candidate

    def rel(self, full: Path) -> str:
        rel = full.relative_to(self.root).as_posix()
        return "/" if rel == "." else "/" + rel

    def _visible(self, entry: os.DirEntry) -> bool:
        if entry.is_symlink():
            return False
        return not (entry.is_dir(follow_symlinks=False) and entry.name in self.excluded_dirs)

    def _scan(self, directory: Path) -> list:
        try:
            entries = [e for e in os.scandir(directory) if self._visible(e)]
        except PermissionError:
            return []
        return sorted(entries, key=lambda e: (not e.is_dir(), e.name.lower()))

    # -- listing -----------------------------------------------------------

    def build_tree(self, directory: Path, depth: int = 1) -> list:
        items = []
        for entry in self._scan(directory):
            full = Path(entry.path)
            is_dir = entry.is_dir()
            item = {"name": entry.name, "path": self.rel(full), "isDir": is_dir}
            if is_dir and depth > 1:
                item["children"] = self.build_tree(full, depth - 1)
            items.append(item)
        return items

    def list_folder(self, path: str | None, depth: int = 1) -> list:
        full = self.safe_path(path)
        if not full.is_dir():
            return []
        return self.build_tree(full, max(1, depth))

    def folder_listing(self, path: str | None) -> dict:
        full = self.safe_path(path)
        if not full.is_dir():
            raise NotFound("Folder not found")
        items = []
        for entry in self._scan(full):
            is_dir = entry.is_dir()
            items.append({
                "name": entry.name,
                "path": self.rel(Path(entry.path)),
                "isDir": is_dir,
                "type": "folder" if is_dir else "file",
                "extension": None if is_dir else Path(entry.name).suffix,
            })
        return {"path": path or "/", "fullPath": str(full), "items": items}

    def file_index(self) -> list:
        now = time.monotonic()
        cached = self._index_cache
        if cached["entries"] is not None and (now - cached["ts"]) < self.index_ttl:
            return cached["entries"]
        entries = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if d not in self.excluded_dirs)
            for name in sorted(filenames):
                full = Path(dirpath) / name
                if name.lower().endswith(".md") and not full.is_symlink():
                    entries.append({"fileName": full.stem, "filePath": self.rel(full)})
        cached["entries"] = entries
        cached["ts"] = now
        return entries

    def invalidate_index(self):
        self._index_cache["entries"] = None
        self._index_cache["ts"] = 0.0

    # -- file content ------------------------------------------------------

    def read_file(self, path: str | None) -> str:
        full = self.safe_path(path)
        if full.is_dir():
            raise BadRequest("Path is a directory, use /api/folder or /api/tree instead")
        if not full.is_file():
            raise NotFound("File not found")
        return full.read_text(encoding="utf-8", errors="replace")

    def write_file(self, path: str | None, content: str) -> str:
        full = self.safe_path(path)
        if full == self.root or full.is_dir():
            raise BadRequest("Path is a directory")
        full.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(full, content)
        rel = self.rel(full)
        self.invalidate_index()
        log.info("wrote %s (%d chars)", rel, len(content))
        return rel

    def create_file(self, path: str | None, content: str = "") -> str:
        full = self.safe_path(path)
        if full == self.root:
            raise BadRequest("Path is required")
        if not full.name.lower().endswith(".md"):
            full = full.with_name(full.name + ".md")
        if full.exists():
            raise Conflict("File already exists")
        full.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(full, content)
        rel = self.rel(full)
        self.invalidate_index()
        log.info("created file %s", rel)
        return rel

    def create_folder(self, path: str | None) -> str:
        full = self.safe_path(path)
        if full.is_dir():
            raise Conflict("Folder already exists")
        if full.exists():
            raise Conflict("A file with that name already exists")
        full.mkdir(parents=True)
        rel = self.rel(full)
        log.info("created folder %s", rel)
        return rel

    def toggle_checkbox(self, path: str | None, checkbox_text: str) -> bool:
        full = self.safe_path(path)
        if not full.is_file():
            raise NotFound("File not found")
        wanted = (checkbox_text or "").strip()
        lines = full.read_text(encoding="utf-8").splitlines(keepends=True)
        for i, line in enumerate(lines):
            body = line.rstrip("\r\n")
            m = _TASK_RE.match(body)
            if not m or m.group(4) != wanted:
                continue
            checked = m.group(2) == " "
            mark = "x" if checked else " "
            ending = line[len(body):]
            lines[i] = m.group(1) + mark + body[m.end(2):] + ending
            atomic_write(full, "".join(lines))
            log.info("toggled checkbox %r in %s -> %s", wanted, self.rel(full), checked)
            return checked
        raise NotFound("Checkbox not found")

    # -- structure ---------------------------------------------------------

    def rename(self, old_path: str | None, new_path: str | None) -> tuple[str, str]:
        if not (old_path or "").strip() or not (new_path or "").strip():
            raise BadRequest("OldPath and NewPath are required")
        old_full = self.safe_path(old_path)
        new_full = self.safe_path(new_path)
        if old_full == self.root or new_full == self.root:
            raise InvalidPath("Cannot rename the vault root")
        if not old_full.exists():
            raise NotFound("Source file or folder not found")
        if new_full == old_full:
            return self.rel(old_full), self.rel(new_full)
        if new_full.exists():
            raise Conflict("Target already exists")
        if old_full.is_dir() and old_full in new_full.parents:
            raise Conflict("Cannot move a folder into itself")
        try:
            new_full.parent.mkdir(parents=True, exist_ok=True)
            old_full.rename(new_full)
        except OSError as e:
            raise ServerError(f"Failed to rename: {e}") from e
        self.invalidate_index()
        log.info("renamed %s -> %s", self.rel(old_full), self.rel(new_full))
        return self.rel(old_full), self.rel(new_full)

    def move(self, source_path: str | None, destination_parent: str | None,
             new_name: str | None = None) -> tuple[str, str]:
        src = self.safe_path(source_path)
        dest_dir = self.safe_path(destination_parent)
        if src == self.root:
            raise InvalidPath("Cannot move the vault root")
        name = (new_name or "").strip() or src.name
        if "/" in name or "\\" in name or name in (".", ".."):
            raise BadRequest("Invalid name")
        if not src.exists():
            raise NotFound("Source file or folder not found")
        if not dest_dir.is_dir():
            raise NotFound("Destination folder not found")
        if dest_dir == src or src in dest_dir.parents:
            raise Conflict("Cannot move a folder into itself")
        target = dest_dir / name
        if target.exists():
            raise Conflict("Target already exists")
        if target.name in self.excluded_dirs:
            raise InvalidPath()
        try:
            shutil.move(str(src), str(target))
        except OSError as e:
            raise ServerError(f"Failed to move: {e}") from e
        self.invalidate_index()
        log.info("moved %s -> %s", self.rel(src), self.rel(target))
        return self.rel(src), self.rel(target)

    def delete(self, path: str | None) -> str:
        full = self.safe_path(path)
        if full == self.root:
            raise InvalidPath("Cannot delete the vault root")
        if not full.exists():
            raise NotFound("File or folder not found")
        rel = self.rel(full)
        try:
            if full.is_dir():
                shutil.rmtree(full)
            else:
                full.unlink()
        except OSError as e:
            raise ServerError(f"Failed to delete: {e}") from e
        self.invalidate_index()
        log.info("deleted %s", rel)
        return rel
