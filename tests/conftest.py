"""
Pytest fixtures for notevault tests.

Provides common fixtures for:
- A temporary vault directory with a few notes
- The Flask app and test client, plus an authenticated header
- A scripted in-memory tree provider for the client-side tree layer
"""

import asyncio

import pytest

from notevault.errors import Conflict, NotFound
from notevault.server import create_app
from notevault.tree_model import TreeEntry, base_name, normalize_path, parent_path

USERNAME = "admin"
PASSWORD = "s3cret-pass"
JWT_SECRET = "test-secret-key-for-jwt-signing-only"


# ============================================================================
# Server fixtures
# ============================================================================

@pytest.fixture
def vault_dir(tmp_path):
    root = tmp_path / "vault"
    (root / "notes" / "sub").mkdir(parents=True)
    (root / "Archive").mkdir()
    (root / ".git").mkdir()
    (root / "readme.md").write_text("# Readme\n\nSee [[todo]].\n", encoding="utf-8")
    (root / "notes" / "todo.md").write_text("- [ ] milk\n- [x] eggs\n", encoding="utf-8")
    (root / "notes" / "sub" / "deep.md").write_text("deep", encoding="utf-8")
    (root / "notes" / "image.png").write_bytes(b"\x89PNG")
    return root


@pytest.fixture
def app(vault_dir, monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for var in ("NOTEVAULT_CONFIG", "VAULT_ROOT", "JWT_SECRET",
                "CREDENTIAL_USERNAME", "CREDENTIAL_PASSWORD"):
        monkeypatch.delenv(var, raising=False)
    app = create_app({
        "vault_root": str(vault_dir),
        "jwt_secret": JWT_SECRET,
        "credential_username": USERNAME,
        "credential_password": PASSWORD,
    })
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(client):
    resp = client.post("/api/login", json={"username": USERNAME, "password": PASSWORD})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.get_json()['token']}"}


# ============================================================================
# Tree provider fake
# ============================================================================

class FakeProvider:
    """In-memory tree provider. Folders are dicts, files are strings.

    ``gate`` (an asyncio.Event) holds every list_folder call until set;
    ``fail`` maps a path to the exception its listing raises; ``reject``
    maps a mutation name to the exception it raises.
    """

    def __init__(self, tree):
        self.tree = tree
        self.calls = []
        self.gate = None
        self.fail = {}
        self.reject = {}

    def _lookup(self, path):
        node = self.tree
        for part in [p for p in normalize_path(path).split("/") if p]:
            if not isinstance(node, dict) or part not in node:
                raise NotFound("Folder not found")
            node = node[part]
        return node

    def _entries(self, path, folder, depth):
        entries = []
        for name, child in folder.items():
            child_path = normalize_path(f"{path}/{name}")
            is_dir = isinstance(child, dict)
            children = None
            if is_dir and depth > 1:
                children = tuple(self._entries(child_path, child, depth - 1))
            entries.append(TreeEntry(child_path, name, is_dir, children))
        return entries

    def listed(self):
        return [args[0] for name, *args in self.calls if name == "list_folder"]

    def mutations(self):
        return [c for c in self.calls if c[0] != "list_folder"]

    async def list_folder(self, path, depth=1):
        self.calls.append(("list_folder", path))
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if path in self.fail:
            raise self.fail[path]
        folder = self._lookup(path)
        if not isinstance(folder, dict):
            return []
        return self._entries(path, folder, depth)

    def _check(self, name):
        if name in self.reject:
            raise self.reject[name]

    async def create_file(self, path, content=""):
        self.calls.append(("create_file", path))
        self._check("create_file")
        if not path.endswith(".md"):
            path += ".md"
        folder = self._lookup(parent_path(path))
        if base_name(path) in folder:
            raise Conflict("File already exists")
        folder[base_name(path)] = content
        return path

    async def create_folder(self, path):
        self.calls.append(("create_folder", path))
        self._check("create_folder")
        self._lookup(parent_path(path))[base_name(path)] = {}
        return path

    async def rename_entry(self, old_path, new_path):
        self.calls.append(("rename_entry", old_path, new_path))
        self._check("rename_entry")
        node = self._lookup(parent_path(old_path)).pop(base_name(old_path))
        self._lookup(parent_path(new_path))[base_name(new_path)] = node

    async def move_entry(self, source_path, destination_parent_path, new_name):
        self.calls.append(("move_entry", source_path, destination_parent_path, new_name))
        self._check("move_entry")
        node = self._lookup(parent_path(source_path)).pop(base_name(source_path))
        self._lookup(destination_parent_path)[new_name] = node

    async def delete_entry(self, path):
        self.calls.append(("delete_entry", path))
        self._check("delete_entry")
        self._lookup(parent_path(path)).pop(base_name(path))


@pytest.fixture
def sample_tree():
    return {
        "folder1": {
            "folder2": {"note.md": "hello", "other.md": ""},
            "a.md": "",
        },
        "Docs": {},
        "b.md": "",
        "A.md": "",
    }


@pytest.fixture
def provider(sample_tree):
    return FakeProvider(sample_tree)
