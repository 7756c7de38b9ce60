"""Client application state with a pluggable persistence port."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Protocol

from .vault import atomic_write

log = logging.getLogger(__name__)

THEMES = ("light", "dark")


class SettingsStore(Protocol):

    def load(self) -> dict: ...

    def save(self, data: dict) -> None: ...


class MemorySettingsStore:

    def __init__(self, data: dict | None = None) -> None:
        self.data = dict(data or {})

    def load(self) -> dict:
        return dict(self.data)

    def save(self, data: dict) -> None:
        self.data = dict(data)


class JsonFileSettingsStore:

    def __init__(self, path) -> None:
        self.path = Path(path)

    def load(self) -> dict:
        if not self.path.is_file():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.warning("could not load settings from %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(self.path, json.dumps(data, indent=2))


@dataclass
class AppState:
    theme: str = "light"
    access_token: str | None = None
    edit_mode: bool = False
    last_visited_path: str | None = None
    expand_level: int = 2


class AppSettings:
    """Theme, token and editor preferences, persisted on every change."""

    def __init__(self, store: SettingsStore) -> None:
        self.store = store
        self.state = self._read(store.load())

    @staticmethod
    def _read(data: dict) -> AppState:
        known = {f.name for f in fields(AppState)}
        state = AppState(**{k: v for k, v in data.items() if k in known})
        if state.theme not in THEMES:
            state.theme = "light"
        return state

    def _persist(self) -> None:
        self.store.save(asdict(self.state))

    @property
    def theme(self) -> str:
        return self.state.theme

    @property
    def access_token(self) -> str | None:
        return self.state.access_token

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"unknown theme {theme!r}, expected one of {THEMES}")
        self.state.theme = theme
        self._persist()

    def set_access_token(self, token: str | None) -> None:
        self.state.access_token = token or None
        self._persist()

    def set_edit_mode(self, enabled: bool) -> None:
        self.state.edit_mode = bool(enabled)
        self._persist()

    def remember_path(self, path: str | None) -> None:
        self.state.last_visited_path = path
        self._persist()

    def set_expand_level(self, level: int) -> None:
        if level < 0:
            raise ValueError("expand level must not be negative")
        self.state.expand_level = level
        self._persist()

    def clear(self) -> None:
        self.state.theme = "light"
        self.state.access_token = None
        self._persist()
