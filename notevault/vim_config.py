import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from .errors import BadRequest, ServerError
from .vault import atomic_write

log = logging.getLogger(__name__)

CONFIG_DIR = ".obsidian-web"
CONFIG_FILE = "config-vim.json"
LIST_KEYS = ("keyMappings", "exCommands", "unmappedKeys")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def config_path(vault_root) -> Path:
    return Path(vault_root) / CONFIG_DIR / CONFIG_FILE


def load(vault_root) -> dict:
    path = config_path(vault_root)
    if not path.is_file():
        stamp = _now()
        default = {key: [] for key in LIST_KEYS}
        default.update(createdAt=stamp, updatedAt=stamp)
        path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(path, json.dumps(default, indent=2))
        log.info("created default vim config at %s", path)
        return default
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise ServerError(f"Failed to read config: {e}") from e


def save(vault_root, data) -> dict:
    if not isinstance(data, dict):
        raise BadRequest("Config must be a JSON object")
    path = config_path(vault_root)

    config = {}
    for key in LIST_KEYS:
        value = data.get(key, [])
        if not isinstance(value, list):
            raise BadRequest(f"{key} must be a list")
        config[key] = value

    created_at = None
    if path.is_file():
        try:
            with open(path, encoding="utf-8") as f:
                created_at = json.load(f).get("createdAt")
        except (OSError, ValueError, AttributeError):
            log.warning("existing vim config at %s is unreadable; resetting createdAt", path)
    config["createdAt"] = created_at or _now()
    config["updatedAt"] = _now()

    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        atomic_write(path, json.dumps(config, indent=2))
    except OSError as e:
        raise ServerError(f"Failed to save config: {e}") from e
    return config
