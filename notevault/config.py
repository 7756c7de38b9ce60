import copy
import json
import logging
import os
from pathlib import Path

from .errors import ConfigError

log = logging.getLogger(__name__)

CONFIG_FILENAME = "notevault.config.json"

DEFAULTS = {
    "host": "0.0.0.0",
    "port": 8000,
    "vault_root": None,
    "jwt_secret": None,
    "credential_username": None,
    "credential_password": None,
    "token_expire_days": 7,
    "excluded_dirs": [".git", ".trash", ".obsidian-web"],
    "file_index_ttl": 600,
    "cors_allow_origin": "*",
    "log_level": "INFO",
}

# env var -> (config key, converter)
ENV_OVERRIDES = {
    "VAULT_ROOT": ("vault_root", str),
    "JWT_SECRET": ("jwt_secret", str),
    "CREDENTIAL_USERNAME": ("credential_username", str),
    "CREDENTIAL_PASSWORD": ("credential_password", str),
    "NOTEVAULT_HOST": ("host", str),
    "NOTEVAULT_PORT": ("port", int),
    "TOKEN_EXPIRE_DAYS": ("token_expire_days", int),
    "LOG_LEVEL": ("log_level", str),
}

REQUIRED = ("vault_root", "jwt_secret", "credential_username", "credential_password")


def load_config(path: str | os.PathLike | None = None, env=None) -> dict:
    if env is None:
        env = os.environ
    if path is None:
        path = env.get("NOTEVAULT_CONFIG") or Path.cwd() / CONFIG_FILENAME
    path = Path(path)

    cfg = copy.deepcopy(DEFAULTS)
    if path.is_file():
        try:
            with open(path, encoding="utf-8") as f:
                user = json.load(f)
            cfg.update(user)
        except (OSError, ValueError) as e:
            log.warning("could not load %s: %s", path.name, e)

    for var, (key, convert) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            cfg[key] = convert(raw)
        except ValueError:
            log.warning("ignoring %s=%r: not a valid %s", var, raw, convert.__name__)
    return cfg


def validate_config(cfg: dict) -> dict:
    for key in REQUIRED:
        if not cfg.get(key):
            raise ConfigError(f"{key} is not configured")
    root = Path(cfg["vault_root"]).expanduser()
    if not root.is_dir():
        raise ConfigError(f"vault_root {root} is not a directory")
    cfg["vault_root"] = str(root.resolve())
    if int(cfg.get("token_expire_days") or 0) < 1:
        raise ConfigError("token_expire_days must be at least 1")
    return cfg
