import logging
import os
from typing import Any

import yaml


def project_root() -> str:
    """
    Returns the absolute path to the project root directory.
    This file lives in: project/helpers/globals.py
    So project root = dirname(dirname(__file__))
    """
    return os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def load_config() -> dict:
    """
    Load config.yml reliably:
    - If CONFIG_PATH env var is set, use that explicitly.
    - Otherwise load config.yml from the project root.
    - A missing default file yields an empty config so defaults apply.
    """
    # env override
    override = os.getenv("CONFIG_PATH")
    if override and os.path.exists(override):
        with open(override, "r") as f:
            return yaml.safe_load(f) or {}

    # default: project root/config.yml
    default_path = os.path.join(project_root(), "config.yml")

    if not os.path.exists(default_path):
        logging.warning(f"[Config] config.yml not found at: {default_path}, using defaults")
        return {}

    with open(default_path, "r") as f:
        return yaml.safe_load(f) or {}


def _lookup_config_key(key: str):
    """Internal helper: resolve a.b.c from CONFIG."""
    parts = key.split(".")
    node = load_config()

    for p in parts:
        if isinstance(node, dict) and p in node:
            node = node[p]
        else:
            return None

    return node


_TRUTHY = ("1", "true", "yes", "on")


def env_key(key: str) -> str:
    """Environment name for a dotted key: api.port -> API_PORT."""
    return key.replace(".", "_").upper()


def coerce_env_value(raw: str, template: Any) -> Any:
    """
    Convert an environment string to the type of `template` (the config.yml
    value, or the caller's default). Unparseable numbers stay strings.
    """
    # bool before int: bool is an int subclass
    if isinstance(template, bool):
        return raw.strip().lower() in _TRUTHY

    for kind in (int, float):
        if isinstance(template, kind):
            try:
                return kind(raw)
            except ValueError:
                return raw

    if isinstance(template, list):
        return [item.strip() for item in raw.split(",") if item.strip()]

    return raw


def cfg(key: str, default: Any = None) -> Any:
    """
    Unified configuration accessor.

    Precedence: environment override (see env_key), then config.yml, then
    `default`.
    """
    config_value = _lookup_config_key(key)

    name = env_key(key)
    if name in os.environ:
        template = default if config_value is None else config_value
        return coerce_env_value(os.environ[name], template)

    return default if config_value is None else config_value
