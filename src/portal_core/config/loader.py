"""Config loader: YAML file plus PORTAL_* environment overrides."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from portal_core.config.schema import AppConfig

CONFIG_PATH_ENV = "PORTAL_CONFIG"
DEFAULT_CONFIG_FILE = "config.yaml"

# env var -> (section, key); values are validated by AppConfig
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "PORTAL_DATABASE_URL": ("database", "url"),
    "PORTAL_LOG_LEVEL": ("logging", "level"),
    "PORTAL_LOG_FORMAT": ("logging", "format"),
    "PORTAL_ALLOW_PRICE_UPDATES_AFTER_CLOSE": ("ledger", "allow_price_updates_after_close"),
    "PORTAL_DEFAULT_LIST_LIMIT": ("ledger", "default_list_limit"),
    "PORTAL_API_HOST": ("api", "host"),
    "PORTAL_API_PORT": ("api", "port"),
}


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from a YAML file, then apply env var overrides.

    *path* defaults to ``$PORTAL_CONFIG``, then ``config.yaml`` in the
    working directory. A missing file means schema defaults. Overrides are
    listed in ``ENV_OVERRIDES``; a set but empty variable is ignored.
    """
    if path is None:
        path = os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_FILE

    data: dict = {}
    p = Path(path)
    if p.exists():
        with open(p) as f:
            data = yaml.safe_load(f) or {}

    for var, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            data.setdefault(section, {})[key] = value

    return AppConfig.model_validate(data)
