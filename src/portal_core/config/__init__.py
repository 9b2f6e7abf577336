"""Configuration system."""

from portal_core.config.loader import load_config
from portal_core.config.schema import AppConfig, LedgerConfig

__all__ = ["AppConfig", "LedgerConfig", "load_config"]
