"""Configuration package exports."""

from .loader import DEFAULT_CONFIG_FILE, get_config_path, load_config
from .model import AppConfig, ProviderConfig, SessionSettings

__all__ = [
    "AppConfig",
    "ProviderConfig",
    "SessionSettings",
    "DEFAULT_CONFIG_FILE",
    "get_config_path",
    "load_config",
]
