"""Configuration loading utilities."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from ..errors.internal import ConfigurationError
from .model import AppConfig

DEFAULT_CONFIG_FILE = "oauth_session.conf"

# Environment variables that override provider fields (secrets stay out of files).
_PROVIDER_ENV_OVERRIDES = {
    "OAUTH_SESSION_CLIENT_ID": "client_id",
    "OAUTH_SESSION_CLIENT_SECRET": "client_secret",
}
_SESSION_ENV_OVERRIDES = {
    "OAUTH_SESSION_CREDENTIAL_FILE": "credential_file",
    "OAUTH_SESSION_MARKERS_FILE": "markers_file",
    "OAUTH_SESSION_REQUEST_OPTIONS": "request_options",
}


def get_config_path() -> str:
    return os.environ.get("OAUTH_SESSION_CONF_FILE", DEFAULT_CONFIG_FILE)


def _apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    provider = dict(data.get("provider") or {})
    session = dict(data.get("session") or {})
    for env_name, field in _PROVIDER_ENV_OVERRIDES.items():
        if environ.get(env_name):
            provider[field] = environ[env_name]
    for env_name, field in _SESSION_ENV_OVERRIDES.items():
        if environ.get(env_name):
            session[field] = environ[env_name]
    return {**data, "provider": provider, "session": session}


def load_config(
    path: str | os.PathLike[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load and validate the application configuration.

    Args:
        path: Config file location; defaults to ``get_config_path()``.
        environ: Environment used for overrides (defaults to ``os.environ``).

    Returns:
        The validated AppConfig.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid.
    """
    config_file = str(path) if path is not None else get_config_path()
    env = os.environ if environ is None else environ
    try:
        with open(config_file, encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Configuration file not found: {config_file}") from e
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Configuration file unreadable: {config_file}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration root must be a JSON object")

    try:
        config = AppConfig.from_dict(_apply_env_overrides(raw, env))
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration in {config_file}: {e.error_count()} error(s)",
            data={"errors": e.errors(include_url=False)},
        ) from e
    logging.debug(f"✅ Configuration loaded path={config_file}")
    return config
