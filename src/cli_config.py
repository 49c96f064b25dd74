"""Configuration sources for runtime tunables.

Extracted from toolfetch.py to keep the entrypoint slim. Precedence is
CLI flag > config file > environment > Constants default. Config values
land on ``Constants``; CLI flags are handed to the installer by ``toolfetch.run``.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import yaml

from constants import Constants

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a configuration file cannot be read or holds invalid values."""


# config key -> (Constants attribute, coercion)
_CONFIG_KEYS: Dict[str, Tuple[str, Callable[[Any], Any]]] = {
    "service_index_url": ("SERVICE_INDEX_URL", str),
    "versions_root": ("VERSIONS_ROOT", str),
    "request_timeout": ("REQUEST_TIMEOUT", float),
    "download_timeout": ("DOWNLOAD_TIMEOUT", float),
    "download_deadline": ("DOWNLOAD_DEADLINE_SEC", float),
    "download_retries": ("DOWNLOAD_RETRIES", int),
    "download_retry_delay": ("DOWNLOAD_RETRY_DELAY_SEC", float),
    "max_redirects": ("MAX_REDIRECTS", int),
    "install_max_attempts": ("INSTALL_MAX_ATTEMPTS", int),
}


def default_versions_root() -> str:
    """Return the versions directory.

    Resolution order:
    1. ``versions_root`` from a loaded config file
    2. $TOOLFETCH_HOME/versions
    3. ~/.toolfetch/versions
    """
    configured = Constants.VERSIONS_ROOT
    if configured:
        return str(configured)
    env_home = os.environ.get(Constants.ENV_HOME)
    home = Path(env_home) if env_home else Path.home() / Constants.DEFAULT_HOME_DIR_NAME
    return str(home / Constants.VERSIONS_DIR_NAME)


def load_config_file(path: str) -> Dict[str, Any]:
    """Load a YAML or JSON configuration file.

    An optional top-level ``toolfetch`` section is unwrapped.

    Raises:
        ConfigError: if the file is missing, unparsable or not a mapping
    """
    if not os.path.isfile(path):
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.lower().endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    section = data.get("toolfetch", data)
    if not isinstance(section, dict):
        raise ConfigError(f"'toolfetch' section of {path} must be a mapping")
    return section


def apply_config(config: Mapping[str, Any]) -> None:
    """Copy recognised keys onto Constants, coercing their types.

    Raises:
        ConfigError: if a recognised key holds a value of the wrong type
    """
    for key, value in config.items():
        target = _CONFIG_KEYS.get(key)
        if target is None:
            logger.debug("Ignoring unknown config key: %s", key)
            continue
        attr, coerce = target
        try:
            setattr(Constants, attr, coerce(value))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid value for {key}: {value!r}") from exc


def get_access_token(cli_token: Optional[str] = None) -> Optional[str]:
    """Get the feed access token from various sources in priority order.

    Priority:
    1. CLI argument
    2. Environment variable TOOLFETCH_ACCESS_TOKEN
    3. Output of the command in TOOLFETCH_TOKEN_COMMAND

    Returns:
        Token string or None if not available
    """
    if cli_token and cli_token.strip():
        return cli_token.strip()

    env_token = os.environ.get(Constants.ENV_ACCESS_TOKEN)
    if env_token and env_token.strip():
        return env_token.strip()

    token_command = os.environ.get(Constants.ENV_TOKEN_COMMAND)
    if token_command:
        try:
            result = subprocess.run(
                token_command,
                shell=True,
                capture_output=True,
                text=True,
                timeout=10,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning("Failed to execute token command: %s", exc)
            return None
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
        logger.warning("Token command exited with status %s and no token", result.returncode)

    return None
