import os
from pathlib import Path
from typing import Optional

import yaml
from loguru import logger

from cloudapp.core.models.config import AppConfig

CONFIG_ENV_VAR = "CLOUDAPP_CONFIG"
DEFAULT_CONFIG_FILE = "config.yaml"

_config_cache: Optional[AppConfig] = None
_config_file_path: Optional[str] = None


def load_config(config_file_path: str | Path) -> AppConfig:
    """
    Read a YAML configuration file into an `AppConfig`, bypassing the cache.

    An empty file yields the default configuration.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        pydantic.ValidationError: If the content does not match `AppConfig`.
    """
    path = Path(config_file_path).resolve()
    logger.info(f"Loading configuration file from: {path}")

    if not path.is_file():
        logger.error(f"Configuration file not found: {path}")
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError:
        logger.exception("Failed to parse YAML configuration file.")
        raise

    if not isinstance(data, dict):
        raise TypeError(
            f"Configuration root must be a mapping, got {type(data).__name__}"
        )

    return AppConfig(**data)


def get_config(config_file_path: Optional[str] = None) -> AppConfig:
    """
    Load and cache the application configuration from a YAML file.

    Args:
        config_file_path (Optional[str]): Path to the configuration file.
            If not provided, uses the cached path, then `$CLOUDAPP_CONFIG`,
            then 'config.yaml' in the working directory.

    Returns:
        AppConfig: The loaded configuration object.
    """
    global _config_cache, _config_file_path

    if _config_cache is not None and config_file_path is None:
        return _config_cache

    if config_file_path:
        _config_file_path = str(Path(config_file_path).resolve())
    elif not _config_file_path:
        _config_file_path = os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE)

    _config_cache = load_config(_config_file_path)
    logger.debug("Configuration file successfully parsed and cached.")
    return _config_cache


def reset_config_cache() -> None:
    """Forget the cached configuration and its path."""
    global _config_cache, _config_file_path
    _config_cache = None
    _config_file_path = None
