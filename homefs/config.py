"""
Configuration loading for homefs
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from .models import Config, ServerConfig, BrowseConfig, LoggingConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "homefs.yaml"
CONFIG_ENV_VAR = "HOMEFS_CONFIG"


class ConfigError(Exception):
    """Raised when the configuration file cannot be parsed"""
    pass


def resolve_config_path(config_path: Optional[str] = None) -> Path:
    """Pick the configuration file: explicit path, then env, then default"""
    if not config_path:
        config_path = os.getenv(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)
    return Path(config_path).expanduser().resolve()


def load_config(config_path: Optional[str] = None, root_override: Optional[str] = None) -> Config:
    """
    Load configuration from a YAML file

    A missing file yields the defaults; an unreadable or malformed one
    raises ConfigError so the server never starts on a half-read config.
    """
    path = resolve_config_path(config_path)

    if not path.exists():
        logger.warning(f"Configuration file not found: {path}, using defaults")
        data: Dict[str, Any] = {}
    else:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load configuration {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration {path} must be a mapping")

    if root_override:
        data = dict(data)
        data['browse'] = dict(data.get('browse') or {}, root=root_override)

    config = parse_config(data)
    logger.info(f"Configuration loaded from {path}")
    return config


def parse_config(data: Dict[str, Any]) -> Config:
    """Parse configuration data into Config object"""

    try:
        # Server configuration
        server_data = data.get('server') or {}
        server = ServerConfig(
            addr=str(server_data.get('addr', '0.0.0.0')),
            port=int(server_data.get('port', 8000)),
        )

        # Browsed tree
        browse_data = data.get('browse') or {}
        assets_dir = browse_data.get('assets_dir') or None
        browse = BrowseConfig(
            root=Path(browse_data.get('root') or Path.home()),
            assets_dir=Path(assets_dir) if assets_dir else None,
            date_format=str(browse_data.get('date_format', '%d/%m/%Y %H:%M')),
        )

        # Logging
        logging_data = data.get('logging') or {}
        logging_config = LoggingConfig(
            json=bool(logging_data.get('json', False)),
            file=str(logging_data.get('file', '')),
            level=str(logging_data.get('level', 'INFO')),
            max_size_mb=int(logging_data.get('max_size_mb', 10)),
            backup_count=int(logging_data.get('backup_count', 3)),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}")

    return Config(
        server=server,
        browse=browse,
        logging=logging_config,
    )
