"""
Configuration loader
"""
import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from classroom_arena.models import Settings


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/arena.yaml"


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Load settings from YAML file

    The path comes from the argument, then ARENA_CONFIG, then the default
    location. Only a missing *default* file falls back to built-in settings.

    Args:
        config_path: Path to config file

    Returns:
        Settings object

    Raises:
        FileNotFoundError: If an explicitly requested file does not exist
    """
    explicit = config_path or os.environ.get("ARENA_CONFIG")
    path = Path(explicit or DEFAULT_CONFIG_PATH)

    if not path.exists():
        if explicit:
            raise FileNotFoundError(f"Config file not found: {path}")
        logger.warning(f"⚠️ {path} not found, using built-in defaults")
        data = {}
    else:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

    password = os.environ.get("ARENA_OPERATOR_PASSWORD")
    if password:
        data["operator_password"] = password

    settings = Settings(**data)
    logger.info(
        f"✅ Loaded settings for session '{settings.session_id}' "
        f"with {len(settings.challenges)} challenges"
    )
    return settings
