"""
Configuration loader utility
"""

import logging
import yaml
from typing import Dict, Any, Optional
from pathlib import Path


logger = logging.getLogger(__name__)


def load_config(config_path: str = 'config/config.yaml', required: bool = True) -> Dict[str, Any]:
    """
    Load configuration from YAML file

    Args:
        config_path: Path to configuration file
        required: Raise if the file is missing; otherwise return an empty dict

    Returns:
        Dictionary with configuration values
    """
    config_file = Path(config_path)

    if not config_file.exists():
        if required:
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        logger.warning(f"Config file not found at {config_path}, using defaults")
        return {}

    with open(config_file, 'r') as f:
        config = yaml.safe_load(f)

    # An empty YAML document loads as None
    return config or {}


def get_section(config: Optional[Dict[str, Any]], name: str) -> Dict[str, Any]:
    """Return a config section as a dict, tolerating missing or null sections."""
    if not config:
        return {}
    section = config.get(name)
    return section if isinstance(section, dict) else {}
