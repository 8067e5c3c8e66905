"""
Shared utilities: configuration loading and logging setup
"""

from gaze_capture.utils.config_loader import load_config, get_section
from gaze_capture.utils.logger import setup_logger, setup_from_config

__all__ = [
    'load_config',
    'get_section',
    'setup_logger',
    'setup_from_config',
]
