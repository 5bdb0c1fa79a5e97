"""Helper modules and utilities for docka-vault."""

from .config import Config, create_default_config
from .constants import VERSION, DEFAULT_CONFIG_PATHS
from .logging import get_logger, log_manager, setup_logging

__all__ = [
    'Config',
    'create_default_config',
    'VERSION',
    'DEFAULT_CONFIG_PATHS',
    'get_logger',
    'log_manager',
    'setup_logging',
]
