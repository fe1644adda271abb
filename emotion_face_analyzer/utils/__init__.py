"""
Utilities package.
"""
from .config_loader import get_config, reload_config, Config
from .logging_config import get_logger, setup_logging

__all__ = [
    'get_config', 'reload_config', 'Config',
    'get_logger', 'setup_logging',
]
