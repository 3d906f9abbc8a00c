"""
Path configuration system for ProjectBot.
Centralizes all file path handling with environment variable support.
"""

import os
from pathlib import Path
import logging

logger = logging.getLogger(__name__)

# Base paths from environment with sensible defaults
BASE_DIR = Path(os.getenv('BOT_BASE_DIR', Path(__file__).parent.parent))
DATA_DIR = Path(os.getenv('BOT_DATA_DIR', BASE_DIR / 'data'))

# Subdirectories
LOG_DIR = Path(os.getenv('BOT_LOG_DIR', DATA_DIR / 'logs'))
CONFIG_DIR = Path(os.getenv('BOT_CONFIG_DIR', BASE_DIR / 'config'))

DEFAULT_CONFIG_FILE = os.getenv('BOT_CONFIG_FILE', 'main.json')

def ensure_directories():
    """Create necessary directories if they don't exist."""
    for dir_path in (DATA_DIR, LOG_DIR):
        try:
            dir_path.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory exists: {dir_path}")
        except PermissionError:
            logger.error(f"Permission denied creating directory: {dir_path}")
            raise

def get_log_path(filename: str) -> Path:
    """Get absolute path for log file."""
    return LOG_DIR / filename

def get_config_path(filename: str = None) -> Path:
    """Get absolute path for config file."""
    return CONFIG_DIR / (filename or DEFAULT_CONFIG_FILE)
