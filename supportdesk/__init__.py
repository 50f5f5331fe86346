"""Top-level package for the SupportDesk chat client."""

from .config import AppSettings, ConfigManager, get_user_config_dir, load_settings  # noqa: F401
from .logging import setup_logging  # noqa: F401
