"""Settings and persisted configuration for clockscope."""

from clockscope.settings._clockscope_settings import ClockScopeSettings
from clockscope.settings.config_manager import ConfigError, ConfigManager, parse_config_value

__all__ = ["ClockScopeSettings", "ConfigError", "ConfigManager", "parse_config_value"]
