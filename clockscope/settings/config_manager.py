"""Configuration file manager for clockscope.

Stores default probe options and named presets in a JSON file, using
platformdirs for cross-platform config directory management. The file looks
like::

    {
      "defaults": {"timeout": 2.0, "format": "json", "ipv6_only": false},
      "presets": {"office": {"args": ["compare", "ntp1", "ntp2", "-c", "5"]}}
    }
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import platformdirs

from clockscope.constants import APP_NAME, CONFIG_KEYS, OUTPUT_FORMATS
from clockscope.logging import CLOCKSCOPE_LOGGER


class ConfigError(ValueError):
    """Invalid configuration key, value or preset."""


def parse_config_value(key: str, value: str) -> Union[float, str, bool]:
    """
    Convert the textual value of a default into its stored type.

    Args:
        key: One of ``timeout``, ``format`` or ``ipv6_only``
        value: Value as typed on the command line

    Returns:
        Parsed value

    Raises:
        ConfigError: if the key is unknown or the value is invalid for it
    """
    if key == "timeout":
        try:
            timeout = float(value)
        except ValueError:
            raise ConfigError(f"Invalid timeout: {value}") from None
        if timeout <= 0:
            raise ConfigError(f"Invalid timeout: {value}")
        return timeout
    if key == "format":
        if value not in OUTPUT_FORMATS:
            raise ConfigError("Unknown format. Use text, json, json-short, or simple.")
        return value
    if key == "ipv6_only":
        lowered = value.strip().lower()
        if lowered not in ("true", "false"):
            raise ConfigError(f"Invalid bool: {value}")
        return lowered == "true"
    raise ConfigError(f"Unknown config key '{key}' (expected one of: {', '.join(CONFIG_KEYS)})")


def _is_valid_stored_value(key: str, value: Any) -> bool:
    """Check a value read back from the config file against the type parse_config_value stores."""
    if value is None:
        return True
    if key == "timeout":
        return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0
    if key == "format":
        return value in OUTPUT_FORMATS
    if key == "ipv6_only":
        return isinstance(value, bool)
    return False


class ConfigManager:
    """Manages configuration file storage and retrieval."""

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        """Initialize the config manager.

        Args:
            config_dir: Directory holding ``config.json``; the platform user
                config directory is used when omitted
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = Path(platformdirs.user_config_dir(APP_NAME))
        self.config_file = self.config_dir / "config.json"

    def ensure_config_directory(self) -> None:
        """Create config directory with proper permissions if it doesn't exist."""
        if not self.config_dir.exists():
            self.config_dir.mkdir(parents=True, mode=0o700)
        else:
            os.chmod(self.config_dir, 0o700)

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from JSON file.

        Returns:
            Dict with ``defaults`` and ``presets`` sections; empty sections if
            the file doesn't exist or cannot be read.
        """
        config: Dict[str, Any] = {"defaults": {}, "presets": {}}
        if not self.config_file.exists():
            return config

        try:
            with open(self.config_file, "r") as f:
                loaded = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            # Return empty config to allow recovery
            CLOCKSCOPE_LOGGER.warning(f"Could not load config file {self.config_file}: {e}")
            return config

        is_valid, error = self.validate_config(loaded)
        if not is_valid:
            CLOCKSCOPE_LOGGER.warning(f"Ignoring invalid config file {self.config_file}: {error}")
            return config

        config["defaults"].update(loaded.get("defaults", {}))
        config["presets"].update(loaded.get("presets", {}))
        return config

    def save_config(self, config: Dict[str, Any]) -> None:
        """Save configuration to JSON file with proper permissions.

        Args:
            config: Dictionary of configuration values to save.
        """
        self.ensure_config_directory()

        # Write to temp file first, then atomic rename
        temp_file = self.config_file.with_suffix(".json.tmp")
        try:
            with open(temp_file, "w") as f:
                json.dump(config, f, indent=2)
            os.chmod(temp_file, 0o600)
            temp_file.replace(self.config_file)
        except Exception as e:
            if temp_file.exists():
                temp_file.unlink()
            raise IOError(f"Failed to save config: {e}") from e

    def get_config_path(self) -> Path:
        return self.config_file

    def validate_config(self, config: Any) -> tuple[bool, Optional[str]]:
        """Validate configuration structure.

        Args:
            config: Configuration loaded from disk.

        Returns:
            Tuple of (is_valid, error_message).
        """
        if not isinstance(config, dict):
            return False, "Configuration must be a dictionary"

        defaults = config.get("defaults", {})
        if not isinstance(defaults, dict):
            return False, "'defaults' must be a dictionary"
        unknown = sorted(set(defaults) - set(CONFIG_KEYS))
        if unknown:
            return False, f"Unknown default keys: {', '.join(unknown)}"
        for key, value in defaults.items():
            if not _is_valid_stored_value(key, value):
                return False, f"Invalid stored default {key}={value!r}"

        presets = config.get("presets", {})
        if not isinstance(presets, dict):
            return False, "'presets' must be a dictionary"
        for name, preset in presets.items():
            if not isinstance(preset, dict) or not isinstance(preset.get("args"), list):
                return False, f"Preset '{name}' must have an 'args' list"

        return True, None

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    def get_defaults(self) -> Dict[str, Any]:
        return self.load_config()["defaults"]

    def get_default(self, key: str) -> Any:
        if key not in CONFIG_KEYS:
            raise ConfigError(f"Unknown config key '{key}' (expected one of: {', '.join(CONFIG_KEYS)})")
        return self.get_defaults().get(key)

    def set_default(self, key: str, value: str) -> Any:
        """Validate and persist one default. Returns the stored value."""
        parsed = parse_config_value(key, value)
        config = self.load_config()
        config["defaults"][key] = parsed
        self.save_config(config)
        CLOCKSCOPE_LOGGER.info(f"Default '{key}' set to {parsed!r}")
        return parsed

    def clear_default(self, key: str) -> None:
        if key not in CONFIG_KEYS:
            raise ConfigError(f"Unknown config key '{key}' (expected one of: {', '.join(CONFIG_KEYS)})")
        config = self.load_config()
        if config["defaults"].pop(key, None) is not None:
            self.save_config(config)

    # ------------------------------------------------------------------
    # Presets
    # ------------------------------------------------------------------

    def get_presets(self) -> Dict[str, List[str]]:
        return {name: list(preset["args"]) for name, preset in self.load_config()["presets"].items()}

    def get_preset(self, name: str) -> Optional[List[str]]:
        return self.get_presets().get(name)

    def add_preset(self, name: str, args: List[str]) -> None:
        """Store (or replace) a named argument list.

        Raises:
            ConfigError: if the name is blank or no arguments are given
        """
        if not name.strip():
            raise ConfigError("Preset name must not be empty")
        if not args:
            raise ConfigError("Provide arguments after --")
        config = self.load_config()
        config["presets"][name] = {"args": list(args)}
        self.save_config(config)

    def remove_preset(self, name: str) -> bool:
        """Delete a preset. Returns False if it did not exist."""
        config = self.load_config()
        if name not in config["presets"]:
            return False
        del config["presets"][name]
        self.save_config(config)
        return True
