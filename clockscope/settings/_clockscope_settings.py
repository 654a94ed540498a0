from typing import Any, Mapping, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from clockscope.constants import DEFAULT_FORMAT, DEFAULT_TIMEOUT_S, OUTPUT_FORMATS
from clockscope.logging import CLOCKSCOPE_LOGGER


class ClockScopeSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CLOCKSCOPE_",
        env_nested_delimiter="__",
    )

    # Probe defaults, overridden by command line options
    timeout: float = DEFAULT_TIMEOUT_S
    format: str = DEFAULT_FORMAT
    ipv6_only: bool = False

    log_level: str = "WARNING"
    config_dir: Optional[str] = None  # platform user config dir when unset

    @field_validator("timeout")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be positive")
        return value

    @field_validator("format")
    @classmethod
    def _check_format(cls, value: str) -> str:
        if value not in OUTPUT_FORMATS:
            raise ValueError(f"format must be one of {', '.join(OUTPUT_FORMATS)}")
        return value

    def with_stored_defaults(self, stored: Mapping[str, Any]) -> "ClockScopeSettings":
        """
        Fill fields not given through the environment from the persisted defaults.

        Environment variables win over the config file; the config file wins
        over built-in defaults.

        Args:
            stored: The ``defaults`` section of the config file

        Returns:
            A new settings object

        Raises:
            ValidationError: if a stored value fails the field validators
        """
        updates = {}
        for key in ("timeout", "format", "ipv6_only"):
            if key in self.model_fields_set or stored.get(key) is None:
                continue
            updates[key] = stored[key]
        if not updates:
            return self
        CLOCKSCOPE_LOGGER.debug(f"Applying stored defaults: {updates}")
        # model_validate runs the field validators; model_copy would not
        return self.model_validate({**self.model_dump(), **updates})
