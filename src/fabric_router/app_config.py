"""
Environment-backed application configuration.

Settings are declared as ``Config`` entries (see ``configs.py``), registered
once with ``AppConfig.add_configs`` and resolved from the process environment
(optionally seeded from a ``.env`` file) when ``AppConfig`` is instantiated.
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from fabric_router.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Config(BaseModel):
    """A single environment setting."""
    env_name: str
    is_required: bool
    default_value: Optional[str] = None


class AppConfig:
    """
    Resolved view over all registered ``Config`` entries.

    Values come from the environment first and fall back to the declared
    default. A required entry with neither raises ``ConfigurationError``.
    """

    configs: list[Config] = []

    def __init__(self, env_file: Optional[str] = None):
        load_dotenv(dotenv_path=env_file, override=False)
        self.props: dict[str, Optional[str]] = {}
        self._parse_configs()

    @staticmethod
    def add_config(config: Config) -> None:
        existing = [c for c in AppConfig.configs if c.env_name == config.env_name]
        if existing:
            AppConfig.configs.remove(existing[0])
        AppConfig.configs.append(config)

    @staticmethod
    def add_configs(configs: list[Config]) -> None:
        for config in configs:
            AppConfig.add_config(config)

    def _parse_configs(self) -> None:
        for config in AppConfig.configs:
            value = os.environ.get(config.env_name, config.default_value)
            if config.is_required and value is None:
                raise ConfigurationError(
                    f"Missing required configuration: {config.env_name}"
                )
            self.props[config.env_name] = value
        logger.debug(f"Resolved {len(self.props)} configuration values")

    def get(self, key: str) -> Optional[str]:
        return self.props.get(key)

    def get_float(self, key: str, default: float) -> float:
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return float(value)
        except ValueError as e:
            raise ConfigurationError(f"{key} must be a number (got: {value})") from e
