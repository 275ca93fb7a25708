"""
Configuration loader for Planwright.

Loads settings from planwright_config.yaml and provides typed access
to all configuration sections.
"""
import logging
import os
from pathlib import Path
from typing import Any, Optional
from functools import lru_cache

import yaml


# Default config ships inside the package
DEFAULT_CONFIG_PATH = Path(__file__).parent / "planwright_config.yaml"
CONFIG_ENV_VAR = "PLANWRIGHT_CONFIG"

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""
    pass


class PlanwrightConfig:
    """
    Configuration manager for Planwright.

    Loads YAML configuration and provides typed access to all sections.
    Use get_config() to obtain the singleton instance.
    """

    def __init__(self, config_path: Optional[Path] = None):
        env_path = os.environ.get(CONFIG_ENV_VAR)
        self._config_path = config_path or (Path(env_path) if env_path else DEFAULT_CONFIG_PATH)
        self._config: dict = {}
        self._load()

    def _load(self) -> None:
        """Load configuration from YAML file."""
        if not self._config_path.exists():
            raise ConfigurationError(f"Config file not found: {self._config_path}")

        try:
            with open(self._config_path, 'r') as f:
                self._config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")

        if not isinstance(self._config, dict):
            raise ConfigurationError("Config file must contain a YAML mapping")

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def version(self) -> str:
        """Configuration file version."""
        return self._config.get("version", "unknown")

    # =========================================================================
    # Database
    # =========================================================================

    @property
    def database(self) -> dict:
        return self._config.get("database", {})

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL of the application database."""
        return self.database.get("url", "sqlite:///./planwright.db")

    @property
    def database_echo(self) -> bool:
        return bool(self.database.get("echo", False))

    # =========================================================================
    # Logging
    # =========================================================================

    @property
    def logging(self) -> dict:
        return self._config.get("logging", {})

    @property
    def log_level(self) -> str:
        return str(self.logging.get("level", "INFO")).upper()

    @property
    def log_format(self) -> str:
        return self.logging.get("format", DEFAULT_LOG_FORMAT)

    # =========================================================================
    # Code Generation
    # =========================================================================

    @property
    def codes(self) -> dict:
        """Code generation configuration."""
        return self._config.get("codes", {})

    @property
    def generate_code_for_expense_sheets(self) -> bool:
        """Default for the auto-code policy of new expense sheets."""
        return bool(self.codes.get("generate_code_for_expense_sheets", True))

    def get_sequence_defaults(self, entity_name: str) -> dict:
        """
        Get the default sequence definition for an entity.

        Args:
            entity_name: Entity name, e.g. 'EXPENSE_SHEET'

        Returns:
            Dict with 'prefix' and 'number_of_digits'
        """
        sequences = self.codes.get("sequences", {})
        defaults = {"prefix": entity_name[:3], "number_of_digits": 5}
        defaults.update(sequences.get(entity_name, {}))
        return defaults

    # =========================================================================
    # Scenarios & Orders
    # =========================================================================

    @property
    def master_scenario_name(self) -> str:
        return self._config.get("scenarios", {}).get("master_name", "master")

    @property
    def inactive_order_states(self) -> list[str]:
        """Order states that exclude an order from the active list."""
        return self._config.get("orders", {}).get(
            "inactive_states", ["FINISHED", "CANCELLED", "STORED"]
        )

    # =========================================================================
    # Advance Types
    # =========================================================================

    @property
    def predefined_advance_types(self) -> list[dict]:
        """Advance types seeded at bootstrap."""
        return self._config.get("advance_types", {}).get("predefined", [])

    # =========================================================================
    # Raw Access
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """Get a top-level config value by key."""
        return self._config.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self._config[key]

    def __contains__(self, key: str) -> bool:
        return key in self._config


@lru_cache(maxsize=1)
def get_config(config_path: Optional[str] = None) -> PlanwrightConfig:
    """
    Get the singleton configuration instance.

    Args:
        config_path: Optional path to config file. Only used on first call.

    Returns:
        PlanwrightConfig singleton instance
    """
    path = Path(config_path) if config_path else None
    return PlanwrightConfig(path)


def reload_config() -> PlanwrightConfig:
    """Reload configuration from disk and return new instance."""
    get_config.cache_clear()
    return get_config()


def configure_logging(config: Optional[PlanwrightConfig] = None) -> None:
    """Configure root logging from the logging section."""
    config = config or get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=config.log_format
    )
