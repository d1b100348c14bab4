"""YAML configuration parser for site deployments."""

import copy
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from site_deploy.utils.errors import ConfigurationError

from .models import SiteConfig

DEFAULT_CONFIG_FILE = "site.yaml"


class ConfigValidationError(ConfigurationError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.errors = errors or []
        super().__init__(message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  - {location}: {msg}")

        return "\n".join(error_lines)


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base.

    Nested dictionaries are merged; any other value (lists included)
    replaces the base value. None values in override are ignored.
    """
    result = copy.deepcopy(base)
    for key, value in override.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class Config:
    """Loads the site configuration file."""

    def __init__(self, config_path: Union[str, Path] = DEFAULT_CONFIG_FILE):
        """Initialize configuration manager.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        self.data: Dict = {}

    @property
    def base_dir(self) -> Path:
        """Directory relative paths in the configuration resolve against."""
        return self.config_path.resolve().parent

    def load(self, environment: Optional[str] = None) -> SiteConfig:
        """Load and validate configuration from YAML file.

        Args:
            environment: Environment whose overrides are merged over the base

        Returns:
            Validated SiteConfig

        Raises:
            ConfigValidationError: If configuration is invalid
            FileNotFoundError: If configuration file doesn't exist
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                self.data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        if not isinstance(self.data, dict):
            raise ConfigValidationError("Configuration must be a YAML mapping")

        return self.parse(self.data, environment)

    @staticmethod
    def parse(data: Dict[str, Any], environment: Optional[str] = None) -> SiteConfig:
        """Validate raw configuration data.

        Args:
            data: Parsed configuration mapping
            environment: Environment whose overrides are merged over the base

        Returns:
            Validated SiteConfig

        Raises:
            ConfigValidationError: If validation fails or the environment is unknown
        """
        merged = Config.merge_environment(data, environment)

        try:
            return SiteConfig(**merged)
        except ValidationError as e:
            errors = [{"loc": list(error["loc"]), "msg": error["msg"]} for error in e.errors()]
            raise ConfigValidationError(
                f"Configuration validation failed with {len(errors)} error(s)", errors
            )

    @staticmethod
    def merge_environment(data: Dict[str, Any], environment: Optional[str]) -> Dict[str, Any]:
        """Apply an environment's overrides to the base configuration.

        Args:
            data: Raw configuration including the ``environments`` section
            environment: Environment name, or None/"default" for the base

        Returns:
            Configuration without the ``environments`` section

        Raises:
            ConfigValidationError: If the environment is not defined
        """
        environments = data.get("environments") or {}
        if not isinstance(environments, dict):
            raise ConfigValidationError(
                "Invalid configuration",
                [{"loc": ["environments"], "msg": "Environments must be a mapping"}],
            )

        base = {key: value for key, value in data.items() if key != "environments"}
        if not environment or environment == "default":
            return base

        if environment not in environments:
            available = ", ".join(environments) or "none"
            raise ConfigValidationError(
                f"Environment '{environment}' not found. Available environments: {available}"
            )

        return deep_merge(base, environments[environment] or {})
