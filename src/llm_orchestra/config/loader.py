"""Configuration loader that merges ENV → YAML → Defaults."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from llm_orchestra.config.env_loader import EnvLoader
from llm_orchestra.config.schemas import OrchestraConfig
from llm_orchestra.core.exceptions import ConfigError
from llm_orchestra.utils.logging import get_logger

logger = get_logger("config.loader")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


class ConfigLoader:
    """Loads and merges configuration from multiple sources.

    Priority order (highest to lowest):
    1. ``ORCHESTRA_*`` environment variables
    2. YAML configuration files, later files overriding earlier ones
    3. Packaged defaults (``defaults.yaml``)
    """

    def __init__(
        self,
        config_paths: list[Path] | None = None,
        env_loader: EnvLoader | None = None,
        defaults_path: Path = DEFAULTS_PATH,
    ):
        self.config_paths = [Path(p) for p in config_paths or []]
        self.env_loader = env_loader or EnvLoader()
        self._defaults_path = defaults_path

    def load_config(self) -> OrchestraConfig:
        """Load, merge and validate configuration from all sources.

        Raises:
            ConfigError: If a file is missing or invalid, or the merged
                configuration does not validate
        """
        logger.debug("Loading configuration")
        config_data = self._load_defaults()

        for config_path in self.config_paths:
            config_data = self._deep_merge(config_data, self._load_yaml_file(config_path))
            logger.debug(f"Merged YAML config from {config_path}")

        env_data = self.env_loader.get_config_from_env()
        if env_data:
            config_data = self._deep_merge(config_data, env_data)
            logger.debug(f"Merged {len(env_data)} environment sections")

        try:
            config = OrchestraConfig.from_dict(config_data)
        except ValidationError as e:
            error_msg = f"Invalid configuration: {e}"
            logger.error(error_msg)
            raise ConfigError(error_msg) from e

        logger.debug("Configuration loaded and validated successfully")
        return config

    def _load_defaults(self) -> dict[str, Any]:
        if not self._defaults_path.exists():
            logger.debug("No defaults file found, using empty defaults")
            return {}
        return self._load_yaml_file(self._defaults_path)

    def _load_yaml_file(self, file_path: Path) -> dict[str, Any]:
        """Load a YAML mapping; empty or non-mapping documents yield {}.

        Raises:
            ConfigError: If the file doesn't exist, is not UTF-8 or is invalid YAML
        """
        if not file_path.exists():
            error_msg = f"Config file not found: {file_path}"
            logger.error(error_msg)
            raise ConfigError(error_msg)

        try:
            with open(file_path, encoding="utf-8") as file:
                config_data = yaml.safe_load(file)
        except UnicodeDecodeError as e:
            raise ConfigError(
                f"Unicode decode error in {file_path}: {e}. File may not be UTF-8 encoded."
            ) from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {file_path}: {e}") from e

        if config_data is None:
            return {}
        if not isinstance(config_data, dict):
            logger.warning(
                f"YAML file {file_path} did not load as a mapping, got {type(config_data).__name__}"
            )
            return {}
        return config_data

    def _deep_merge(
        self, base: dict[str, Any], overlay: dict[str, Any]
    ) -> dict[str, Any]:
        result = base.copy()

        for key, value in overlay.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


def load_config(config_paths: list[Path] | None = None) -> OrchestraConfig:
    """Load configuration from the defaults, the given YAML files and the environment."""
    return ConfigLoader(config_paths).load_config()
