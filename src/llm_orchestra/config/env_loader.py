"""Environment variable loading for LLM Orchestra configuration."""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from llm_orchestra.core.exceptions import ConfigError
from llm_orchestra.utils.logging import get_logger

logger = get_logger("config.env_loader")


class EnvLoader:
    """Loads ``ORCHESTRA_*`` environment variables as nested configuration.

    ``ORCHESTRA_OBSERVABILITY__TRACING__SAMPLE_RATE=0.5`` becomes
    ``{"observability": {"tracing": {"sample_rate": 0.5}}}``.
    """

    def __init__(
        self, env_prefix: str = "ORCHESTRA_", env_paths: list[Path] | None = None
    ):
        self.env_prefix = env_prefix
        self.env_paths = env_paths or [Path.cwd() / ".env", Path.cwd() / ".env.local"]

    def load_env_files(self) -> None:
        """Load .env files into the process environment.

        Later files override earlier ones; variables already present in the
        environment win over the first file.

        Raises:
            ConfigError: If an .env file exists but cannot be loaded
        """
        loaded_any = False
        for env_path in self.env_paths:
            if not env_path.exists():
                continue
            try:
                load_dotenv(env_path, override=loaded_any)
            except Exception as e:
                raise ConfigError(f"Failed to load .env file {env_path}: {e}") from e
            logger.info(f"Loaded environment variables from {env_path}")
            loaded_any = True

        if not loaded_any:
            logger.debug("No .env files found to load")

    def get_config_from_env(self) -> dict[str, Any]:
        """Extract configuration from prefixed environment variables."""
        config_data: dict[str, Any] = {}
        env_count = 0

        for key, value in os.environ.items():
            if not key.startswith(self.env_prefix):
                continue
            config_key = key[len(self.env_prefix) :].lower()
            if not config_key:
                continue
            self._set_nested_value(config_data, config_key.split("__"), value)
            env_count += 1

        if env_count:
            logger.debug(
                f"Loaded {env_count} environment variables with prefix '{self.env_prefix}'"
            )
        return config_data

    def _set_nested_value(
        self, data: dict[str, Any], key_parts: list[str], value: str
    ) -> None:
        current = data

        for part in key_parts[:-1]:
            node = current.setdefault(part, {})
            if not isinstance(node, dict):
                logger.warning(
                    f"Cannot set nested value for {'.'.join(key_parts)}: {part} is not a dictionary"
                )
                return
            current = node

        current[key_parts[-1]] = self._convert_env_value(value)

    def _convert_env_value(self, value: str) -> Any:
        """Convert a string value to bool, int, float, None or leave it as is."""
        lowered = value.lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        if lowered in ("null", "none"):
            return None

        try:
            if "." not in value and "e" not in lowered:
                return int(value)
            return float(value)
        except ValueError:
            return value
