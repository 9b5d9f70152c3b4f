"""Application bootstrap sequence for the CLI."""

import logging
from pathlib import Path

from llm_orchestra.config.env_loader import EnvLoader
from llm_orchestra.config.loader import ConfigLoader
from llm_orchestra.config.schemas import OrchestraConfig
from llm_orchestra.core.exceptions import ConfigError
from llm_orchestra.orchestra import Orchestra
from llm_orchestra.utils.logging import get_logger, setup_logging

logger = get_logger("core.bootstrap")


def _setup_environment(env_loader: EnvLoader) -> None:
    """Load .env files; a broken file is reported but does not stop startup."""
    try:
        env_loader.load_env_files()
    except ConfigError as e:
        logger.warning(f"Failed to load .env files: {e}")


def load_settings(
    config_path: str | Path | None = None, *, log_level: int | str | None = None
) -> OrchestraConfig:
    """Set up logging and environment, then load the merged configuration.

    An explicit ``log_level`` wins over the configured ``logging.level``.
    """
    setup_logging(level=log_level or logging.INFO)

    env_loader = EnvLoader()
    _setup_environment(env_loader)
    logger.debug("Environment setup completed")

    paths = [Path(config_path)] if config_path else None
    config = ConfigLoader(paths, env_loader=env_loader).load_config()

    if log_level is None:
        setup_logging(level=config.logging.level)
    return config


def bootstrap(
    config_path: str | Path | None = None, *, log_level: int | str | None = None
) -> Orchestra:
    """Initialize an Orchestra from configuration files and the environment.

    Raises:
        ConfigError: If the configuration cannot be loaded or validated
    """
    config = load_settings(config_path, log_level=log_level)
    orchestra = Orchestra(config)
    logger.debug(f"Orchestra ready with providers: {orchestra.get_providers()}")
    return orchestra
