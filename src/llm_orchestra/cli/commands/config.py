"""Inspect the merged configuration."""

import typer
import yaml

from llm_orchestra.core.bootstrap import load_settings
from llm_orchestra.core.error_handler import safe_entrypoint

app = typer.Typer(name="config", help="Inspect configuration")


@app.callback()
def config_callback() -> None:
    """Inspect configuration."""


@app.command("show")
@safe_entrypoint("cli.config.show")
def show_config(
    config_file: str | None = typer.Option(
        None, "--config", help="YAML configuration file"
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (e.g., DEBUG, INFO, WARNING, ERROR)"
    ),
) -> None:
    """
    Print the effective configuration as YAML.

    Sources are merged in this order, later ones winning:
    1. Packaged defaults
    2. The --config file
    3. ORCHESTRA_* environment variables (including .env files)

    API keys are masked.
    """
    config = load_settings(config_file, log_level=log_level)
    typer.echo(yaml.safe_dump(config.masked_dump(), default_flow_style=False, sort_keys=False))
