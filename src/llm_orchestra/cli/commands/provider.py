"""
Provider inspection commands for the CLI.
"""

import asyncio

import typer

from llm_orchestra.core.bootstrap import bootstrap
from llm_orchestra.core.error_handler import safe_entrypoint
from llm_orchestra.orchestra import Orchestra
from llm_orchestra.providers import get_provider_for_model
from llm_orchestra.utils.logging import get_logger

log = get_logger("cli.provider")


async def _check_availability(orchestra: Orchestra, names: list[str]) -> dict[str, bool]:
    try:
        results = await asyncio.gather(
            *(orchestra.is_provider_available(name) for name in names)
        )
        return dict(zip(names, results))
    finally:
        await orchestra.shutdown()


async def _models(orchestra: Orchestra, provider: str) -> list[str]:
    try:
        return await orchestra.list_models(provider)
    finally:
        await orchestra.shutdown()


@safe_entrypoint("cli.provider.list")
def list_providers(
    check: bool = typer.Option(
        False, "--check", help="Check each provider's availability"
    ),
    config_file: str | None = typer.Option(
        None, "--config", help="YAML configuration file"
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (e.g., DEBUG, INFO, WARNING, ERROR)"
    ),
) -> None:
    """List providers that have credentials configured."""
    orchestra = bootstrap(config_file, log_level=log_level)
    names = orchestra.get_providers()

    if not names:
        typer.echo("No providers configured")
        asyncio.run(orchestra.shutdown())
        return

    if not check:
        typer.echo("Configured providers:")
        for name in names:
            typer.echo(f"  - {name}")
        asyncio.run(orchestra.shutdown())
        return

    status = asyncio.run(_check_availability(orchestra, names))
    typer.echo(f"{'Name':<12} {'Status'}")
    typer.echo("-" * 24)
    for name in names:
        typer.echo(f"{name:<12} {'available' if status[name] else 'unavailable'}")


@safe_entrypoint("cli.provider.resolve")
def resolve(model: str = typer.Argument(..., help="Model name")) -> None:
    """Print the provider MODEL resolves to."""
    provider = get_provider_for_model(model)
    if provider is None:
        typer.echo(f"No provider resolves model '{model}'", err=True)
        raise typer.Exit(code=1)
    typer.echo(provider)


@safe_entrypoint("cli.provider.models")
def list_models(
    provider: str = typer.Argument(..., help="Provider name"),
    config_file: str | None = typer.Option(
        None, "--config", help="YAML configuration file"
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (e.g., DEBUG, INFO, WARNING, ERROR)"
    ),
) -> None:
    """List the models PROVIDER serves."""
    orchestra = bootstrap(config_file, log_level=log_level)
    models = asyncio.run(_models(orchestra, provider))

    if not models:
        typer.echo(f"No models available for provider '{provider}'")
        return

    typer.echo(f"Provider: {provider}")
    for model in models:
        typer.echo(f"  - {model}")
