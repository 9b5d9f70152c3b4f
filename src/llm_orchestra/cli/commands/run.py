"""Run a single completion request from the command line."""

import asyncio

import typer

from llm_orchestra.core.bootstrap import bootstrap
from llm_orchestra.core.error_handler import safe_entrypoint
from llm_orchestra.orchestra import Orchestra
from llm_orchestra.types import CompletionMeta, CompletionRequest, Message, StreamMeta
from llm_orchestra.utils.logging import get_logger

log = get_logger("cli.run")


def format_meta(meta: CompletionMeta | StreamMeta) -> str:
    """One-line summary of where a completion came from and what it cost."""
    parts = [f"[{meta.provider or '?'}/{meta.model or '?'}]"]
    if meta.tokens is not None:
        parts.append(f"tokens={meta.tokens.input_tokens}/{meta.tokens.output_tokens}")
    if meta.cost is not None:
        parts.append(f"cost=${meta.cost:.6f}")
    if meta.latency_ms is not None:
        parts.append(f"latency={meta.latency_ms:.0f}ms")
    parts.append(f"failover_attempts={meta.failover_attempts or 0}")
    if meta.trace_id:
        parts.append(f"trace_id={meta.trace_id}")
    return " ".join(parts)


async def _run_complete(orchestra: Orchestra, request: CompletionRequest) -> None:
    try:
        response = await orchestra.complete(request)
        typer.echo(response.content)
        typer.echo(format_meta(response.meta))
    finally:
        await orchestra.shutdown()


async def _run_stream(orchestra: Orchestra, request: CompletionRequest) -> None:
    final_meta = None
    try:
        async for chunk in orchestra.stream(request):
            if chunk.content:
                typer.echo(chunk.content, nl=False)
            if chunk.meta is not None:
                final_meta = chunk.meta
        typer.echo("")
        if final_meta is not None:
            typer.echo(format_meta(final_meta))
    finally:
        await orchestra.shutdown()


@safe_entrypoint("cli.complete")
def complete(
    model: str = typer.Argument(..., help="Primary model name"),
    prompt: str = typer.Argument(..., help="User prompt"),
    fallback: list[str] | None = typer.Option(
        None, "--fallback", "-f", help="Fallback model (repeatable, tried in order)"
    ),
    system: str | None = typer.Option(None, "--system", "-s", help="System prompt"),
    stream: bool = typer.Option(False, "--stream", help="Stream the response"),
    timeout_ms: float | None = typer.Option(
        None, "--timeout-ms", help="Per-attempt timeout in milliseconds"
    ),
    max_tokens: int | None = typer.Option(None, "--max-tokens", help="Output token limit"),
    config_file: str | None = typer.Option(
        None, "--config", help="YAML configuration file"
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (e.g., DEBUG, INFO, WARNING, ERROR)"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show attempt history and tracebacks on failure"
    ),
) -> None:
    """Send PROMPT to MODEL, failing over to each --fallback model in turn."""
    orchestra = bootstrap(config_file, log_level=log_level)

    messages = []
    if system:
        messages.append(Message(role="system", content=system))
    messages.append(Message(role="user", content=prompt))

    request = CompletionRequest(
        model=model,
        messages=messages,
        fallback=fallback or None,
        max_tokens=max_tokens,
        timeout_ms=timeout_ms,
        tags=["cli"],
    )
    log.debug(f"Sending request to {model} with fallbacks {fallback or []}")

    if stream:
        asyncio.run(_run_stream(orchestra, request))
    else:
        asyncio.run(_run_complete(orchestra, request))
