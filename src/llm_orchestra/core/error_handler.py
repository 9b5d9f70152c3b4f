import inspect
import traceback
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from llm_orchestra.core.exceptions import AllProvidersFailedError, OrchestraError
from llm_orchestra.utils.logging import get_logger

logger = get_logger("core.error_handler")


def _describe_attempts(error: AllProvidersFailedError) -> str:
    lines = []
    for index, attempt in enumerate(error.attempts, start=1):
        outcome = "ok" if attempt.success else f"failed: {attempt.error}"
        lines.append(
            f"  {index}. {attempt.provider}/{attempt.model} "
            f"({attempt.latency_ms:.0f}ms) {outcome}"
        )
    return "\n".join(lines)


def handle_error(
    error: BaseException | None = None,
    *,
    context: str | None = None,
    verbose: bool = False,
    error_str: str | None = None,
) -> None:
    """Central error handler for CLI entry points.

    Args:
        error: The exception instance to handle (can be None if error_str is provided).
        context: Optional string describing where the error occurred.
        verbose: If True, log the attempt history and traceback for debugging.
        error_str: Optional error message string if no exception object is available.
    """
    ctx = f"[{context}]" if context else ""

    if error is None:
        logger.critical(f"{ctx} {error_str or 'An unknown error occurred'}".strip())
        return

    if isinstance(error, OrchestraError):
        logger.error(f"{ctx} {error.code}: {error}".strip())
        if verbose and isinstance(error, AllProvidersFailedError):
            logger.info(f"Attempt history:\n{_describe_attempts(error)}")
    else:
        error_msg = str(error) or "No error message provided"
        logger.critical(
            f"{ctx} Unexpected error: {type(error).__name__}: {error_msg}".strip()
        )

    if verbose:
        trace = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        logger.debug(f"Traceback:\n{trace}")


T = TypeVar("T")
P = ParamSpec("P")


def safe_entrypoint(context: str) -> Callable[[Callable[P, T]], Callable[P, T | None]]:
    """Decorator to wrap CLI commands with unified error handling.

    The wrapped command does not need a ``verbose`` parameter; when it has one
    its value controls how much detail is logged.
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T | None]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T | None:
            verbose = bool(kwargs.get("verbose", False))
            try:
                return func(*args, **kwargs)
            except Exception as err:
                # typer/click use exceptions for control flow
                if "Exit" in err.__class__.__name__:
                    raise
                handle_error(err, context=context, verbose=verbose)
                return None

        wrapper.__signature__ = inspect.signature(func)  # type: ignore[attr-defined]
        return wrapper

    return decorator
