import logging
import sys
from typing import TextIO

ROOT_LOGGER_NAME = "llm_orchestra"

# Emojis per level
EMOJI_MAP = {
    "DEBUG": "🐞",
    "INFO": "💡",
    "WARNING": "⚠️",
    "ERROR": "🔥",
    "CRITICAL": "💀",
}

# Attributes every LogRecord carries; anything else was passed through `extra=`
_STANDARD_ATTRS = frozenset(
    logging.LogRecord(
        name="",
        level=logging.NOTSET,
        pathname="",
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    ).__dict__
) | {"message", "asctime", "taskName"}


class EmojiFormatter(logging.Formatter):
    """Formatter that adds emojis, the subsystem name, and `extra=` fields.

    Router and tracer log lines pass ``provider``, ``model`` and ``trace_id``
    as extras; they are rendered as ``key=value`` pairs after the message.
    """

    def format(self, record: logging.LogRecord) -> str:
        emoji = EMOJI_MAP.get(record.levelname, "")
        name = record.name.removeprefix(f"{ROOT_LOGGER_NAME}.")
        log_line = f"{emoji} [{record.levelname:<8}] ({name}) {record.getMessage()}"

        extra_attrs = {
            k: v
            for k, v in record.__dict__.items()
            if k not in _STANDARD_ATTRS and not k.startswith("_")
        }
        if extra_attrs:
            extra_str = " ".join(f"{k}={v!r}" for k, v in extra_attrs.items())
            log_line = f"{log_line} | {extra_str}"

        if record.exc_info:
            log_line = f"{log_line}\n{self.formatException(record.exc_info)}"

        return log_line


def setup_logging(level: int | str = logging.INFO, stream: TextIO | None = None) -> None:
    """Configure the root logger with the emoji formatter.

    Calling it again replaces the previously installed handler.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(EmojiFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a subsystem logger under the ``llm_orchestra`` namespace."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
