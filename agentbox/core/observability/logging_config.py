"""
Logging configuration — central setup for the CLI entrypoint.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  AGENTBOX_LOG_LEVEL env var  >  WARNING (default)

Optional file output via AGENTBOX_LOG_FILE / AGENTBOX_LOG_FILE_LEVEL.

Output captured from supervised agents is emitted at DEBUG under the
``agentbox.agent.<tool>`` loggers.  AGENTBOX_AGENT_LOG_LEVEL sets a
threshold for that subtree alone: ``WARNING`` keeps a DEBUG log file
free of agent chatter, while leaving it unset lets agent lines follow
the handler levels like any other record.
"""

from __future__ import annotations

import logging
import sys

AGENT_LOGGER_PREFIX = "agentbox.agent"

_FILE_FORMAT = ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s", "%Y-%m-%d %H:%M:%S")

# Console format by threshold; the first entry whose ceiling the
# level does not exceed wins.
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    agent_level: str | None = None,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Separate level for the log file.  Defaults to
            ``level``.
        agent_level: Threshold for the ``agentbox.agent`` loggers only.
            ``None`` leaves them inheriting from the root.
    """
    console_level = _parse_level(level)
    handlers = [_console_handler(console_level)]

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(min(h.level for h in handlers))

    agents = logging.getLogger(AGENT_LOGGER_PREFIX)
    agents.setLevel(_parse_level(agent_level) if agent_level else logging.NOTSET)

    logging.raiseExceptions = False


def agent_logger(tool_id: str) -> logging.Logger:
    """Return the logger that receives a supervised agent's output lines."""
    return logging.getLogger(f"{AGENT_LOGGER_PREFIX}.{tool_id}")


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = next((f, d) for ceiling, f, d in _CONSOLE_FORMATS if level <= ceiling)
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(*_FILE_FORMAT))
    return handler


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
