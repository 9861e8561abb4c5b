"""
Logging utilities for mcp-lite.
"""

import logging
from typing import Dict, Optional, Union

from rich.console import Console
from rich.logging import RichHandler


# Global logger configuration
_loggers: Dict[str, logging.Logger] = {}
_console = Console(stderr=True)
_log_level = logging.INFO
_log_handlers = [RichHandler(console=_console, rich_tracebacks=True)]


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def configure_logging(
    level: Union[int, str] = logging.INFO,
    add_file_handler: Optional[str] = None,
    console: bool = True,
) -> None:
    """
    Configure the logging system.

    Args:
        level: Logging level, as an int or a name such as "debug".
        add_file_handler: If provided, also log to this file.
        console: Whether to keep the rich console handler.
    """
    global _log_level, _log_handlers

    _log_level = _coerce_level(level)
    _log_handlers = []
    if console:
        _log_handlers.append(RichHandler(console=_console, rich_tracebacks=True))

    if add_file_handler:
        file_handler = logging.FileHandler(add_file_handler)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        ))
        _log_handlers.append(file_handler)

    # Update existing loggers
    for logger in _loggers.values():
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

        for handler in _log_handlers:
            logger.addHandler(handler)

        logger.setLevel(_log_level)


class PatchedLogger(logging.Logger):
    """
    A logger that supports the 'data' keyword for structured context.
    """

    def _log(
        self,
        level,
        msg,
        args,
        exc_info=None,
        extra=None,
        stack_info=False,
        stacklevel=1,
        data=None,
    ):
        if data is not None:
            msg = f"{msg} {data}"

        super()._log(level, msg, args, exc_info, extra, stack_info, stacklevel + 1)


# Register our custom logger class
logging.setLoggerClass(PatchedLogger)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name.

    Args:
        name: Name of the logger.

    Returns:
        Logger instance.
    """
    if name in _loggers:
        return _loggers[name]

    logger = logging.getLogger(name)
    logger.setLevel(_log_level)

    # Remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    # Add our handlers
    for handler in _log_handlers:
        logger.addHandler(handler)

    _loggers[name] = logger
    return logger
