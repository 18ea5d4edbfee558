"""Logger module."""

import logging
import sys

import colorlog

loggers: dict[str, logging.Logger] = {}

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
COLOR_FORMAT = "%(log_color)s %(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level(log_level: str) -> int:
    level = LOG_LEVELS.get(log_level.upper())
    if level is None:
        err_msg = f"Invalid log level: {log_level}"
        raise ValueError(err_msg)
    return level


def get_logger(
    name: str,
    log_handler: str = "stdout",
    log_level: str = "INFO",
    log_color: bool = False,
) -> logging.Logger:
    """Get logger.

    Args:
        name: The name of the logger.
        log_handler: The log handler type ('stdout').
        log_level: The logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL').
        log_color: Whether to use colored output.

    Returns:
        logging.Logger: Configured logger instance.

    Raises:
        ValueError: If invalid handler or log level is provided.
    """
    if name in loggers:
        return loggers[name]

    if log_handler != "stdout":
        err_msg = f"Invalid handler: {log_handler}"
        raise ValueError(err_msg)

    level = _resolve_level(log_level)

    if log_color:
        logger = colorlog.getLogger(name)
        handler: logging.Handler = colorlog.StreamHandler(sys.stdout)
        formatter: logging.Formatter = colorlog.ColoredFormatter(
            COLOR_FORMAT,
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    else:
        logger = logging.getLogger(name)
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(PLAIN_FORMAT)

    logger.setLevel(level)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    loggers[name] = logger
    return logger


def set_log_level(log_level: str, *, log_color: bool | None = None) -> None:
    """Apply a level (and optionally a color mode) to every cached logger.

    Module loggers are created at import time with the default level; the
    entry point calls this once the command line and environment are parsed.

    Raises:
        ValueError: If the log level is unknown.
    """
    level = _resolve_level(log_level)
    for logger in loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
            if log_color is True:
                handler.setFormatter(colorlog.ColoredFormatter(COLOR_FORMAT))
            elif log_color is False:
                handler.setFormatter(logging.Formatter(PLAIN_FORMAT))


__all__ = ["LOG_LEVELS", "get_logger", "set_log_level"]
