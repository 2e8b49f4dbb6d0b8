import logging
import os
from typing import List, Optional, Union


_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

ROOT_NAME = "shelfaware"
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured: List[logging.Logger] = []


def _coerce_level(value: Union[str, int, None]) -> int:
    if isinstance(value, str):
        return _LEVELS.get(value.upper().strip(), logging.INFO)
    if isinstance(value, int):
        return value
    return logging.INFO


def _handlers(level: int) -> List[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    log_file = os.environ.get("LOG_FILE")
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as exc:
            logging.getLogger(ROOT_NAME).warning(f"LOG_FILE {log_file!r} not usable: {exc}")

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def get_logger(name: str) -> logging.Logger:
    """Return the ``shelfaware.<name>`` logger, configured on first use.

    - Level from LOG_LEVEL (default INFO); LOG_FILE adds an appending file handler.
    - Output goes to stderr so CLI commands keep stdout for their JSON results.
    """
    logger = logging.getLogger(f"{ROOT_NAME}.{name}")
    if getattr(logger, "_shelfaware_configured", False):
        return logger

    level = _coerce_level(os.environ.get("LOG_LEVEL", "INFO"))
    logger.setLevel(level)
    for handler in _handlers(level):
        logger.addHandler(handler)

    logger.propagate = False
    setattr(logger, "_shelfaware_configured", True)
    _configured.append(logger)
    return logger


def set_level(level: Union[str, int, None], logger: Optional[logging.Logger] = None) -> int:
    """Change the level of one configured logger, or of all of them."""
    value = _coerce_level(level)
    targets = [logger] if logger is not None else list(_configured)
    for target in targets:
        target.setLevel(value)
        for handler in target.handlers:
            handler.setLevel(value)
    return value
