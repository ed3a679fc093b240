"""Opt-in console logging for the ``tagged`` loggers."""
import logging
import sys


class _TaggedHandler(logging.StreamHandler):
    """Marks the handler installed by `configure_logging`."""


def _build_formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Send ``tagged`` log records to stdout at `level`.

    The library itself only installs a `NullHandler`. Safe to call multiple
    times; later calls just change the level.
    """
    logger = logging.getLogger("tagged")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not any(isinstance(h, _TaggedHandler) for h in logger.handlers):
        handler = _TaggedHandler(sys.stdout)
        handler.setFormatter(_build_formatter())
        logger.addHandler(handler)
    return logger
