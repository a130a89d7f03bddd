"""Helpers to route the ``febexdsp`` log records to a colored console."""

import logging

import colorlog

DEBUG = logging.DEBUG
INFO = logging.INFO
WARNING = logging.WARNING
ERROR = logging.ERROR
CRITICAL = logging.CRITICAL

DEFAULT_FORMAT = "%(log_color)s%(name)s [%(levelname)s] %(message)s"


def setup(
    level: int = logging.INFO,
    logger: logging.Logger = None,
    fmt: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Attach a colored stream handler to a logger and set its level.

    Calling it again on the same logger only changes the level and format,
    it never stacks a second handler.

    Parameters
    ----------
    level
        logging level (see :mod:`logging` module).
    logger
        the logger to set up. Defaults to the ``febexdsp`` package logger.
    fmt
        :class:`colorlog.ColoredFormatter` format string.

    Examples
    --------
    >>> from febexdsp import logging
    >>> logging.setup(level=logging.DEBUG)
    """
    if logger is None:
        logger = colorlog.getLogger("febexdsp")

    handler = next(
        (h for h in logger.handlers if isinstance(h, colorlog.StreamHandler)), None
    )
    if handler is None:
        handler = colorlog.StreamHandler()
        logger.addHandler(handler)
    handler.setFormatter(colorlog.ColoredFormatter(fmt))

    logger.setLevel(level)
    return logger
