"""Package logger and small shared helpers."""

from __future__ import annotations

import logging

import torch

# Setup a default logger with NullHandler
logger = logging.getLogger("torch_fastdiag")
logger.addHandler(logging.NullHandler())

DEFAULT_DTYPE = torch.float64


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Attach a console handler to the package logger.

    Calling this more than once does not duplicate handlers.

    Args:
        level (int): logging level for the package logger and handler.

    Returns:
        The configured package logger.
    """
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    logger.setLevel(level)

    if not logger.handlers or all(
        isinstance(h, logging.NullHandler) for h in logger.handlers
    ):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.handlers = [console_handler]
    else:
        for handler in logger.handlers:
            handler.setLevel(level)

    return logger
