#!/usr/bin/env python3

"""Logging helpers shared by every layer."""

import logging
from collections.abc import Callable
from functools import wraps
from time import time
from typing import Any, TypeVar, cast

F = TypeVar("F", bound=Callable[..., Any])


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger attached to the root handlers set up by LoggerSetup
    """
    return logging.getLogger(name)


def log_timing(func: F) -> F:
    """
    Log how long the decorated call took, at DEBUG level.

    Failures are logged with their elapsed time and re-raised unchanged.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        logger = get_logger(func.__module__)
        name = func.__qualname__
        start = time()
        logger.debug(f"{name} started")
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error(f"{name} failed after {time() - start:.2f}s: {e}")
            raise
        logger.debug(f"{name} finished in {time() - start:.2f}s")
        return result

    return cast("F", wrapper)
