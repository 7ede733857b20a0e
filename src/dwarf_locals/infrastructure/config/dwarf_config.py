#!/usr/bin/env python3

"""Engine tuning for DWARF decoding and extraction."""

import os

from ..logging import get_logger

logger = get_logger(__name__)

# Default configuration values
DEFAULT_CONFIG = {
    # Decode and extract units on a thread pool
    "PARALLEL_UNITS": False,
    # Worker threads (0 means one per CPU)
    "MAX_WORKERS": 0,
    # Stop after this many units (0 means no limit)
    "MAX_UNITS": 0,
    # Render register names for the ELF machine instead of reg<n>
    "ARCH_REGISTER_NAMES": True,
}


def get_config() -> dict:
    """Get configuration with environment variable overrides.

    Every key can be overridden by a DWARF_<KEY> variable; a value that does
    not parse as the key's type is ignored with a warning.

    Returns:
        Configuration dictionary
    """
    config = DEFAULT_CONFIG.copy()

    for key in config:
        env_value = os.getenv(f"DWARF_{key}")
        if env_value is None:
            continue
        if isinstance(config[key], bool):
            config[key] = env_value.lower() in ("true", "1", "yes", "on")
        elif isinstance(config[key], int):
            try:
                config[key] = int(env_value)
            except ValueError:
                logger.warning(f"Ignoring DWARF_{key}={env_value!r}: not an integer")
        else:
            config[key] = env_value

    return config
