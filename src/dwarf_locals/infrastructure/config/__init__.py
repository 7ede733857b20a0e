"""Infrastructure configuration module."""

from .application_config import REPORT_VIEWS, Config
from .dwarf_config import DEFAULT_CONFIG, get_config

__all__ = ["Config", "DEFAULT_CONFIG", "REPORT_VIEWS", "get_config"]
