"""DWARF Locals - stack parameter and local variable extraction from ELF debug info."""

from .application import ExtractionService, extract_file
from .infrastructure.config import Config
from .main import main

__version__ = "0.1.0"

__all__ = ["Config", "ExtractionService", "extract_file", "main"]
