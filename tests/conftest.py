"""Pytest configuration and shared fixtures."""

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from dwarf_locals.core.models import DebugInfo
from dwarf_locals.core.sections import DwarfSections
from dwarf_locals.infrastructure.logging import LoggerSetup

from tests.dwarf_assembler import DwarfAssembler
from tests.sample_programs import build_debug_info, sample_unit


@pytest.fixture
def assembler() -> DwarfAssembler:
    """Fresh assembler for building synthetic sections."""
    return DwarfAssembler()


@pytest.fixture
def sample_sections(assembler: DwarfAssembler) -> DwarfSections:
    """Sections holding the single sample unit."""
    assembler.add_unit(sample_unit())
    return assembler.sections()


@pytest.fixture
def sample_debug_info(sample_sections: DwarfSections) -> DebugInfo:
    """Decoded sample unit."""
    return build_debug_info(sample_sections)


@pytest.fixture
def clean_logging() -> Iterator[None]:
    """Allow a test to run LoggerSetup.initialize() and leave no handlers behind."""
    LoggerSetup.reset()
    yield
    LoggerSetup.reset()
