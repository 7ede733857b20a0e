#!/usr/bin/env python3

"""Application layer: extraction orchestration and report rendering."""

from .extraction_service import ExtractionResult, ExtractionService, UnitReport, extract_file
from .report_emitter import render_dies, render_functions, render_types

__all__ = [
    "ExtractionResult",
    "ExtractionService",
    "UnitReport",
    "extract_file",
    "render_dies",
    "render_functions",
    "render_types",
]
