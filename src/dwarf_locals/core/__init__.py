#!/usr/bin/env python3

"""Core DWARF decoding: byte cursor, abbreviations, forms and the DIE tree."""

from .abbreviations import AbbreviationTable, parse_abbreviation_table
from .byte_cursor import ByteCursor
from .die_tree import DieTreeBuilder
from .errors import (
    DwarfDecodeError,
    FormMismatchError,
    MalformedAbbreviationError,
    MalformedUnitError,
    TruncatedDataError,
    UnknownAbbreviationCodeError,
    UnknownFormError,
    UnresolvedTypeReferenceError,
)
from .models import DIE, AttributeKind, AttributeValue, CompilationUnit, DebugInfo, UnitHeader
from .sections import DwarfSections

__all__ = [
    "DIE",
    "AbbreviationTable",
    "AttributeKind",
    "AttributeValue",
    "ByteCursor",
    "CompilationUnit",
    "DebugInfo",
    "DieTreeBuilder",
    "DwarfDecodeError",
    "DwarfSections",
    "FormMismatchError",
    "MalformedAbbreviationError",
    "MalformedUnitError",
    "TruncatedDataError",
    "UnitHeader",
    "UnknownAbbreviationCodeError",
    "UnknownFormError",
    "UnresolvedTypeReferenceError",
    "parse_abbreviation_table",
]
