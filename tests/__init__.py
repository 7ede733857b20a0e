"""Test suite for DWARF Locals.

Test Structure:
- core/: Byte cursor, abbreviation tables and DIE tree construction
- domain/: Location evaluation, type resolution and variable extraction
- application/: Extraction service and report views
- infrastructure/: ELF section access and logging
- config/: Configuration management

Synthetic debug sections are built with dwarf_assembler.DwarfAssembler.

Run tests with pytest:
    pytest                    # Run all tests
    pytest -m unit            # Run unit tests only
"""
