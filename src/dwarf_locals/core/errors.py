#!/usr/bin/env python3

"""Exception hierarchy for DWARF decoding.

Structural errors abort the compilation unit being decoded; the extraction
service records them per unit and carries on with the next one.
"""


class DwarfDecodeError(Exception):
    """Base class for every structural decoding failure."""


class TruncatedDataError(DwarfDecodeError):
    """A read ran past the end of a section or unit."""

    def __init__(self, offset: int, size: int, end: int, what: str = "read") -> None:
        super().__init__(
            f"{what} of {size} byte(s) at 0x{offset:x} runs past end of data at 0x{end:x}"
        )
        self.offset = offset
        self.size = size
        self.end = end


class MalformedAbbreviationError(DwarfDecodeError):
    """The abbreviation table is structurally invalid."""


class UnknownAbbreviationCodeError(DwarfDecodeError):
    """A DIE references a code absent from its unit's abbreviation table."""

    def __init__(self, code: int, table_offset: int, die_offset: int | None = None) -> None:
        where = f" (DIE at 0x{die_offset:x})" if die_offset is not None else ""
        super().__init__(
            f"abbreviation code {code} not found in table at 0x{table_offset:x}{where}"
        )
        self.code = code
        self.table_offset = table_offset
        self.die_offset = die_offset


class UnknownFormError(DwarfDecodeError):
    """An attribute uses a form the decoder does not recognize."""

    def __init__(self, form_code: int) -> None:
        super().__init__(f"unknown attribute form 0x{form_code:x}")
        self.form_code = form_code


class FormMismatchError(DwarfDecodeError):
    """An attribute value does not have the variant its use requires."""


class UnresolvedTypeReferenceError(DwarfDecodeError):
    """A type reference points outside any known DIE."""

    def __init__(self, offset: int) -> None:
        super().__init__(f"reference to 0x{offset:x} points outside any known DIE")
        self.offset = offset


class MalformedUnitError(DwarfDecodeError):
    """A compilation unit header or DIE stream is inconsistent."""
