#!/usr/bin/env python3

"""Abbreviation table parsing (.debug_abbrev).

Each compilation unit names the table it uses by offset. A table is a
sequence of declarations terminated by code 0:

    code (ULEB128), tag (ULEB128), has_children (u8),
    (attribute (ULEB128), form (ULEB128) [, implicit const (SLEB128)])*, (0, 0)
"""

from collections.abc import Iterator
from dataclasses import dataclass

from ..infrastructure.logging import get_logger
from .byte_cursor import ByteCursor
from .constants import DW_CHILDREN_NO, DW_CHILDREN_YES, FORM_NAMES, attribute_name, tag_name
from .errors import MalformedAbbreviationError, UnknownAbbreviationCodeError
from .forms import FORM_DECODERS, IMPLICIT_CONST_FORM

logger = get_logger(__name__)


@dataclass(frozen=True)
class AttributeSpec:
    """One (attribute, form) pair of a declaration."""

    name: str
    form: str
    implicit_const: int | None = None


@dataclass(frozen=True)
class AbbreviationDeclaration:
    """Schema of a DIE: tag, children flag and ordered attribute specs."""

    code: int
    tag: str
    tag_code: int
    has_children: bool
    attributes: tuple[AttributeSpec, ...]


class AbbreviationTable:
    """Read-only mapping from abbreviation code to declaration."""

    def __init__(self, offset: int, declarations: dict[int, AbbreviationDeclaration]) -> None:
        self.offset = offset
        self._declarations = declarations

    def get(self, code: int, die_offset: int | None = None) -> AbbreviationDeclaration:
        """Return the declaration for code.

        Raises:
            UnknownAbbreviationCodeError: If the table has no such code
        """
        declaration = self._declarations.get(code)
        if declaration is None:
            raise UnknownAbbreviationCodeError(code, self.offset, die_offset)
        return declaration

    def __contains__(self, code: int) -> bool:
        return code in self._declarations

    def __len__(self) -> int:
        return len(self._declarations)

    def __iter__(self) -> Iterator[AbbreviationDeclaration]:
        return iter(self._declarations.values())


def _read_attribute_specs(cursor: ByteCursor, code: int) -> tuple[AttributeSpec, ...]:
    specs: list[AttributeSpec] = []
    while True:
        attr_code = cursor.uleb128()
        form_code = cursor.uleb128()
        if attr_code == 0 and form_code == 0:
            return tuple(specs)

        form = FORM_NAMES.get(form_code)
        if form is None or form not in FORM_DECODERS:
            raise MalformedAbbreviationError(
                f"abbreviation {code}: unrecognized form 0x{form_code:x} "
                f"for {attribute_name(attr_code)}"
            )

        implicit_const = cursor.sleb128() if form == IMPLICIT_CONST_FORM else None
        specs.append(AttributeSpec(attribute_name(attr_code), form, implicit_const))


def parse_abbreviation_table(data: bytes, offset: int = 0) -> AbbreviationTable:
    """Parse the abbreviation table starting at offset.

    Args:
        data: Raw .debug_abbrev section bytes
        offset: Offset of the table named by the unit header

    Returns:
        AbbreviationTable for one compilation unit

    Raises:
        MalformedAbbreviationError: On a repeated code, bad children flag or unknown form
        TruncatedDataError: If the section ends before the code-0 sentinel
    """
    cursor = ByteCursor(data, offset)
    declarations: dict[int, AbbreviationDeclaration] = {}

    while True:
        code = cursor.uleb128()
        if code == 0:
            break
        if code in declarations:
            raise MalformedAbbreviationError(
                f"duplicate abbreviation code {code} in table at 0x{offset:x}"
            )

        tag_code = cursor.uleb128()
        children = cursor.u8()
        if children not in (DW_CHILDREN_NO, DW_CHILDREN_YES):
            raise MalformedAbbreviationError(
                f"abbreviation {code}: invalid has_children value {children}"
            )

        declarations[code] = AbbreviationDeclaration(
            code=code,
            tag=tag_name(tag_code),
            tag_code=tag_code,
            has_children=children == DW_CHILDREN_YES,
            attributes=_read_attribute_specs(cursor, code),
        )

    logger.debug(f"Parsed {len(declarations)} abbreviations from table at 0x{offset:x}")
    return AbbreviationTable(offset, declarations)
