#!/usr/bin/env python3

"""Attribute value decoding, one function per DW_FORM.

Forms are not self-describing: the abbreviation declaration names the form
of each attribute and the decoder for that form is looked up here. The table
is closed; a form missing from it is rejected when the abbreviation table is
parsed.
"""

from collections.abc import Callable
from dataclasses import dataclass

from .byte_cursor import ByteCursor
from .constants import FORM_NAMES
from .errors import UnknownFormError
from .models import AttributeKind, AttributeValue, UnitHeader

IMPLICIT_CONST_FORM = "DW_FORM_implicit_const"
INDIRECT_FORM = "DW_FORM_indirect"


@dataclass
class FormReader:
    """Everything a form decoder needs besides the form itself."""

    cursor: ByteCursor
    header: UnitHeader
    str_section: bytes = b""
    line_str_section: bytes = b""
    implicit_const: int | None = None

    def read_offset(self) -> int:
        return self.cursor.read_uint(self.header.offset_size)

    def read_address(self) -> int:
        return self.cursor.read_uint(self.header.address_size)


FormDecoder = Callable[[FormReader, str], AttributeValue]


def _unsigned(size: int) -> FormDecoder:
    def decode(reader: FormReader, form: str) -> AttributeValue:
        return AttributeValue(AttributeKind.UNSIGNED, reader.cursor.read_uint(size), form)

    return decode


def _index(size: int) -> FormDecoder:
    def decode(reader: FormReader, form: str) -> AttributeValue:
        return AttributeValue(AttributeKind.INDEX, reader.cursor.read_uint(size), form)

    return decode


def _unit_reference(size: int) -> FormDecoder:
    def decode(reader: FormReader, form: str) -> AttributeValue:
        relative = reader.cursor.read_uint(size)
        return AttributeValue(AttributeKind.REFERENCE, reader.header.offset + relative, form)

    return decode


def _block(length_size: int) -> FormDecoder:
    def decode(reader: FormReader, form: str) -> AttributeValue:
        length = reader.cursor.read_uint(length_size)
        return AttributeValue(AttributeKind.BLOCK, reader.cursor.read_bytes(length), form)

    return decode


def _uleb_block(reader: FormReader, form: str) -> AttributeValue:
    length = reader.cursor.uleb128()
    return AttributeValue(AttributeKind.BLOCK, reader.cursor.read_bytes(length), form)


def _address(reader: FormReader, form: str) -> AttributeValue:
    return AttributeValue(AttributeKind.ADDRESS, reader.read_address(), form)


def _sdata(reader: FormReader, form: str) -> AttributeValue:
    return AttributeValue(AttributeKind.SIGNED, reader.cursor.sleb128(), form)


def _udata(reader: FormReader, form: str) -> AttributeValue:
    return AttributeValue(AttributeKind.UNSIGNED, reader.cursor.uleb128(), form)


def _uleb_index(reader: FormReader, form: str) -> AttributeValue:
    return AttributeValue(AttributeKind.INDEX, reader.cursor.uleb128(), form)


def _ref_udata(reader: FormReader, form: str) -> AttributeValue:
    return AttributeValue(
        AttributeKind.REFERENCE, reader.header.offset + reader.cursor.uleb128(), form
    )


def _ref_addr(reader: FormReader, form: str) -> AttributeValue:
    # DWARF 2 encoded DW_FORM_ref_addr with the target address size
    if reader.header.version <= 2:
        target = reader.read_address()
    else:
        target = reader.read_offset()
    return AttributeValue(AttributeKind.REFERENCE, target, form)


def _inline_string(reader: FormReader, form: str) -> AttributeValue:
    value = reader.cursor.cstring().decode("utf-8", errors="replace")
    return AttributeValue(AttributeKind.STRING, value, form)


def _strp(reader: FormReader, form: str) -> AttributeValue:
    offset = reader.read_offset()
    cursor = ByteCursor(reader.str_section, offset, reader.cursor.little_endian)
    return AttributeValue(
        AttributeKind.STRING, cursor.cstring().decode("utf-8", errors="replace"), form
    )


def _line_strp(reader: FormReader, form: str) -> AttributeValue:
    offset = reader.read_offset()
    cursor = ByteCursor(reader.line_str_section, offset, reader.cursor.little_endian)
    return AttributeValue(
        AttributeKind.STRING, cursor.cstring().decode("utf-8", errors="replace"), form
    )


def _section_offset(reader: FormReader, form: str) -> AttributeValue:
    return AttributeValue(AttributeKind.SECTION_OFFSET, reader.read_offset(), form)


def _flag(reader: FormReader, form: str) -> AttributeValue:
    return AttributeValue(AttributeKind.FLAG, reader.cursor.u8() != 0, form)


def _flag_present(reader: FormReader, form: str) -> AttributeValue:
    return AttributeValue(AttributeKind.FLAG, True, form)


def _implicit_const(reader: FormReader, form: str) -> AttributeValue:
    return AttributeValue(AttributeKind.SIGNED, reader.implicit_const, form)


def _data16(reader: FormReader, form: str) -> AttributeValue:
    return AttributeValue(AttributeKind.BLOCK, reader.cursor.read_bytes(16), form)


def _indirect(reader: FormReader, form: str) -> AttributeValue:
    form_code = reader.cursor.uleb128()
    actual = FORM_NAMES.get(form_code)
    if actual is None or actual not in FORM_DECODERS or actual == INDIRECT_FORM:
        raise UnknownFormError(form_code)
    return decode_form(reader, actual)


FORM_DECODERS: dict[str, FormDecoder] = {
    "DW_FORM_addr": _address,
    "DW_FORM_block1": _block(1),
    "DW_FORM_block2": _block(2),
    "DW_FORM_block4": _block(4),
    "DW_FORM_block": _uleb_block,
    "DW_FORM_exprloc": _uleb_block,
    "DW_FORM_data1": _unsigned(1),
    "DW_FORM_data2": _unsigned(2),
    "DW_FORM_data4": _unsigned(4),
    "DW_FORM_data8": _unsigned(8),
    "DW_FORM_data16": _data16,
    "DW_FORM_sdata": _sdata,
    "DW_FORM_udata": _udata,
    "DW_FORM_string": _inline_string,
    "DW_FORM_strp": _strp,
    "DW_FORM_line_strp": _line_strp,
    "DW_FORM_flag": _flag,
    "DW_FORM_flag_present": _flag_present,
    "DW_FORM_ref1": _unit_reference(1),
    "DW_FORM_ref2": _unit_reference(2),
    "DW_FORM_ref4": _unit_reference(4),
    "DW_FORM_ref8": _unit_reference(8),
    "DW_FORM_ref_udata": _ref_udata,
    "DW_FORM_ref_addr": _ref_addr,
    "DW_FORM_ref_sig8": _unsigned(8),
    "DW_FORM_sec_offset": _section_offset,
    "DW_FORM_strx": _uleb_index,
    "DW_FORM_strx1": _index(1),
    "DW_FORM_strx2": _index(2),
    "DW_FORM_strx3": _index(3),
    "DW_FORM_strx4": _index(4),
    "DW_FORM_addrx": _uleb_index,
    "DW_FORM_addrx1": _index(1),
    "DW_FORM_addrx2": _index(2),
    "DW_FORM_addrx3": _index(3),
    "DW_FORM_addrx4": _index(4),
    "DW_FORM_loclistx": _uleb_index,
    "DW_FORM_rnglistx": _uleb_index,
    "DW_FORM_implicit_const": _implicit_const,
    "DW_FORM_indirect": _indirect,
    "DW_FORM_GNU_ref_alt": _section_offset,
    "DW_FORM_GNU_strp_alt": _section_offset,
}

STRING_INDEX_FORMS = frozenset(
    {"DW_FORM_strx", "DW_FORM_strx1", "DW_FORM_strx2", "DW_FORM_strx3", "DW_FORM_strx4"}
)


def decode_form(reader: FormReader, form: str) -> AttributeValue:
    """Decode one attribute value of the given form at the reader's cursor."""
    return FORM_DECODERS[form](reader, form)
