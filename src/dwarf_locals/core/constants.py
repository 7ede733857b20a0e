"""DWARF names and code tables.

Numeric codes come from pyelftools' enum tables so that tag, attribute and
form names match what pyelftools itself reports.
"""

from enum import Enum

from elftools.dwarf.enums import ENUM_DW_AT, ENUM_DW_ATE, ENUM_DW_FORM, ENUM_DW_TAG


def _invert(table: dict) -> dict[int, str]:
    # The construct tables carry a non-integer "_default_" entry; the first
    # name registered for a code wins over later vendor aliases.
    inverted: dict[int, str] = {}
    for name, code in table.items():
        if isinstance(code, int):
            inverted.setdefault(code, name)
    return inverted


TAG_NAMES = _invert(ENUM_DW_TAG)
ATTRIBUTE_NAMES = _invert(ENUM_DW_AT)
FORM_NAMES = _invert(ENUM_DW_FORM)
ENCODING_NAMES = _invert(ENUM_DW_ATE)

TAG_CODES: dict[str, int] = {name: code for code, name in TAG_NAMES.items()}
ATTRIBUTE_CODES: dict[str, int] = {name: code for code, name in ATTRIBUTE_NAMES.items()}
FORM_CODES: dict[str, int] = {name: code for code, name in FORM_NAMES.items()}


def tag_name(code: int) -> str:
    """Name of a tag code; unknown codes keep their raw value in the name."""
    return TAG_NAMES.get(code, f"DW_TAG_unknown_0x{code:x}")


def attribute_name(code: int) -> str:
    return ATTRIBUTE_NAMES.get(code, f"DW_AT_unknown_0x{code:x}")


def encoding_name(code: int | None) -> str | None:
    if code is None:
        return None
    return ENCODING_NAMES.get(code, f"DW_ATE_unknown_0x{code:x}")


class DwTag(str, Enum):
    """DWARF tags the extractor dispatches on."""

    COMPILE_UNIT = "DW_TAG_compile_unit"
    PARTIAL_UNIT = "DW_TAG_partial_unit"
    TYPE_UNIT = "DW_TAG_type_unit"
    SUBPROGRAM = "DW_TAG_subprogram"
    FORMAL_PARAMETER = "DW_TAG_formal_parameter"
    VARIABLE = "DW_TAG_variable"
    LEXICAL_BLOCK = "DW_TAG_lexical_block"
    INLINED_SUBROUTINE = "DW_TAG_inlined_subroutine"
    BASE_TYPE = "DW_TAG_base_type"
    UNSPECIFIED_TYPE = "DW_TAG_unspecified_type"
    POINTER_TYPE = "DW_TAG_pointer_type"
    REFERENCE_TYPE = "DW_TAG_reference_type"
    RVALUE_REFERENCE_TYPE = "DW_TAG_rvalue_reference_type"
    ARRAY_TYPE = "DW_TAG_array_type"
    SUBRANGE_TYPE = "DW_TAG_subrange_type"
    STRUCTURE_TYPE = "DW_TAG_structure_type"
    CLASS_TYPE = "DW_TAG_class_type"
    UNION_TYPE = "DW_TAG_union_type"
    ENUMERATION_TYPE = "DW_TAG_enumeration_type"
    ENUMERATOR = "DW_TAG_enumerator"
    SUBROUTINE_TYPE = "DW_TAG_subroutine_type"
    UNSPECIFIED_PARAMETERS = "DW_TAG_unspecified_parameters"
    TYPEDEF = "DW_TAG_typedef"
    CONST_TYPE = "DW_TAG_const_type"
    VOLATILE_TYPE = "DW_TAG_volatile_type"
    RESTRICT_TYPE = "DW_TAG_restrict_type"
    ATOMIC_TYPE = "DW_TAG_atomic_type"
    MEMBER = "DW_TAG_member"
    INHERITANCE = "DW_TAG_inheritance"
    NAMESPACE = "DW_TAG_namespace"


# Unit types from the DWARF 5 unit header
DW_UT_COMPILE = 0x01
DW_UT_TYPE = 0x02
DW_UT_PARTIAL = 0x03
DW_UT_SKELETON = 0x04
DW_UT_SPLIT_COMPILE = 0x05
DW_UT_SPLIT_TYPE = 0x06

DW_CHILDREN_NO = 0x00
DW_CHILDREN_YES = 0x01

# Escape value in the 32-bit unit length announcing 64-bit DWARF
DWARF64_ESCAPE = 0xFFFFFFFF

SUPPORTED_VERSIONS = frozenset({2, 3, 4, 5})

# Target address widths a unit header may declare
ADDRESS_SIZES = (1, 2, 4, 8)
