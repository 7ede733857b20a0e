"""Decoded debug-information data model.

DIEs live in an arena keyed by their section offset; parent and child links
are offsets into that arena rather than nested objects.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import DwarfDecodeError, FormMismatchError, UnresolvedTypeReferenceError


class AttributeKind(Enum):
    """Variant of a decoded attribute value."""

    UNSIGNED = "unsigned"
    SIGNED = "signed"
    STRING = "string"
    FLAG = "flag"
    REFERENCE = "reference"  # absolute .debug_info offset
    BLOCK = "block"
    ADDRESS = "address"
    SECTION_OFFSET = "section_offset"  # offset into another section (e.g. loclists)
    INDEX = "index"  # strx/addrx/loclistx/rnglistx index not yet resolved


@dataclass(frozen=True)
class AttributeValue:
    """A decoded attribute value together with the form it came from."""

    kind: AttributeKind
    value: Any
    form: str

    @property
    def is_constant(self) -> bool:
        return self.kind in (AttributeKind.UNSIGNED, AttributeKind.SIGNED)


@dataclass
class DIE:
    """One Debug Information Entry."""

    offset: int
    tag: str
    tag_code: int
    unit_offset: int
    depth: int = 0
    parent: int | None = None
    attributes: dict[str, AttributeValue] = field(default_factory=dict)
    children: list[int] = field(default_factory=list)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def get_attribute(self, name: str) -> AttributeValue | None:
        return self.attributes.get(name)

    def _expect(self, name: str, *kinds: AttributeKind) -> AttributeValue | None:
        attr = self.attributes.get(name)
        if attr is None:
            return None
        if attr.kind not in kinds:
            expected = "/".join(k.value for k in kinds)
            raise FormMismatchError(
                f"{name} of DIE 0x{self.offset:x} is {attr.kind.value} "
                f"({attr.form}), expected {expected}"
            )
        return attr

    def get_string(self, name: str) -> str | None:
        attr = self._expect(name, AttributeKind.STRING)
        return None if attr is None else attr.value

    def get_name(self) -> str | None:
        return self.get_string("DW_AT_name")

    def get_constant(self, name: str) -> int | None:
        attr = self._expect(name, AttributeKind.UNSIGNED, AttributeKind.SIGNED)
        return None if attr is None else attr.value

    def get_reference(self, name: str) -> int | None:
        attr = self._expect(name, AttributeKind.REFERENCE)
        return None if attr is None else attr.value

    def get_flag(self, name: str) -> bool:
        attr = self._expect(name, AttributeKind.FLAG)
        return False if attr is None else bool(attr.value)

    def get_block(self, name: str) -> bytes | None:
        attr = self._expect(name, AttributeKind.BLOCK)
        return None if attr is None else attr.value


@dataclass(frozen=True)
class UnitHeader:
    """Fields of a compilation unit header."""

    offset: int
    unit_length: int
    offset_size: int  # 4 for 32-bit DWARF, 8 for 64-bit DWARF
    version: int
    unit_type: int
    address_size: int
    abbrev_offset: int
    die_offset: int  # first DIE, right after the header
    type_signature: int | None = None
    type_offset: int | None = None
    dwo_id: int | None = None

    @property
    def end_offset(self) -> int:
        """Offset one past the last byte of this unit."""
        initial_length_size = 12 if self.offset_size == 8 else 4
        return self.offset + initial_length_size + self.unit_length


@dataclass
class CompilationUnit:
    """A decoded unit: its header and the arena of its DIEs."""

    header: UnitHeader
    root_offset: int | None = None
    dies: dict[int, DIE] = field(default_factory=dict)

    @property
    def offset(self) -> int:
        return self.header.offset

    @property
    def root(self) -> DIE | None:
        return None if self.root_offset is None else self.dies[self.root_offset]

    def get_die(self, offset: int) -> DIE | None:
        return self.dies.get(offset)

    def iter_children(self, die: DIE) -> Iterator[DIE]:
        for child_offset in die.children:
            yield self.dies[child_offset]

    def parent_of(self, die: DIE) -> DIE | None:
        return None if die.parent is None else self.dies[die.parent]

    def iter_dies(self) -> Iterator[DIE]:
        """DIEs in section (pre-order) order."""
        return iter(self.dies.values())


@dataclass
class UnitResult:
    """Outcome of decoding one unit: either the unit or the error that stopped it."""

    offset: int
    unit: CompilationUnit | None = None
    error: DwarfDecodeError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.unit is not None


@dataclass
class DebugInfo:
    """All unit results of a .debug_info section plus the whole-file DIE index."""

    units: list[UnitResult] = field(default_factory=list)
    index: dict[int, DIE] = field(default_factory=dict)
    _units_by_offset: dict[int, CompilationUnit] = field(
        default_factory=dict, init=False, repr=False
    )

    def add(self, result: UnitResult) -> None:
        self.units.append(result)
        if result.unit is not None:
            self.index.update(result.unit.dies)
            self._units_by_offset[result.unit.offset] = result.unit

    def get_die(self, offset: int) -> DIE:
        """Look up a DIE anywhere in the section.

        Raises:
            UnresolvedTypeReferenceError: If no decoded DIE starts at offset
        """
        die = self.index.get(offset)
        if die is None:
            raise UnresolvedTypeReferenceError(offset)
        return die

    def unit_of(self, die: DIE) -> CompilationUnit | None:
        return self._units_by_offset.get(die.unit_offset)

    def iter_units(self) -> Iterator[CompilationUnit]:
        for result in self.units:
            if result.unit is not None:
                yield result.unit

    @property
    def failed_units(self) -> list[UnitResult]:
        return [result for result in self.units if result.error is not None]
