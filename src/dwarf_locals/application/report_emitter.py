#!/usr/bin/env python3

"""Text views over extraction results.

Three views, all line-oriented and stable for a given input:
- functions: one tab-separated line per parameter or local
- types: every resolved type keyed by its defining offset
- dies: raw DIE dump with depth, offset, tag and attributes
"""

from elftools.dwarf.descriptions import describe_reg_name

from ..core.models import DIE, AttributeKind, AttributeValue, DebugInfo
from ..domain.models.location import AbsoluteAddress, FrameOffset, Location, Unsupported
from ..domain.models.type_descriptor import (
    AggregateType,
    ArrayType,
    BaseType,
    EnumerationType,
    PointerType,
    QualifiedType,
    SubroutineType,
    TypedefType,
    TypeDescriptor,
    TypeRef,
    UnresolvedType,
    VoidType,
)
from .extraction_service import ExtractionResult

ANONYMOUS = "<anonymous>"


def register_name(register: int, machine_arch: str | None = None) -> str:
    """Name of a DWARF register number, or reg<n> when the architecture is unknown."""
    if machine_arch:
        try:
            name = describe_reg_name(register, machine_arch, default=False)
        except IndexError:
            name = None
        if name:
            return name
    return f"reg{register}"


def format_location(location: Location | None, machine_arch: str | None = None) -> str:
    """
    Render a location.

    Frame offsets render as base and signed decimal offset (rbp-4, cfa+16,
    fb-20 when the frame base is unknown).
    """
    if isinstance(location, FrameOffset):
        if location.register is not None:
            base = register_name(location.register, machine_arch)
        elif location.cfa:
            base = "cfa"
        else:
            base = "fb"
        return f"{base}{location.offset:+d}"
    if isinstance(location, AbsoluteAddress):
        return f"0x{location.address:x}"
    if isinstance(location, Unsupported):
        return f"unsupported({location.reason})"
    return "none"


def format_unit_error(offset: int, error: Exception | None) -> str:
    return f"# unit 0x{offset:08x}: {type(error).__name__}: {error}"


def render_functions(result: ExtractionResult, machine_arch: str | None = None) -> str:
    """
    Render the function-oriented view.

    Each line is
    ``<function>\\t<param|local>\\t<name>\\t<type>\\t<location>\\tdepth=<n>``;
    a failed unit is a single comment line in its section position.

    Args:
        result: Extraction result
        machine_arch: Architecture for register names (default: the result's)
    """
    arch = machine_arch if machine_arch is not None else result.machine_arch
    lines = []
    for unit in result.units:
        if not unit.ok:
            lines.append(format_unit_error(unit.offset, unit.error))
            continue
        for function in unit.functions:
            for variable in function.variables:
                lines.append(
                    "\t".join(
                        [
                            function.name or ANONYMOUS,
                            "param" if variable.is_parameter else "local",
                            variable.name or ANONYMOUS,
                            variable.type_name,
                            format_location(variable.location, arch),
                            f"depth={variable.depth}",
                        ]
                    )
                )
    return "\n".join(lines) + "\n" if lines else ""


def _kind(descriptor: TypeDescriptor) -> str:
    if isinstance(descriptor, AggregateType):
        return descriptor.kind
    if isinstance(descriptor, PointerType):
        return descriptor.kind
    if isinstance(descriptor, QualifiedType):
        return descriptor.qualifier.lstrip("_").lower()
    return {
        VoidType: "void",
        BaseType: "base",
        ArrayType: "array",
        EnumerationType: "enum",
        SubroutineType: "subroutine",
        TypedefType: "typedef",
        UnresolvedType: "unresolved",
    }.get(type(descriptor), "unknown")


def _size(descriptor: TypeDescriptor) -> int | None:
    if isinstance(descriptor, BaseType | PointerType | AggregateType | EnumerationType):
        return descriptor.byte_size
    return None


def render_types(result: ExtractionResult) -> str:
    """
    Render the type-oriented view: every resolved type once, by defining offset.

    Aggregate members and enumerators are listed indented below their type.
    """
    resolver = result.resolver
    lines = []
    for offset, descriptor in resolver.iter_cached():
        fields = [f"0x{offset:08x}", _kind(descriptor), resolver.type_name(TypeRef(offset))]
        size = _size(descriptor)
        if size is not None:
            fields.append(f"size={size}")
        if isinstance(descriptor, BaseType) and descriptor.encoding:
            fields.append(f"encoding={descriptor.encoding}")
        if isinstance(descriptor, AggregateType) and descriptor.declaration:
            fields.append("declaration")
        if isinstance(descriptor, UnresolvedType):
            fields.append(f"reason={descriptor.reason}")
        lines.append("\t".join(fields))

        if isinstance(descriptor, AggregateType):
            for member in descriptor.members:
                where = "+?" if member.byte_offset is None else f"+0x{member.byte_offset:x}"
                name = member.name or ("<base>" if member.is_base_class else ANONYMOUS)
                line = f"    {where}\t{name}\t{resolver.type_name(member.type)}"
                if member.bit_size is not None:
                    line += f"\t:{member.bit_size}"
                lines.append(line)
        elif isinstance(descriptor, EnumerationType):
            for enumerator in descriptor.enumerators:
                lines.append(f"    {enumerator.name} = {enumerator.value}")
    return "\n".join(lines) + "\n" if lines else ""


def format_attribute_value(value: AttributeValue) -> str:
    if value.kind is AttributeKind.STRING:
        return f"'{value.value}'"
    if value.kind is AttributeKind.REFERENCE:
        return f"<0x{value.value:08x}>"
    if value.kind is AttributeKind.BLOCK:
        return f"[{value.value.hex(' ')}]" if value.value else "[]"
    if value.kind is AttributeKind.FLAG:
        return "true" if value.value else "false"
    if value.kind in (AttributeKind.ADDRESS, AttributeKind.SECTION_OFFSET):
        return f"0x{value.value:x}"
    if value.kind is AttributeKind.INDEX:
        return f"index {value.value}"
    return str(value.value)


def format_die(die: DIE) -> list[str]:
    lines = [f"<{die.depth}><0x{die.offset:08x}> {die.tag}"]
    for name, value in die.attributes.items():
        lines.append(f"   {name}: {format_attribute_value(value)}")
    return lines


def render_dies(debug_info: DebugInfo) -> str:
    """Dump every decoded DIE in section order, one unit after another."""
    lines = []
    for result in debug_info.units:
        if result.unit is None:
            lines.append(format_unit_error(result.offset, result.error))
            continue
        header = result.unit.header
        lines.append(
            f"# unit 0x{header.offset:08x}: version {header.version}, "
            f"address size {header.address_size}, {len(result.unit.dies)} DIEs"
        )
        for die in result.unit.iter_dies():
            lines.extend(format_die(die))
    return "\n".join(lines) + "\n" if lines else ""
