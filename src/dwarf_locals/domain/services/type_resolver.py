#!/usr/bin/env python3

"""Type resolution for DWARF DIEs.

Resolves a type DIE into a TypeDescriptor, following DW_AT_type chains
through pointers, arrays, qualifiers, typedefs and aggregate members.
Results are cached by DIE offset. Self-referential types terminate: a
reference to a type that is still being resolved on the current thread
becomes a recursive TypeRef instead of a nested resolution.
"""

import threading
from collections.abc import Callable

from ...core.constants import DwTag, encoding_name
from ...core.errors import DwarfDecodeError, UnresolvedTypeReferenceError
from ...core.models import DIE, AttributeKind, DebugInfo
from ...infrastructure.logging import get_logger
from ..models.type_descriptor import (
    VOID,
    VOID_REF,
    AggregateType,
    ArrayType,
    BaseType,
    Enumerator,
    EnumerationType,
    Member,
    PointerType,
    QualifiedType,
    SubroutineType,
    TypedefType,
    TypeDescriptor,
    TypeRef,
    UnresolvedType,
    VoidType,
)
from .location_evaluator import LocationEvaluator

logger = get_logger(__name__)

_POINTER_KINDS = {
    DwTag.POINTER_TYPE.value: "pointer",
    DwTag.REFERENCE_TYPE.value: "reference",
    DwTag.RVALUE_REFERENCE_TYPE.value: "rvalue_reference",
}
_POINTER_SYMBOLS = {"pointer": "*", "reference": "&", "rvalue_reference": "&&"}

_QUALIFIERS = {
    DwTag.CONST_TYPE.value: "const",
    DwTag.VOLATILE_TYPE.value: "volatile",
    DwTag.RESTRICT_TYPE.value: "restrict",
    DwTag.ATOMIC_TYPE.value: "_Atomic",
}

_AGGREGATE_KINDS = {
    DwTag.STRUCTURE_TYPE.value: "struct",
    DwTag.CLASS_TYPE.value: "class",
    DwTag.UNION_TYPE.value: "union",
}

# Nested resolutions allowed on one thread before a reference is cut off
MAX_TYPE_DEPTH = 64


def _join(specifier: str, declarator: str) -> str:
    if not declarator:
        return specifier
    if declarator.startswith("["):
        return f"{specifier}{declarator}"
    return f"{specifier} {declarator}"


class TypeResolver:
    """Resolves and caches type descriptors by defining DIE offset.

    Attributes:
        debug_info: Decoded units and the whole-file DIE index
        evaluator: Used to interpret member location expressions
    """

    def __init__(self, debug_info: DebugInfo, evaluator: LocationEvaluator | None = None):
        self.debug_info = debug_info
        self.evaluator = evaluator or LocationEvaluator()
        self._cache: dict[int, TypeDescriptor] = {}
        self._local = threading.local()
        self._handlers: dict[str, Callable[[DIE], TypeDescriptor]] = {
            DwTag.BASE_TYPE.value: self._resolve_base,
            DwTag.UNSPECIFIED_TYPE.value: self._resolve_unspecified,
            DwTag.TYPEDEF.value: self._resolve_typedef,
            DwTag.ARRAY_TYPE.value: self._resolve_array,
            DwTag.ENUMERATION_TYPE.value: self._resolve_enumeration,
            DwTag.SUBROUTINE_TYPE.value: self._resolve_subroutine,
        }
        for tag in _POINTER_KINDS:
            self._handlers[tag] = self._resolve_pointer
        for tag in _QUALIFIERS:
            self._handlers[tag] = self._resolve_qualified
        for tag in _AGGREGATE_KINDS:
            self._handlers[tag] = self._resolve_aggregate

    def _in_progress(self) -> set[int]:
        in_progress = getattr(self._local, "in_progress", None)
        if in_progress is None:
            in_progress = self._local.in_progress = set()
        return in_progress

    def resolve(self, offset: int) -> TypeDescriptor:
        """
        Resolve the type defined by the DIE at offset.

        Idempotent: the first completed resolution of an offset is cached and
        returned by every later call.

        Args:
            offset: Section offset of a type DIE

        Returns:
            The descriptor; UnresolvedType when the offset is not a known type DIE
        """
        cached = self._cache.get(offset)
        if cached is not None:
            return cached

        in_progress = self._in_progress()
        in_progress.add(offset)
        try:
            descriptor = self._build(offset)
        finally:
            in_progress.discard(offset)
        return self._cache.setdefault(offset, descriptor)

    def _build(self, offset: int) -> TypeDescriptor:
        try:
            die = self.debug_info.get_die(offset)
        except UnresolvedTypeReferenceError as e:
            logger.debug(f"Unresolved type reference: {e}")
            return UnresolvedType(str(e))

        handler = self._handlers.get(die.tag)
        if handler is None:
            return UnresolvedType(f"DIE 0x{offset:x} is {die.tag}, not a type")
        try:
            return handler(die)
        except DwarfDecodeError as e:
            logger.debug(f"Failed to resolve type at 0x{offset:x}: {e}")
            return UnresolvedType(f"{die.tag} at 0x{offset:x}: {e}")

    def reference(self, die: DIE, attr_name: str = "DW_AT_type") -> TypeRef:
        """
        Follow a type-reference attribute of die.

        A missing attribute means void. The referenced type is resolved and
        cached unless it is already in progress on this thread, in which case
        a recursive reference is returned without further recursion. Past
        MAX_TYPE_DEPTH nested resolutions the reference carries an error
        instead of being followed.
        """
        attr = die.get_attribute(attr_name)
        if attr is None:
            return VOID_REF
        if attr.kind is not AttributeKind.REFERENCE:
            return TypeRef(None, error=f"{attr_name} uses unsupported form {attr.form}")

        target = attr.value
        in_progress = self._in_progress()
        if target in in_progress:
            return TypeRef(target, recursive=True)
        if len(in_progress) >= MAX_TYPE_DEPTH:
            logger.debug(f"Type chain deeper than {MAX_TYPE_DEPTH} at 0x{target:x}, cut off")
            return TypeRef(target, error="type chain too deep")
        descriptor = self.resolve(target)
        if isinstance(descriptor, UnresolvedType):
            return TypeRef(target, error=descriptor.reason)
        return TypeRef(target)

    def lookup(self, ref: TypeRef) -> TypeDescriptor:
        """Descriptor a reference stands for."""
        if ref.error is not None:
            return UnresolvedType(ref.error)
        if ref.offset is None:
            return VOID
        return self.resolve(ref.offset)

    def iter_cached(self) -> list[tuple[int, TypeDescriptor]]:
        """Resolved descriptors ordered by defining offset."""
        return sorted(self._cache.items())

    # Handlers by tag

    def _resolve_base(self, die: DIE) -> TypeDescriptor:
        return BaseType(
            name=die.get_name() or "<anonymous>",
            byte_size=die.get_constant("DW_AT_byte_size"),
            encoding=encoding_name(die.get_constant("DW_AT_encoding")),
        )

    def _resolve_unspecified(self, die: DIE) -> TypeDescriptor:
        name = die.get_name()
        return VOID if name in (None, "void") else BaseType(name, None)

    def _resolve_pointer(self, die: DIE) -> TypeDescriptor:
        return PointerType(
            pointee=self.reference(die),
            kind=_POINTER_KINDS[die.tag],
            byte_size=die.get_constant("DW_AT_byte_size"),
        )

    def _resolve_qualified(self, die: DIE) -> TypeDescriptor:
        return QualifiedType(qualifier=_QUALIFIERS[die.tag], inner=self.reference(die))

    def _resolve_typedef(self, die: DIE) -> TypeDescriptor:
        return TypedefType(name=die.get_name() or "<anonymous>", aliased=self.reference(die))

    def _subrange_count(self, die: DIE) -> int | None:
        count = die.get_attribute("DW_AT_count")
        if count is not None:
            return count.value if count.is_constant else None

        upper = die.get_attribute("DW_AT_upper_bound")
        if upper is None or not upper.is_constant:
            return None
        lower = die.get_attribute("DW_AT_lower_bound")
        lower_value = lower.value if lower is not None and lower.is_constant else 0
        return max(0, upper.value - lower_value + 1)

    def _resolve_array(self, die: DIE) -> TypeDescriptor:
        unit = self.debug_info.unit_of(die)
        dimensions = tuple(
            self._subrange_count(child)
            for child in (unit.iter_children(die) if unit else ())
            if child.tag == DwTag.SUBRANGE_TYPE
        ) or (None,)

        count: int | None = 1
        for dimension in dimensions:
            count = None if count is None or dimension is None else count * dimension
        return ArrayType(element=self.reference(die), count=count, dimensions=dimensions)

    def _member(self, die: DIE, is_union: bool) -> Member:
        location = die.get_attribute("DW_AT_data_member_location")
        byte_offset = None if location is None else self.evaluator.member_offset(location)
        bit_offset = die.get_constant("DW_AT_data_bit_offset")
        if byte_offset is None and bit_offset is not None:
            byte_offset = bit_offset // 8
        if byte_offset is None and location is None and is_union:
            byte_offset = 0
        return Member(
            name=die.get_name(),
            type=self.reference(die),
            byte_offset=byte_offset,
            bit_offset=bit_offset,
            bit_size=die.get_constant("DW_AT_bit_size"),
            is_base_class=die.tag == DwTag.INHERITANCE,
        )

    def _resolve_aggregate(self, die: DIE) -> TypeDescriptor:
        kind = _AGGREGATE_KINDS[die.tag]
        unit = self.debug_info.unit_of(die)
        members = []
        for child in unit.iter_children(die) if unit else ():
            if child.tag not in (DwTag.MEMBER, DwTag.INHERITANCE):
                continue
            # Static data members are declarations, not storage in the object
            if child.get_flag("DW_AT_declaration"):
                continue
            members.append(self._member(child, kind == "union"))
        return AggregateType(
            kind=kind,
            name=die.get_name(),
            byte_size=die.get_constant("DW_AT_byte_size"),
            members=tuple(members),
            declaration=die.get_flag("DW_AT_declaration"),
        )

    def _resolve_enumeration(self, die: DIE) -> TypeDescriptor:
        unit = self.debug_info.unit_of(die)
        enumerators = []
        for child in unit.iter_children(die) if unit else ():
            if child.tag != DwTag.ENUMERATOR:
                continue
            value = child.get_attribute("DW_AT_const_value")
            if value is None or not value.is_constant:
                continue
            enumerators.append(Enumerator(child.get_name() or "<anonymous>", value.value))
        return EnumerationType(
            name=die.get_name(),
            byte_size=die.get_constant("DW_AT_byte_size"),
            enumerators=tuple(enumerators),
        )

    def _resolve_subroutine(self, die: DIE) -> TypeDescriptor:
        unit = self.debug_info.unit_of(die)
        parameters = []
        variadic = False
        for child in unit.iter_children(die) if unit else ():
            if child.tag == DwTag.FORMAL_PARAMETER:
                parameters.append(self.reference(child))
            elif child.tag == DwTag.UNSPECIFIED_PARAMETERS:
                variadic = True
        return SubroutineType(
            return_type=self.reference(die),
            parameters=tuple(parameters),
            variadic=variadic,
        )

    # Rendering

    def type_name(self, ref: TypeRef) -> str:
        """
        Render a C-like name for the referenced type.

        Examples: ``int``, ``struct node *``, ``const char[16]``,
        ``int (*)(int, char *)``. Named types (base, aggregate, enumeration,
        typedef) render by name only, so recursive types print finitely.
        """
        return self._render(ref, "", frozenset())

    def _render(self, ref: TypeRef, declarator: str, seen: frozenset[int]) -> str:
        if ref.offset is not None and ref.offset in seen:
            return _join("<recursive>", declarator)
        descriptor = self.lookup(ref)
        if ref.offset is not None:
            seen = seen | {ref.offset}

        if isinstance(descriptor, VoidType):
            return _join("void", declarator)
        if isinstance(descriptor, BaseType | TypedefType):
            return _join(descriptor.name, declarator)
        if isinstance(descriptor, AggregateType):
            return _join(f"{descriptor.kind} {descriptor.name or '<anonymous>'}", declarator)
        if isinstance(descriptor, EnumerationType):
            return _join(f"enum {descriptor.name or '<anonymous>'}", declarator)
        if isinstance(descriptor, UnresolvedType):
            return _join("<unresolved>", declarator)

        if isinstance(descriptor, PointerType):
            inner = f"{_POINTER_SYMBOLS[descriptor.kind]}{declarator}"
            pointee = self.lookup(descriptor.pointee)
            if isinstance(pointee, ArrayType | SubroutineType):
                inner = f"({inner})"
            return self._render(descriptor.pointee, inner, seen)

        if isinstance(descriptor, QualifiedType):
            if isinstance(self.lookup(descriptor.inner), PointerType):
                # Qualifiers on a pointer bind to the right of its '*'
                inner = f"{descriptor.qualifier} {declarator}".rstrip()
                return self._render(descriptor.inner, inner, seen)
            return f"{descriptor.qualifier} {self._render(descriptor.inner, declarator, seen)}"

        if isinstance(descriptor, ArrayType):
            dims = "".join(f"[{n}]" if n is not None else "[]" for n in descriptor.dimensions)
            return self._render(descriptor.element, f"{declarator}{dims}", seen)

        if isinstance(descriptor, SubroutineType):
            params = [self._render(p, "", seen) for p in descriptor.parameters]
            if descriptor.variadic:
                params.append("...")
            signature = ", ".join(params) or "void"
            return self._render(descriptor.return_type, f"{declarator}({signature})", seen)

        return _join("<unknown>", declarator)
