#!/usr/bin/env python3

"""Resolved type descriptors.

Descriptors refer to other types through TypeRef keys into the resolver's
cache instead of embedding them, so recursive types stay finite.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TypeRef:
    """Reference to a type by the offset of its defining DIE.

    offset is None for void (a missing DW_AT_type). A recursive reference was
    produced while its target was still being resolved and stands for the
    enclosing type. error carries the reason a reference could not be followed.
    """

    offset: int | None
    recursive: bool = False
    error: str | None = None

    @property
    def is_void(self) -> bool:
        return self.offset is None and self.error is None


VOID_REF = TypeRef(None)


@dataclass(frozen=True)
class VoidType:
    pass


@dataclass(frozen=True)
class BaseType:
    name: str
    byte_size: int | None
    encoding: str | None = None


@dataclass(frozen=True)
class PointerType:
    """Pointer, lvalue reference or rvalue reference to another type."""

    pointee: TypeRef
    kind: str = "pointer"  # pointer, reference or rvalue_reference
    byte_size: int | None = None


@dataclass(frozen=True)
class ArrayType:
    """Array type; dimensions lists each subrange count, None when unknown."""

    element: TypeRef
    count: int | None
    dimensions: tuple[int | None, ...] = ()


@dataclass(frozen=True)
class Member:
    name: str | None
    type: TypeRef
    byte_offset: int | None
    bit_offset: int | None = None
    bit_size: int | None = None
    is_base_class: bool = False


@dataclass(frozen=True)
class AggregateType:
    kind: str  # struct, union or class
    name: str | None
    byte_size: int | None
    members: tuple[Member, ...] = ()
    declaration: bool = False


@dataclass(frozen=True)
class Enumerator:
    name: str
    value: int


@dataclass(frozen=True)
class EnumerationType:
    name: str | None
    byte_size: int | None
    enumerators: tuple[Enumerator, ...] = ()


@dataclass(frozen=True)
class SubroutineType:
    return_type: TypeRef
    parameters: tuple[TypeRef, ...] = ()
    variadic: bool = False


@dataclass(frozen=True)
class TypedefType:
    name: str
    aliased: TypeRef


@dataclass(frozen=True)
class QualifiedType:
    qualifier: str  # const, volatile, restrict or atomic
    inner: TypeRef


@dataclass(frozen=True)
class UnresolvedType:
    reason: str


TypeDescriptor = (
    VoidType
    | BaseType
    | PointerType
    | ArrayType
    | AggregateType
    | EnumerationType
    | SubroutineType
    | TypedefType
    | QualifiedType
    | UnresolvedType
)

VOID = VoidType()
