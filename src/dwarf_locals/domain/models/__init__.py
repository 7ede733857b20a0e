#!/usr/bin/env python3

"""Domain models for extracted types, locations and variables."""

from .location import AbsoluteAddress, FrameOffset, Location, Unsupported
from .type_descriptor import (
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
from .variable_record import FunctionRecord, VariableRecord

__all__ = [
    "AbsoluteAddress",
    "AggregateType",
    "ArrayType",
    "BaseType",
    "Enumerator",
    "EnumerationType",
    "FrameOffset",
    "FunctionRecord",
    "Location",
    "Member",
    "PointerType",
    "QualifiedType",
    "SubroutineType",
    "TypeDescriptor",
    "TypeRef",
    "TypedefType",
    "Unsupported",
    "UnresolvedType",
    "VOID",
    "VOID_REF",
    "VariableRecord",
    "VoidType",
]
