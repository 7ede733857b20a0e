#!/usr/bin/env python3

"""Extraction results: one record per parameter or local variable."""

from dataclasses import dataclass, field

from .location import Location
from .type_descriptor import TypeDescriptor, TypeRef


@dataclass(frozen=True)
class VariableRecord:
    """A formal parameter or local variable of one function."""

    function_name: str | None
    name: str | None
    die_offset: int
    type_ref: TypeRef
    type: TypeDescriptor
    type_name: str
    location: Location
    is_parameter: bool
    depth: int = 0  # lexical block nesting below the function body


@dataclass
class FunctionRecord:
    """A subprogram with its parameters and locals in DIE order."""

    name: str | None
    die_offset: int
    frame_base: Location | None = None
    variables: list[VariableRecord] = field(default_factory=list)
    inlined_subroutines: int = 0

    @property
    def parameters(self) -> list[VariableRecord]:
        return [variable for variable in self.variables if variable.is_parameter]

    @property
    def locals(self) -> list[VariableRecord]:
        return [variable for variable in self.variables if not variable.is_parameter]
