#!/usr/bin/env python3

"""Extraction of formal parameters and local variables per function.

Walks each compilation unit from its root, entering namespaces and
aggregate types to find subprograms. Within a subprogram, parameters and
variables of nested lexical blocks are flattened into one ordered list and
tagged with their block nesting depth.
"""

from collections.abc import Iterator

from ...core.constants import DwTag
from ...core.errors import DwarfDecodeError
from ...core.models import DIE, AttributeKind, CompilationUnit, DebugInfo
from ...infrastructure.logging import get_logger
from ..models.location import Location, Unsupported
from ..models.type_descriptor import VOID_REF, TypeRef
from ..models.variable_record import FunctionRecord, VariableRecord
from .location_evaluator import LocationEvaluator
from .type_resolver import TypeResolver

logger = get_logger(__name__)

# Scopes searched for subprograms outside function bodies
_CONTAINER_TAGS = frozenset(
    {
        DwTag.NAMESPACE.value,
        DwTag.STRUCTURE_TYPE.value,
        DwTag.CLASS_TYPE.value,
        DwTag.UNION_TYPE.value,
    }
)
_VARIABLE_TAGS = frozenset({DwTag.FORMAL_PARAMETER.value, DwTag.VARIABLE.value})
_ORIGIN_ATTRIBUTES = ("DW_AT_abstract_origin", "DW_AT_specification")
_MAX_ORIGIN_HOPS = 8


class VariableExtractor:
    """Pairs every parameter and local with its resolved type and location."""

    def __init__(self, resolver: TypeResolver, evaluator: LocationEvaluator):
        """
        Initialize the extractor.

        Args:
            resolver: Shared type resolver (its cache spans every unit)
            evaluator: Location evaluator configured for the unit's address size
        """
        self.resolver = resolver
        self.evaluator = evaluator

    @property
    def debug_info(self) -> DebugInfo:
        return self.resolver.debug_info

    def extract_unit(self, unit: CompilationUnit) -> list[FunctionRecord]:
        """
        Extract every function defined in a unit.

        Args:
            unit: Decoded compilation unit

        Returns:
            FunctionRecords in DIE order; a nested function follows its parent
        """
        functions: list[FunctionRecord] = []
        root = unit.root
        if root is not None:
            self._walk_scope(unit, root, functions)
        logger.debug(
            f"Unit 0x{unit.offset:x}: {len(functions)} functions, "
            f"{sum(len(f.variables) for f in functions)} variables"
        )
        return functions

    def _walk_scope(
        self, unit: CompilationUnit, scope: DIE, functions: list[FunctionRecord]
    ) -> None:
        for child in unit.iter_children(scope):
            if child.tag == DwTag.SUBPROGRAM:
                self._extract_function(unit, child, functions)
            elif child.tag in _CONTAINER_TAGS:
                self._walk_scope(unit, child, functions)


    def _is_declaration(self, die: DIE) -> bool:
        try:
            return die.get_flag("DW_AT_declaration")
        except DwarfDecodeError as e:
            logger.debug(f"Subprogram DIE 0x{die.offset:x} treated as a definition: {e}")
            return False

    def _extract_function(
        self, unit: CompilationUnit, die: DIE, functions: list[FunctionRecord]
    ) -> None:
        if self._is_declaration(die):
            return

        function = FunctionRecord(
            name=self._guarded_name(die),
            die_offset=die.offset,
            frame_base=self._frame_base(die),
        )
        functions.append(function)
        try:
            self._collect(unit, die, function, 0, functions)
        except DwarfDecodeError as e:
            logger.warning(
                f"Function {function.name} at 0x{die.offset:x} is incomplete "
                f"after {len(function.variables)} variables: {e}"
            )

    def _collect(
        self,
        unit: CompilationUnit,
        scope: DIE,
        function: FunctionRecord,
        depth: int,
        functions: list[FunctionRecord],
    ) -> None:
        for child in unit.iter_children(scope):
            if child.tag in _VARIABLE_TAGS:
                function.variables.append(self._record(child, function, depth))
            elif child.tag == DwTag.LEXICAL_BLOCK:
                self._collect(unit, child, function, depth + 1, functions)
            elif child.tag == DwTag.SUBPROGRAM:
                self._extract_function(unit, child, functions)
            elif child.tag == DwTag.INLINED_SUBROUTINE:
                function.inlined_subroutines += 1

    def _origins(self, die: DIE) -> Iterator[DIE]:
        """The DIE itself, then the DIEs it was specified by or inlined from."""
        current: DIE | None = die
        seen: set[int] = set()
        while current is not None and current.offset not in seen:
            if len(seen) >= _MAX_ORIGIN_HOPS:
                return
            yield current
            seen.add(current.offset)
            target = None
            for attr_name in _ORIGIN_ATTRIBUTES:
                target = current.get_reference(attr_name)
                if target is not None:
                    break
            current = None if target is None else self.debug_info.index.get(target)

    def _name(self, die: DIE) -> str | None:
        for origin in self._origins(die):
            name = origin.get_name()
            if name is not None:
                return name
        return None

    def _guarded_name(self, die: DIE) -> str | None:
        try:
            return self._name(die)
        except DwarfDecodeError as e:
            logger.debug(f"Name of DIE 0x{die.offset:x}: {e}")
            return None

    def _type_ref(self, die: DIE) -> TypeRef:
        for origin in self._origins(die):
            if origin.has_attribute("DW_AT_type"):
                return self.resolver.reference(origin)
        return VOID_REF

    def _frame_base(self, die: DIE) -> Location | None:
        attr = die.get_attribute("DW_AT_frame_base")
        if attr is None:
            return None
        if attr.kind is AttributeKind.BLOCK:
            return self.evaluator.evaluate_frame_base(attr.value)
        return Unsupported(f"frame base encoded as {attr.form} not handled")

    def _location(self, die: DIE, frame_base: Location | None) -> Location:
        attr = die.get_attribute("DW_AT_location")
        if attr is None:
            if die.has_attribute("DW_AT_const_value"):
                return Unsupported("constant value (DW_AT_const_value) has no storage location")
            if die.get_flag("DW_AT_declaration"):
                return Unsupported("declaration without storage")
            return Unsupported("no DW_AT_location (optimized out)")

        if attr.kind is AttributeKind.BLOCK:
            return self.evaluator.evaluate(attr.value, frame_base)
        if attr.kind is AttributeKind.INDEX:
            return Unsupported(f"location list index {attr.value} not handled")
        if attr.kind in (AttributeKind.SECTION_OFFSET, AttributeKind.UNSIGNED):
            # DWARF 2 and 3 encode location list offsets as data4/data8
            return Unsupported(f"location list at 0x{attr.value:x} not handled")
        return Unsupported(f"DW_AT_location encoded as {attr.form} not handled")

    def _record(self, die: DIE, function: FunctionRecord, depth: int) -> VariableRecord:
        """Build one record; a malformed attribute only blanks the field it feeds."""
        try:
            type_ref = self._type_ref(die)
        except DwarfDecodeError as e:
            logger.debug(f"Type of variable DIE 0x{die.offset:x} in {function.name}: {e}")
            type_ref = TypeRef(None, error=str(e))
        try:
            location = self._location(die, function.frame_base)
        except DwarfDecodeError as e:
            logger.debug(f"Location of variable DIE 0x{die.offset:x} in {function.name}: {e}")
            location = Unsupported(str(e))

        return VariableRecord(
            function_name=function.name,
            name=self._guarded_name(die),
            die_offset=die.offset,
            type_ref=type_ref,
            type=self.resolver.lookup(type_ref),
            type_name=self.resolver.type_name(type_ref),
            location=location,
            is_parameter=die.tag == DwTag.FORMAL_PARAMETER,
            depth=depth,
        )
