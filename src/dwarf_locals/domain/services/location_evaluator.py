#!/usr/bin/env python3

"""Location expression evaluation.

A DWARF location expression is bytecode for a small stack machine. Operands
are decoded by pyelftools' DWARFExprParser; the machine here runs over the
decoded ops without reading target memory or registers. Stack entries are
either integers or symbolic locations (an offset from a register, the CFA or
the function's frame base), and the top of the stack at the end of the
expression is the variable's location. Anything the machine cannot express
symbolically is reported as an Unsupported location instead of raising.
"""

from collections.abc import Callable

from elftools.common.exceptions import DWARFError, ELFParseError
from elftools.dwarf.dwarf_expr import (
    DW_OP_name2opcode,
    DW_OP_opcode2name,
    DWARFExprOp,
    DWARFExprParser,
)
from elftools.dwarf.structs import DWARFStructs

from ...core.constants import ADDRESS_SIZES
from ...core.models import AttributeKind, AttributeValue
from ...infrastructure.logging import get_logger
from ..models.location import AbsoluteAddress, FrameOffset, Location, Unsupported

logger = get_logger(__name__)

StackValue = int | FrameOffset | AbsoluteAddress

# DW_OP_addr operand widths DWARFStructs can decode
DECODABLE_ADDRESS_SIZES = (4, 8)

_ADDR = DW_OP_name2opcode["DW_OP_addr"]
_LIT0 = DW_OP_name2opcode["DW_OP_lit0"]
_REG0 = DW_OP_name2opcode["DW_OP_reg0"]
_BREG0 = DW_OP_name2opcode["DW_OP_breg0"]
_REGX = DW_OP_name2opcode["DW_OP_regx"]

# Opcodes recognized but deliberately not evaluated, with the reason reported
_UNSUPPORTED_REASONS = {
    "DW_OP_piece": "composite location (DW_OP_piece) not handled",
    "DW_OP_bit_piece": "composite location (DW_OP_bit_piece) not handled",
    "DW_OP_stack_value": "computed value (DW_OP_stack_value) has no storage location",
    "DW_OP_implicit_value": "implicit value (DW_OP_implicit_value) has no storage location",
    "DW_OP_implicit_pointer": "implicit pointer (DW_OP_implicit_pointer) not handled",
    "DW_OP_GNU_implicit_pointer": "implicit pointer (DW_OP_GNU_implicit_pointer) not handled",
    "DW_OP_entry_value": "entry value (DW_OP_entry_value) not handled",
    "DW_OP_GNU_entry_value": "entry value (DW_OP_GNU_entry_value) not handled",
    "DW_OP_deref": "memory dereference (DW_OP_deref) not handled",
}


def opcode_name(opcode: int) -> str:
    return DW_OP_opcode2name.get(opcode, f"DW_OP_unknown_0x{opcode:02x}")


class _Unevaluable(Exception):
    """Internal signal: the expression cannot be reduced to a location."""


class _Machine:
    """State of one expression evaluation."""

    def __init__(
        self,
        ops: list[DWARFExprOp],
        frame_base: Location | None,
        initial_stack: list[StackValue] | None = None,
    ) -> None:
        self.ops = ops
        self.frame_base = frame_base
        self.stack: list[StackValue] = list(initial_stack or [])
        self.name = ""

    def run(self) -> list[StackValue]:
        for op in self.ops:
            self.name = opcode_name(op.op)
            handler = _DISPATCH.get(op.op)
            if handler is None:
                reason = _UNSUPPORTED_REASONS.get(self.name, f"opcode {self.name} not handled")
                raise _Unevaluable(reason)
            handler(self, op)
        return self.stack

    def push(self, value: StackValue) -> None:
        self.stack.append(value)

    def pop(self) -> StackValue:
        if not self.stack:
            raise _Unevaluable(f"stack underflow at {self.name}")
        return self.stack.pop()

    def pop_int(self) -> int:
        value = self.pop()
        if not isinstance(value, int):
            raise _Unevaluable(f"{self.name} applied to a symbolic location")
        return value

    # Handlers

    def _addr(self, op: DWARFExprOp) -> None:
        self.push(AbsoluteAddress(op.args[0]))

    def _const(self, op: DWARFExprOp) -> None:
        self.push(op.args[0])

    def _literal(self, op: DWARFExprOp) -> None:
        self.push(op.op - _LIT0)

    def _dup(self, op: DWARFExprOp) -> None:
        value = self.pop()
        self.push(value)
        self.push(value)

    def _drop(self, op: DWARFExprOp) -> None:
        self.pop()

    def _swap(self, op: DWARFExprOp) -> None:
        top = self.pop()
        second = self.pop()
        self.push(top)
        self.push(second)

    def _nop(self, op: DWARFExprOp) -> None:
        pass

    def _add(self, left: StackValue, right: int) -> StackValue:
        if isinstance(left, FrameOffset):
            return left.shifted(right)
        if isinstance(left, AbsoluteAddress):
            return AbsoluteAddress(left.address + right)
        return left + right

    def _plus(self, op: DWARFExprOp) -> None:
        right = self.pop()
        left = self.pop()
        if isinstance(left, int) and not isinstance(right, int):
            left, right = right, left
        if not isinstance(right, int):
            raise _Unevaluable("DW_OP_plus of two symbolic locations")
        self.push(self._add(left, right))

    def _minus(self, op: DWARFExprOp) -> None:
        right = self.pop_int()
        self.push(self._add(self.pop(), -right))

    def _plus_uconst(self, op: DWARFExprOp) -> None:
        self.push(self._add(self.pop(), op.args[0]))

    def _fbreg(self, op: DWARFExprOp) -> None:
        offset = op.args[0]
        base = self.frame_base
        if isinstance(base, FrameOffset) and base.has_known_base:
            self.push(base.shifted(offset))
        elif isinstance(base, AbsoluteAddress):
            self.push(AbsoluteAddress(base.address + offset))
        else:
            self.push(FrameOffset(offset))

    def _breg(self, op: DWARFExprOp) -> None:
        self.push(FrameOffset(op.args[0], register=op.op - _BREG0))

    def _bregx(self, op: DWARFExprOp) -> None:
        register, offset = op.args
        self.push(FrameOffset(offset, register=register))

    def _call_frame_cfa(self, op: DWARFExprOp) -> None:
        self.push(FrameOffset(0, cfa=True))

    def _reg(self, op: DWARFExprOp) -> None:
        raise _Unevaluable(f"register-only location (reg{op.op - _REG0})")

    def _regx(self, op: DWARFExprOp) -> None:
        raise _Unevaluable(f"register-only location (reg{op.args[0]})")


_HANDLERS: dict[str, Callable[[_Machine, DWARFExprOp], None]] = {
    "DW_OP_addr": _Machine._addr,
    "DW_OP_constu": _Machine._const,
    "DW_OP_consts": _Machine._const,
    "DW_OP_dup": _Machine._dup,
    "DW_OP_drop": _Machine._drop,
    "DW_OP_swap": _Machine._swap,
    "DW_OP_nop": _Machine._nop,
    "DW_OP_plus": _Machine._plus,
    "DW_OP_minus": _Machine._minus,
    "DW_OP_plus_uconst": _Machine._plus_uconst,
    "DW_OP_fbreg": _Machine._fbreg,
    "DW_OP_bregx": _Machine._bregx,
    "DW_OP_call_frame_cfa": _Machine._call_frame_cfa,
    "DW_OP_regx": _Machine._regx,
}
_HANDLERS.update({f"DW_OP_const{n}{s}": _Machine._const for n in (1, 2, 4, 8) for s in "us"})
_HANDLERS.update({f"DW_OP_lit{n}": _Machine._literal for n in range(32)})
_HANDLERS.update({f"DW_OP_reg{n}": _Machine._reg for n in range(32)})
_HANDLERS.update({f"DW_OP_breg{n}": _Machine._breg for n in range(32)})

_DISPATCH: dict[int, Callable[[_Machine, DWARFExprOp], None]] = {
    DW_OP_name2opcode[name]: handler for name, handler in _HANDLERS.items()
}


class LocationEvaluator:
    """Evaluates location expressions into symbolic locations."""

    def __init__(
        self, address_size: int = 8, little_endian: bool = True, offset_size: int = 4
    ) -> None:
        """
        Initialize the evaluator.

        Args:
            address_size: Size in bytes of DW_OP_addr operands (1, 2, 4 or 8)
            little_endian: Byte order of fixed-width operands
            offset_size: 4 for 32-bit DWARF, 8 for 64-bit DWARF

        Raises:
            ValueError: If address_size or offset_size is not a DWARF size
        """
        if address_size not in ADDRESS_SIZES:
            raise ValueError(f"Unsupported address size: {address_size}")
        if offset_size not in (4, 8):
            raise ValueError(f"Unsupported offset size: {offset_size}")
        self.address_size = address_size
        self.little_endian = little_endian
        self._address_mask = (1 << (8 * address_size)) - 1
        # Narrower addresses decode with 4-byte structs; DW_OP_addr is then refused
        self._narrow = address_size not in DECODABLE_ADDRESS_SIZES
        structs = DWARFStructs(
            little_endian=little_endian,
            dwarf_format=8 * offset_size,
            address_size=4 if self._narrow else address_size,
        )
        self._parser = DWARFExprParser(structs)

    def _parse(self, expression: bytes) -> list[DWARFExprOp]:
        """
        Decode an expression into ops.

        Raises:
            _Unevaluable: If an opcode is unknown or an operand is truncated
        """
        try:
            ops = self._parser.parse_expr(expression)
        except KeyError as e:
            # DWARFExprParser has no operand decoder for the opcode
            opcode = e.args[0] if e.args and isinstance(e.args[0], int) else None
            name = "an unknown opcode" if opcode is None else opcode_name(opcode)
            raise _Unevaluable(f"opcode {name} not handled") from e
        except (ELFParseError, DWARFError) as e:
            raise _Unevaluable(f"truncated or malformed expression: {e}") from e
        if self._narrow and any(op.op == _ADDR for op in ops):
            raise _Unevaluable(f"DW_OP_addr with {self.address_size}-byte addresses not handled")
        return ops

    def _to_location(self, value: StackValue) -> Location:
        if isinstance(value, int):
            # A plain number left on the stack is the variable's address
            return AbsoluteAddress(value & self._address_mask)
        return value

    def evaluate(self, expression: bytes, frame_base: Location | None = None) -> Location:
        """
        Evaluate a variable's location expression.

        Args:
            expression: Raw expression bytes (DW_FORM_exprloc or block)
            frame_base: Evaluated DW_AT_frame_base of the enclosing function

        Returns:
            FrameOffset, AbsoluteAddress or Unsupported; never raises for bad bytes
        """
        if not expression:
            return Unsupported("empty location expression")
        try:
            stack = _Machine(self._parse(expression), frame_base).run()
        except _Unevaluable as e:
            return Unsupported(str(e))
        if not stack:
            return Unsupported("location expression left an empty stack")
        return self._to_location(stack[-1])

    def evaluate_frame_base(self, expression: bytes) -> Location:
        """
        Evaluate a DW_AT_frame_base expression.

        A lone DW_OP_reg*/DW_OP_regx names the register holding the frame base
        itself, which becomes a zero offset from that register.
        """
        if not expression:
            return Unsupported("empty location expression")
        try:
            ops = self._parse(expression)
        except _Unevaluable as e:
            return Unsupported(str(e))
        if len(ops) == 1:
            op = ops[0]
            if _REG0 <= op.op < _REG0 + 32:
                return FrameOffset(0, register=op.op - _REG0)
            if op.op == _REGX:
                return FrameOffset(0, register=op.args[0])
        return self.evaluate(expression)

    def member_offset(self, value: AttributeValue) -> int | None:
        """
        Interpret a DW_AT_data_member_location value as a byte offset.

        Constants are the offset itself. Expressions run with the address of
        the enclosing object (taken as 0) already pushed, so DW_OP_plus_uconst N
        and DW_OP_constu N both yield N.

        Returns:
            The byte offset, or None if the value is not a constant offset
        """
        if value.is_constant:
            return value.value
        if value.kind is not AttributeKind.BLOCK:
            return None
        try:
            stack = _Machine(self._parse(value.value), None, initial_stack=[0]).run()
        except _Unevaluable as e:
            logger.debug(f"Member location expression is not a constant offset: {e}")
            return None
        top = stack[-1] if stack else None
        return top if isinstance(top, int) else None
