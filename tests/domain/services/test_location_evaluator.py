#!/usr/bin/env python3

"""Unit tests for LocationEvaluator."""

import pytest

from dwarf_locals.core.byte_cursor import encode_sleb128, encode_uleb128
from dwarf_locals.core.models import AttributeKind, AttributeValue
from dwarf_locals.domain.models.location import AbsoluteAddress, FrameOffset, Unsupported
from dwarf_locals.domain.services import LocationEvaluator
from dwarf_locals.domain.services.location_evaluator import opcode_name

from tests.dwarf_assembler import addr, breg, fbreg, op, plus_uconst


@pytest.fixture
def evaluator() -> LocationEvaluator:
    return LocationEvaluator(address_size=8)


class TestFrameRelative:
    """Frame-base and register-relative locations."""

    @pytest.mark.unit
    def test_fbreg_composes_with_register_frame_base(self, evaluator: LocationEvaluator) -> None:
        frame_base = evaluator.evaluate_frame_base(breg(6, 16))
        assert frame_base == FrameOffset(16, register=6)
        assert evaluator.evaluate(fbreg(-20), frame_base) == FrameOffset(-4, register=6)

    @pytest.mark.unit
    def test_fbreg_with_call_frame_cfa(self, evaluator: LocationEvaluator) -> None:
        frame_base = evaluator.evaluate_frame_base(op("call_frame_cfa"))
        assert frame_base == FrameOffset(0, cfa=True)
        assert evaluator.evaluate(fbreg(-24), frame_base) == FrameOffset(-24, cfa=True)

    @pytest.mark.unit
    def test_fbreg_without_frame_base(self, evaluator: LocationEvaluator) -> None:
        location = evaluator.evaluate(fbreg(-8))
        assert location == FrameOffset(-8)
        assert not location.has_known_base

    @pytest.mark.unit
    def test_fbreg_with_unsupported_frame_base(self, evaluator: LocationEvaluator) -> None:
        frame_base = Unsupported("location list index 0 not handled")
        assert evaluator.evaluate(fbreg(-8), frame_base) == FrameOffset(-8)

    @pytest.mark.unit
    def test_lone_register_frame_base(self, evaluator: LocationEvaluator) -> None:
        assert evaluator.evaluate_frame_base(op("reg6")) == FrameOffset(0, register=6)
        regx = op("regx", encode_uleb128(33))
        assert evaluator.evaluate_frame_base(regx) == FrameOffset(0, register=33)

    @pytest.mark.unit
    def test_breg_and_bregx(self, evaluator: LocationEvaluator) -> None:
        assert evaluator.evaluate(breg(7, -12)) == FrameOffset(-12, register=7)
        bregx = op("bregx", encode_uleb128(40), encode_sleb128(8))
        assert evaluator.evaluate(bregx) == FrameOffset(8, register=40)

    @pytest.mark.unit
    def test_arithmetic_on_frame_offsets(self, evaluator: LocationEvaluator) -> None:
        expression = breg(6, -16) + plus_uconst(4)
        assert evaluator.evaluate(expression) == FrameOffset(-12, register=6)

        expression = breg(6, 0) + op("lit8") + op("minus")
        assert evaluator.evaluate(expression) == FrameOffset(-8, register=6)

        expression = op("lit4") + breg(6, 0) + op("plus")
        assert evaluator.evaluate(expression) == FrameOffset(4, register=6)


class TestAbsolute:
    """Static storage addresses."""

    @pytest.mark.unit
    def test_addr(self, evaluator: LocationEvaluator) -> None:
        assert evaluator.evaluate(addr(0x601040)) == AbsoluteAddress(0x601040)

    @pytest.mark.unit
    def test_addr_uses_unit_address_size(self) -> None:
        evaluator = LocationEvaluator(address_size=4)
        assert evaluator.evaluate(addr(0x8000, size=4)) == AbsoluteAddress(0x8000)

    @pytest.mark.unit
    def test_constant_left_on_stack_is_an_address(self, evaluator: LocationEvaluator) -> None:
        expression = op("const4u", (0x1000).to_bytes(4, "little")) + op("lit16") + op("plus")
        assert evaluator.evaluate(expression) == AbsoluteAddress(0x1010)

    @pytest.mark.unit
    def test_negative_constant_is_masked(self) -> None:
        evaluator = LocationEvaluator(address_size=4)
        location = evaluator.evaluate(op("consts", encode_sleb128(-1)))
        assert location == AbsoluteAddress(0xFFFFFFFF)

    @pytest.mark.unit
    def test_stack_manipulation(self, evaluator: LocationEvaluator) -> None:
        expression = op("lit1") + op("lit2") + op("swap") + op("drop") + op("dup") + op("plus")
        assert evaluator.evaluate(expression) == AbsoluteAddress(4)


class TestUnsupported:
    """Expressions that cannot be reduced to a location."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("expression", "fragment"),
        [
            (op("reg0"), "register-only location (reg0)"),
            (op("regx", encode_uleb128(17)), "register-only location (reg17)"),
            (op("lit0") + op("stack_value"), "DW_OP_stack_value"),
            (breg(6, -8) + op("piece", encode_uleb128(4)), "DW_OP_piece"),
            (breg(6, -8) + op("deref"), "DW_OP_deref"),
            (op("plus"), "stack underflow"),
            (op("fbreg"), "truncated or malformed expression"),
        ],
    )
    def test_reason_is_reported(
        self, evaluator: LocationEvaluator, expression: bytes, fragment: str
    ) -> None:
        location = evaluator.evaluate(expression)
        assert isinstance(location, Unsupported)
        assert fragment in location.reason

    @pytest.mark.unit
    def test_unhandled_opcode_is_named(self, evaluator: LocationEvaluator) -> None:
        location = evaluator.evaluate(op("lit1") + op("lit2") + op("mul"))
        assert location == Unsupported("opcode DW_OP_mul not handled")

    @pytest.mark.unit
    def test_unknown_opcode(self, evaluator: LocationEvaluator) -> None:
        location = evaluator.evaluate(b"\x01")
        assert isinstance(location, Unsupported)
        assert opcode_name(0x01) in location.reason

    @pytest.mark.unit
    def test_empty_expression(self, evaluator: LocationEvaluator) -> None:
        assert evaluator.evaluate(b"") == Unsupported("empty location expression")
        assert isinstance(evaluator.evaluate(op("nop")), Unsupported)

    @pytest.mark.unit
    def test_two_symbolic_operands(self, evaluator: LocationEvaluator) -> None:
        location = evaluator.evaluate(breg(6, 0) + breg(7, 0) + op("plus"))
        assert isinstance(location, Unsupported)

    @pytest.mark.unit
    def test_truncated_address_operand(self, evaluator: LocationEvaluator) -> None:
        location = evaluator.evaluate(op("addr", b"\x00\x10"))
        assert isinstance(location, Unsupported)
        assert "truncated or malformed expression" in location.reason


class TestAddressSizes:
    """Evaluators built for each unit address size."""

    @pytest.mark.unit
    @pytest.mark.parametrize("address_size", [0, 3, 16])
    def test_invalid_address_size_is_rejected(self, address_size: int) -> None:
        with pytest.raises(ValueError, match="address size"):
            LocationEvaluator(address_size=address_size)

    @pytest.mark.unit
    def test_invalid_offset_size_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="offset size"):
            LocationEvaluator(offset_size=2)

    @pytest.mark.unit
    def test_two_byte_addresses(self) -> None:
        evaluator = LocationEvaluator(address_size=2)
        assert evaluator.evaluate(fbreg(-4)) == FrameOffset(-4)
        assert evaluator.evaluate(op("consts", encode_sleb128(-1))) == AbsoluteAddress(0xFFFF)

        location = evaluator.evaluate(addr(0x1234, size=2) + fbreg(-4))
        assert location == Unsupported("DW_OP_addr with 2-byte addresses not handled")

    @pytest.mark.unit
    def test_big_endian_operands(self) -> None:
        evaluator = LocationEvaluator(address_size=4, little_endian=False)
        expression = op("addr", (0x8000).to_bytes(4, "big"))
        assert evaluator.evaluate(expression) == AbsoluteAddress(0x8000)


class TestMemberOffset:
    """DW_AT_data_member_location interpretation."""

    @pytest.mark.unit
    def test_constant(self, evaluator: LocationEvaluator) -> None:
        value = AttributeValue(AttributeKind.UNSIGNED, 24, "DW_FORM_data1")
        assert evaluator.member_offset(value) == 24

    @pytest.mark.unit
    def test_plus_uconst_expression(self, evaluator: LocationEvaluator) -> None:
        value = AttributeValue(AttributeKind.BLOCK, plus_uconst(8), "DW_FORM_block1")
        assert evaluator.member_offset(value) == 8

    @pytest.mark.unit
    def test_non_constant_expression(self, evaluator: LocationEvaluator) -> None:
        value = AttributeValue(AttributeKind.BLOCK, breg(6, 0), "DW_FORM_exprloc")
        assert evaluator.member_offset(value) is None
        reference = AttributeValue(AttributeKind.REFERENCE, 0x40, "DW_FORM_ref4")
        assert evaluator.member_offset(reference) is None
