#!/usr/bin/env python3

"""Symbolic variable locations produced by the location evaluator."""

from dataclasses import dataclass


@dataclass(frozen=True)
class FrameOffset:
    """
    Signed byte offset from a stack reference point.

    The reference point is a DWARF register number when register is set, the
    canonical frame address when cfa is True, and otherwise the function's
    frame base whose own location could not be determined.
    """

    offset: int
    register: int | None = None
    cfa: bool = False

    @property
    def has_known_base(self) -> bool:
        return self.register is not None or self.cfa

    def shifted(self, delta: int) -> "FrameOffset":
        return FrameOffset(self.offset + delta, self.register, self.cfa)


@dataclass(frozen=True)
class AbsoluteAddress:
    address: int


@dataclass(frozen=True)
class Unsupported:
    """A location the evaluator cannot express; reason is never empty."""

    reason: str


Location = FrameOffset | AbsoluteAddress | Unsupported
