"""Raw DWARF section bytes handed over by a section provider."""

from dataclasses import dataclass


@dataclass(frozen=True)
class DwarfSections:
    """Byte slices of the debug sections the decoder reads.

    Only ``info`` and ``abbrev`` are mandatory; the string sections may be
    empty when the producer did not emit them.
    """

    info: bytes
    abbrev: bytes
    str: bytes = b""
    line_str: bytes = b""
    str_offsets: bytes = b""
    little_endian: bool = True
