#!/usr/bin/env python3

"""DIE tree construction from .debug_info.

Each unit is a header followed by a flat pre-order encoding of its DIE tree:
an abbreviation code (0 closes the current sibling list), then the DIE's
attributes in the order and forms dictated by the abbreviation declaration.
DIEs are stored in an arena keyed by section offset.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from multiprocessing import cpu_count
from multiprocessing.pool import ThreadPool
from time import time

from ..infrastructure.logging import ProgressTracker, get_logger, log_timing
from .abbreviations import parse_abbreviation_table
from .byte_cursor import ByteCursor
from .constants import (
    ADDRESS_SIZES,
    DW_UT_COMPILE,
    DW_UT_SKELETON,
    DW_UT_SPLIT_COMPILE,
    DW_UT_SPLIT_TYPE,
    DW_UT_TYPE,
    DWARF64_ESCAPE,
    SUPPORTED_VERSIONS,
)
from .errors import DwarfDecodeError, MalformedUnitError, TruncatedDataError
from .forms import STRING_INDEX_FORMS, FormReader, decode_form
from .models import (
    DIE,
    AttributeKind,
    AttributeValue,
    CompilationUnit,
    DebugInfo,
    UnitHeader,
    UnitResult,
)
from .sections import DwarfSections

logger = get_logger(__name__)


@dataclass
class _TimedResult:
    result: UnitResult
    elapsed: float


class DieTreeBuilder:
    """Builds compilation units and their DIE arenas from raw sections."""

    def __init__(self, sections: DwarfSections) -> None:
        """
        Initialize the builder.

        Args:
            sections: Raw debug section bytes from a section provider
        """
        self.sections = sections

    def _cursor(self, offset: int, end: int | None = None) -> ByteCursor:
        return ByteCursor(self.sections.info, offset, self.sections.little_endian, end)

    def read_unit_header(self, offset: int) -> UnitHeader:
        """
        Read the unit header starting at offset.

        Raises:
            TruncatedDataError: If the header or the unit body exceeds the section
            MalformedUnitError: On a reserved length value, unsupported version or
                address size
        """
        cursor = self._cursor(offset)
        unit_length = cursor.u32()
        offset_size = 4
        if unit_length == DWARF64_ESCAPE:
            unit_length = cursor.u64()
            offset_size = 8
        elif unit_length >= 0xFFFFFFF0:
            raise MalformedUnitError(
                f"unit at 0x{offset:x} uses reserved length value 0x{unit_length:x}"
            )

        version = cursor.u16()
        if version not in SUPPORTED_VERSIONS:
            raise MalformedUnitError(f"unit at 0x{offset:x} has unsupported version {version}")

        type_signature = type_offset = dwo_id = None
        if version >= 5:
            unit_type = cursor.u8()
            address_size = cursor.u8()
            abbrev_offset = cursor.read_uint(offset_size)
            if unit_type in (DW_UT_SKELETON, DW_UT_SPLIT_COMPILE):
                dwo_id = cursor.u64()
            elif unit_type in (DW_UT_TYPE, DW_UT_SPLIT_TYPE):
                type_signature = cursor.u64()
                type_offset = cursor.read_uint(offset_size)
        else:
            unit_type = DW_UT_COMPILE
            abbrev_offset = cursor.read_uint(offset_size)
            address_size = cursor.u8()
        if address_size not in ADDRESS_SIZES:
            raise MalformedUnitError(
                f"unit at 0x{offset:x} declares unsupported address size {address_size}"
            )

        header = UnitHeader(
            offset=offset,
            unit_length=unit_length,
            offset_size=offset_size,
            version=version,
            unit_type=unit_type,
            address_size=address_size,
            abbrev_offset=abbrev_offset,
            die_offset=cursor.position,
            type_signature=type_signature,
            type_offset=type_offset,
            dwo_id=dwo_id,
        )
        if header.end_offset > len(self.sections.info):
            raise TruncatedDataError(
                offset, header.end_offset - offset, len(self.sections.info), "unit"
            )
        if header.die_offset > header.end_offset:
            raise MalformedUnitError(f"unit at 0x{offset:x} is shorter than its header")
        return header

    def _next_unit_offset(self, offset: int) -> int | None:
        """Offset of the unit after the one at offset, judged from its length alone."""
        try:
            cursor = self._cursor(offset)
            unit_length = cursor.u32()
            if unit_length == DWARF64_ESCAPE:
                unit_length = cursor.u64()
            elif unit_length >= 0xFFFFFFF0:
                return None
        except TruncatedDataError:
            return None
        next_offset = cursor.position + unit_length
        return next_offset if next_offset <= len(self.sections.info) else None

    def scan_units(self, max_units: int | None = None) -> list[UnitHeader | UnitResult]:
        """
        Walk the unit headers of the section in order.

        Returns:
            One entry per unit: its header, or a failed UnitResult when the
            header could not be decoded
        """
        entries: list[UnitHeader | UnitResult] = []
        offset = 0
        while offset < len(self.sections.info):
            if max_units and len(entries) >= max_units:
                logger.info(f"Reached unit limit of {max_units}, stopping")
                break
            try:
                header = self.read_unit_header(offset)
            except DwarfDecodeError as e:
                logger.warning(f"Failed to read unit header at 0x{offset:08x}: {e}")
                entries.append(UnitResult(offset=offset, error=e))
                next_offset = self._next_unit_offset(offset)
                if next_offset is None or next_offset <= offset:
                    break
                offset = next_offset
                continue
            entries.append(header)
            offset = header.end_offset
        return entries

    def iter_unit_headers(self) -> Iterator[UnitHeader]:
        """Yield the headers of every unit whose header decodes."""
        for entry in self.scan_units():
            if isinstance(entry, UnitHeader):
                yield entry

    def build_unit(self, header: UnitHeader) -> CompilationUnit:
        """
        Decode the DIE tree of one unit.

        Args:
            header: Header returned by read_unit_header()

        Returns:
            CompilationUnit with every DIE indexed by offset

        Raises:
            DwarfDecodeError: Any structural failure; the unit is abandoned
        """
        table = parse_abbreviation_table(self.sections.abbrev, header.abbrev_offset)
        cursor = self._cursor(header.die_offset, header.end_offset)
        reader = FormReader(
            cursor=cursor,
            header=header,
            str_section=self.sections.str,
            line_str_section=self.sections.line_str,
        )
        unit = CompilationUnit(header=header)
        parents: list[DIE] = []

        while not cursor.at_end():
            die_offset = cursor.position
            code = cursor.uleb128()
            if code == 0:
                # Null entry: closes the current sibling list (or is padding)
                if parents:
                    parents.pop()
                continue

            declaration = table.get(code, die_offset)
            parent = parents[-1] if parents else None
            if parent is None and unit.root_offset is not None:
                raise MalformedUnitError(
                    f"unit at 0x{header.offset:x} has a second top-level DIE at 0x{die_offset:x}"
                )

            die = DIE(
                offset=die_offset,
                tag=declaration.tag,
                tag_code=declaration.tag_code,
                unit_offset=header.offset,
                depth=len(parents),
                parent=None if parent is None else parent.offset,
            )
            for spec in declaration.attributes:
                reader.implicit_const = spec.implicit_const
                die.attributes[spec.name] = decode_form(reader, spec.form)

            unit.dies[die_offset] = die
            if parent is None:
                unit.root_offset = die_offset
            else:
                parent.children.append(die_offset)
            if declaration.has_children:
                parents.append(die)

        if parents:
            logger.debug(
                f"Unit 0x{header.offset:x} ended with {len(parents)} open sibling list(s)"
            )

        self._resolve_string_indices(unit)
        return unit

    def _resolve_string_indices(self, unit: CompilationUnit) -> None:
        """Replace DW_FORM_strx* indices with strings from .debug_str_offsets."""
        indexed = [
            (die, name, attr)
            for die in unit.iter_dies()
            for name, attr in die.attributes.items()
            if attr.form in STRING_INDEX_FORMS
        ]
        if not indexed:
            return

        offset_size = unit.header.offset_size
        root = unit.root
        base_attr = None if root is None else root.get_attribute("DW_AT_str_offsets_base")
        # Without the attribute, the table starts right after the first contribution header
        base = base_attr.value if base_attr is not None else 2 * offset_size

        if not self.sections.str_offsets:
            logger.warning(
                f"Unit 0x{unit.offset:x} uses indexed strings but .debug_str_offsets is missing"
            )
            for die, name, attr in indexed:
                die.attributes[name] = AttributeValue(
                    AttributeKind.STRING, f"<strx {attr.value}>", attr.form
                )
            return

        little_endian = self.sections.little_endian
        for die, name, attr in indexed:
            entry = ByteCursor(
                self.sections.str_offsets, base + attr.value * offset_size, little_endian
            )
            try:
                string_offset = entry.read_uint(offset_size)
                value = ByteCursor(self.sections.str, string_offset, little_endian).cstring()
            except TruncatedDataError as e:
                logger.debug(f"String index {attr.value} of DIE 0x{die.offset:x}: {e}")
                text = f"<strx {attr.value}>"
            else:
                text = value.decode("utf-8", errors="replace")
            die.attributes[name] = AttributeValue(AttributeKind.STRING, text, attr.form)

    def _build_unit_result(self, header: UnitHeader) -> _TimedResult:
        start = time()
        try:
            unit = self.build_unit(header)
            result = UnitResult(offset=header.offset, unit=unit)
        except DwarfDecodeError as e:
            logger.warning(f"Failed to decode unit at 0x{header.offset:08x}: {e}")
            result = UnitResult(offset=header.offset, error=e)
        return _TimedResult(result, time() - start)

    @log_timing
    def build_all(
        self,
        parallel: bool = False,
        workers: int | None = None,
        max_units: int | None = None,
        tracker: ProgressTracker | None = None,
    ) -> DebugInfo:
        """
        Decode every unit of the section.

        A unit that fails to decode is recorded with its error and does not
        stop the others.

        Args:
            parallel: Decode units on a thread pool
            workers: Number of worker threads (default: cpu_count())
            max_units: Optional maximum number of units to decode
            tracker: Optional progress tracker fed with per-unit statistics

        Returns:
            DebugInfo with unit results in section order
        """
        entries = self.scan_units(max_units)
        headers = [entry for entry in entries if isinstance(entry, UnitHeader)]

        if parallel and len(headers) > 1:
            num_workers = min(workers or cpu_count(), len(headers))
            logger.info(f"Decoding {len(headers)} units using {num_workers} worker threads...")
            with ThreadPool(num_workers) as pool:
                timed = pool.map(self._build_unit_result, headers)
        else:
            timed = [self._build_unit_result(header) for header in headers]

        built = iter(timed)
        debug_info = DebugInfo()
        for entry in entries:
            if isinstance(entry, UnitResult):
                debug_info.add(entry)
                if tracker is not None:
                    tracker.record_unit(entry.offset, 0, 0.0, entry.error)
                continue
            item = next(built)
            debug_info.add(item.result)
            if tracker is not None:
                die_count = len(item.result.unit.dies) if item.result.unit else 0
                tracker.record_unit(item.result.offset, die_count, item.elapsed, item.result.error)

        logger.info(
            f"Decoded {len(debug_info.units)} units "
            f"({len(debug_info.failed_units)} failed, {len(debug_info.index):,} DIEs)"
        )
        return debug_info
