#!/usr/bin/env python3

"""Unit tests for unit header decoding and DIE tree construction."""

from dataclasses import replace

import pytest

from dwarf_locals.core.die_tree import DieTreeBuilder
from dwarf_locals.core.errors import (
    FormMismatchError,
    MalformedUnitError,
    TruncatedDataError,
    UnknownAbbreviationCodeError,
    UnresolvedTypeReferenceError,
)
from dwarf_locals.core.models import AttributeKind
from dwarf_locals.core.sections import DwarfSections
from dwarf_locals.infrastructure.logging import ProgressTracker, get_logger

from tests.dwarf_assembler import DwarfAssembler, die
from tests.sample_programs import build_debug_info, int_type, sample_unit


class TestUnitHeaders:
    """Header decoding for the supported DWARF versions."""

    @pytest.mark.unit
    def test_version4_header(self, sample_sections: DwarfSections) -> None:
        header = DieTreeBuilder(sample_sections).read_unit_header(0)

        assert header.version == 4
        assert header.offset_size == 4
        assert header.address_size == 8
        assert header.abbrev_offset == 0
        assert header.die_offset == 11
        assert header.end_offset == len(sample_sections.info)

    @pytest.mark.unit
    def test_version5_header(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(die("compile_unit", ("name", "string", "a.c")), version=5)
        header = DieTreeBuilder(assembler.sections()).read_unit_header(0)

        assert header.version == 5
        assert header.unit_type == 1
        assert header.die_offset == 12

    @pytest.mark.unit
    def test_dwarf64_header(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(die("compile_unit", ("name", "strp", "a.c")), dwarf64=True)
        sections = assembler.sections()
        header = DieTreeBuilder(sections).read_unit_header(0)

        assert header.offset_size == 8
        assert header.die_offset == 23
        unit = DieTreeBuilder(sections).build_unit(header)
        assert unit.root.get_name() == "a.c"

    @pytest.mark.unit
    def test_unsupported_version(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(die("compile_unit"), version=7)
        with pytest.raises(MalformedUnitError):
            DieTreeBuilder(assembler.sections()).read_unit_header(0)

    @pytest.mark.unit
    def test_length_past_section_end(self, sample_sections: DwarfSections) -> None:
        info = sample_sections.info[:-4]
        sections = DwarfSections(info=info, abbrev=sample_sections.abbrev)
        with pytest.raises(TruncatedDataError):
            DieTreeBuilder(sections).read_unit_header(0)

    @pytest.mark.unit
    @pytest.mark.parametrize("address_size", [0, 3, 16])
    def test_unsupported_address_size(self, assembler: DwarfAssembler, address_size: int) -> None:
        assembler.add_unit(die("compile_unit"), address_size=address_size)
        with pytest.raises(MalformedUnitError, match="address size"):
            DieTreeBuilder(assembler.sections()).read_unit_header(0)

    @pytest.mark.unit
    def test_two_byte_addresses(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(die("compile_unit", ("low_pc", "addr", 0x1234)), address_size=2)
        sections = assembler.sections()
        header = DieTreeBuilder(sections).read_unit_header(0)

        assert header.address_size == 2
        root = DieTreeBuilder(sections).build_unit(header).root
        assert root.get_attribute("DW_AT_low_pc").value == 0x1234


class TestBuildUnit:
    """DIE arena construction."""

    @pytest.mark.unit
    def test_tree_structure(self, sample_sections: DwarfSections) -> None:
        builder = DieTreeBuilder(sample_sections)
        unit = builder.build_unit(builder.read_unit_header(0))

        root = unit.root
        assert root is not None
        assert root.offset == 11
        assert root.tag == "DW_TAG_compile_unit"
        assert root.depth == 0
        assert root.parent is None
        assert root.get_name() == "test.c"

        children = list(unit.iter_children(root))
        assert [child.tag for child in children] == [
            "DW_TAG_base_type",
            "DW_TAG_structure_type",
            "DW_TAG_pointer_type",
            "DW_TAG_subprogram",
        ]
        subprogram = children[-1]
        assert subprogram.get_name() == "main"
        assert subprogram.get_block("DW_AT_frame_base") == bytes([0x76, 0x10])

        variables = list(unit.iter_children(subprogram))
        assert [v.get_name() for v in variables] == ["x", "y"]
        assert all(v.depth == 2 for v in variables)
        assert unit.parent_of(variables[0]) is subprogram

    @pytest.mark.unit
    def test_references_are_absolute(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(sample_unit("first.c"))
        second = assembler.add_unit(sample_unit("second.c"))
        debug_info = build_debug_info(assembler.sections())

        unit = debug_info.units[1].unit
        int_offset = assembler.labels["int"]
        assert int_offset > second
        x = next(d for d in unit.iter_dies() if d.get_name() == "x")
        assert x.get_reference("DW_AT_type") == int_offset
        assert debug_info.get_die(int_offset).get_name() == "int"
        assert debug_info.unit_of(x) is unit

    @pytest.mark.unit
    def test_ref_addr_crosses_units(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(die("compile_unit", children=[int_type("shared_int")]))
        assembler.add_unit(
            die(
                "compile_unit",
                children=[
                    die("variable", ("name", "string", "g"), ("type", "ref_addr", "shared_int"))
                ],
            )
        )
        debug_info = build_debug_info(assembler.sections())
        g = next(d for d in debug_info.index.values() if d.get_name() == "g")
        target = debug_info.get_die(g.get_reference("DW_AT_type"))
        assert target.tag == "DW_TAG_base_type"
        assert target.unit_offset == 0

    @pytest.mark.unit
    def test_version5_indexed_strings(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(
            die(
                "compile_unit",
                ("name", "strx1", "v5.c"),
                children=[die("variable", ("name", "strx1", "counter"))],
            ),
            version=5,
        )
        unit = build_debug_info(assembler.sections()).units[0].unit

        names = [d.get_name() for d in unit.iter_dies()]
        assert names == ["v5.c", "counter"]
        assert unit.root.get_attribute("DW_AT_name").form == "DW_FORM_strx1"

    @pytest.mark.unit
    def test_string_index_past_offsets_table(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(
            die(
                "compile_unit",
                ("name", "strx1", "v5.c"),
                children=[die("variable", ("name", "strx1", "counter"))],
            ),
            version=5,
        )
        sections = assembler.sections()
        # Contribution header and the first entry only
        sections = replace(sections, str_offsets=sections.str_offsets[:12])
        result = build_debug_info(sections).units[0]

        assert result.ok
        assert [d.get_name() for d in result.unit.iter_dies()] == ["v5.c", "<strx 1>"]

    @pytest.mark.unit
    def test_unknown_tag_is_kept(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(die("compile_unit", children=[die(0x5123, ("name", "string", "x"))]))
        unit = build_debug_info(assembler.sections()).units[0].unit

        child = next(unit.iter_children(unit.root))
        assert child.tag == "DW_TAG_unknown_0x5123"
        assert child.tag_code == 0x5123
        assert child.get_name() == "x"

    @pytest.mark.unit
    def test_implicit_const_attribute(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(
            die(
                "compile_unit",
                children=[
                    die("variable", ("name", "string", "a"), ("decl_file", "implicit_const", 3)),
                    die("variable", ("name", "string", "b"), ("decl_file", "implicit_const", 3)),
                ],
            ),
            version=5,
        )
        unit = build_debug_info(assembler.sections()).units[0].unit
        for variable in unit.iter_children(unit.root):
            attr = variable.get_attribute("DW_AT_decl_file")
            assert attr.kind is AttributeKind.SIGNED
            assert attr.value == 3

    @pytest.mark.unit
    def test_flag_present_and_signed_data(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(
            die(
                "compile_unit",
                children=[
                    die(
                        "variable",
                        ("name", "string", "v"),
                        ("external", "flag_present", True),
                        ("const_value", "sdata", -7),
                    )
                ],
            )
        )
        unit = build_debug_info(assembler.sections()).units[0].unit
        variable = next(unit.iter_children(unit.root))
        assert variable.get_flag("DW_AT_external")
        assert variable.get_constant("DW_AT_const_value") == -7
        assert not variable.get_flag("DW_AT_declaration")

    @pytest.mark.unit
    def test_form_mismatch_on_typed_access(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(die("compile_unit", ("name", "data1", 5)))
        unit = build_debug_info(assembler.sections()).units[0].unit
        with pytest.raises(FormMismatchError):
            unit.root.get_name()

    @pytest.mark.unit
    def test_unknown_offset_lookup(self, sample_debug_info) -> None:
        with pytest.raises(UnresolvedTypeReferenceError):
            sample_debug_info.get_die(0xDEAD)


class TestBuildAll:
    """Whole-section decoding with per-unit error isolation."""

    @pytest.mark.unit
    def test_corrupt_unit_does_not_stop_the_next(self, assembler: DwarfAssembler) -> None:
        first = assembler.add_unit(sample_unit("first.c"))
        corrupt = assembler.add_raw_unit(b"\x63")
        third = assembler.add_unit(sample_unit("third.c"))
        debug_info = build_debug_info(assembler.sections())

        assert [result.offset for result in debug_info.units] == [first, corrupt, third]
        assert debug_info.units[0].ok
        assert isinstance(debug_info.units[1].error, UnknownAbbreviationCodeError)
        assert debug_info.units[2].ok
        assert debug_info.units[2].unit.root.get_name() == "third.c"
        assert len(debug_info.failed_units) == 1

    @pytest.mark.unit
    def test_bad_version_is_skipped_by_length(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(die("compile_unit", ("name", "string", "old.c")), version=7)
        good = assembler.add_unit(sample_unit())
        debug_info = build_debug_info(assembler.sections())

        assert len(debug_info.units) == 2
        assert isinstance(debug_info.units[0].error, MalformedUnitError)
        assert debug_info.units[1].offset == good
        assert debug_info.units[1].ok

    @pytest.mark.unit
    def test_bad_address_size_is_skipped_by_length(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(
            die("compile_unit", ("name", "string", "odd.c"), ("low_pc", "addr", 0)),
            address_size=0,
        )
        good = assembler.add_unit(sample_unit("good.c"))
        debug_info = build_debug_info(assembler.sections())

        assert [result.ok for result in debug_info.units] == [False, True]
        assert isinstance(debug_info.units[0].error, MalformedUnitError)
        assert debug_info.units[1].offset == good

    @pytest.mark.unit
    def test_truncated_trailing_header_stops_walk(self, sample_sections: DwarfSections) -> None:
        sections = DwarfSections(
            info=sample_sections.info + b"\x10\x00", abbrev=sample_sections.abbrev
        )
        debug_info = build_debug_info(sections)

        assert len(debug_info.units) == 2
        assert debug_info.units[0].ok
        assert isinstance(debug_info.units[1].error, TruncatedDataError)

    @pytest.mark.unit
    def test_max_units(self, assembler: DwarfAssembler) -> None:
        for name in ("a.c", "b.c", "c.c"):
            assembler.add_unit(sample_unit(name))
        builder = DieTreeBuilder(assembler.sections())

        assert len(builder.build_all(max_units=2).units) == 2
        assert len(list(builder.iter_unit_headers())) == 3

    @pytest.mark.unit
    def test_parallel_matches_sequential(self, assembler: DwarfAssembler) -> None:
        for index in range(6):
            assembler.add_unit(sample_unit(f"unit{index}.c", function=f"f{index}"))
        assembler.add_raw_unit(b"\x63")
        builder = DieTreeBuilder(assembler.sections())

        sequential = builder.build_all()
        parallel = builder.build_all(parallel=True, workers=3)

        assert [r.offset for r in parallel.units] == [r.offset for r in sequential.units]
        assert [r.ok for r in parallel.units] == [r.ok for r in sequential.units]
        assert parallel.index.keys() == sequential.index.keys()

    @pytest.mark.unit
    def test_tracker_records_units(self, assembler: DwarfAssembler) -> None:
        assembler.add_unit(sample_unit())
        assembler.add_raw_unit(b"\x63")
        tracker = ProgressTracker(get_logger("test"))

        DieTreeBuilder(assembler.sections()).build_all(tracker=tracker)

        assert tracker.unit_count == 2
        assert tracker.failed_units == 1
        assert tracker.die_count > 0
