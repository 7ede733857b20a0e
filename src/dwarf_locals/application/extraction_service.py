#!/usr/bin/env python3

"""Extraction orchestrator (Application Layer).

Runs the pipeline over every compilation unit of a file:
- DieTreeBuilder: unit headers, abbreviations and DIE arenas
- TypeResolver: shared, cached type descriptors
- LocationEvaluator: one per unit, sized for the unit's addresses
- VariableExtractor: FunctionRecords per unit

A unit that fails structurally is reported with its error; the remaining
units are still extracted.
"""

from dataclasses import dataclass, field
from multiprocessing import cpu_count
from multiprocessing.pool import ThreadPool
from pathlib import Path

from ..core.die_tree import DieTreeBuilder
from ..core.errors import DwarfDecodeError
from ..core.models import DebugInfo, UnitResult
from ..core.sections import DwarfSections
from ..domain.models.variable_record import FunctionRecord, VariableRecord
from ..domain.services import LocationEvaluator, TypeResolver, VariableExtractor
from ..infrastructure.elf_sections import ElfSectionProvider
from ..infrastructure.logging import ProgressTracker, get_logger, log_timing

logger = get_logger(__name__)


@dataclass
class UnitReport:
    """Extraction outcome for one compilation unit."""

    offset: int
    functions: list[FunctionRecord] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ExtractionResult:
    """Per-unit reports in section order, plus what is needed to render them."""

    units: list[UnitReport]
    resolver: TypeResolver
    machine_arch: str | None = None

    @property
    def debug_info(self) -> DebugInfo:
        return self.resolver.debug_info

    @property
    def functions(self) -> list[FunctionRecord]:
        return [function for unit in self.units for function in unit.functions]

    @property
    def variables(self) -> list[VariableRecord]:
        return [variable for function in self.functions for variable in function.variables]

    @property
    def failed_units(self) -> list[UnitReport]:
        return [unit for unit in self.units if not unit.ok]


class ExtractionService:
    """Extracts parameters and locals from raw debug sections."""

    def __init__(
        self,
        sections: DwarfSections,
        machine_arch: str | None = None,
        parallel: bool = False,
        workers: int | None = None,
        max_units: int | None = None,
        tracker: ProgressTracker | None = None,
    ):
        """
        Initialize the service.

        Args:
            sections: Debug section bytes
            machine_arch: pyelftools architecture name, kept for rendering
            parallel: Decode and extract units on a thread pool
            workers: Number of worker threads (default: cpu_count())
            max_units: Optional maximum number of units to process
            tracker: Optional progress tracker
        """
        self.sections = sections
        self.machine_arch = machine_arch
        self.parallel = parallel
        self.workers = workers
        self.max_units = max_units
        self.tracker = tracker

    def _extract_unit(self, resolver: TypeResolver, result: UnitResult) -> UnitReport:
        if result.unit is None:
            return UnitReport(offset=result.offset, error=result.error)

        unit = result.unit
        header = unit.header
        evaluator = LocationEvaluator(
            header.address_size, self.sections.little_endian, header.offset_size
        )
        extractor = VariableExtractor(resolver, evaluator)
        try:
            functions = extractor.extract_unit(unit)
        except DwarfDecodeError as e:
            logger.warning(f"Failed to extract unit at 0x{unit.offset:08x}: {e}")
            return UnitReport(offset=unit.offset, error=e)
        return UnitReport(offset=unit.offset, functions=functions)

    @log_timing
    def extract(self) -> ExtractionResult:
        """
        Run decoding and extraction over every unit.

        Returns:
            ExtractionResult with one UnitReport per unit, in section order
        """
        builder = DieTreeBuilder(self.sections)
        debug_info = builder.build_all(
            parallel=self.parallel,
            workers=self.workers,
            max_units=self.max_units,
            tracker=self.tracker,
        )
        resolver = TypeResolver(
            debug_info, LocationEvaluator(little_endian=self.sections.little_endian)
        )

        results = debug_info.units
        if self.parallel and len(results) > 1:
            num_workers = min(self.workers or cpu_count(), len(results))
            logger.info(f"Extracting {len(results)} units using {num_workers} worker threads...")
            with ThreadPool(num_workers) as pool:
                reports = pool.starmap(
                    self._extract_unit, [(resolver, result) for result in results]
                )
        else:
            reports = [self._extract_unit(resolver, result) for result in results]

        extraction = ExtractionResult(
            units=reports, resolver=resolver, machine_arch=self.machine_arch
        )
        if self.tracker is not None:
            self.tracker.count_variables(len(extraction.variables))

        logger.info(
            f"Extracted {len(extraction.functions)} functions and "
            f"{len(extraction.variables)} variables from {len(reports)} units "
            f"({len(extraction.failed_units)} failed)"
        )
        return extraction


def extract_file(
    elf_path: Path,
    parallel: bool = False,
    workers: int | None = None,
    max_units: int | None = None,
    tracker: ProgressTracker | None = None,
) -> ExtractionResult:
    """
    Extract parameters and locals from an ELF file.

    Raises:
        RuntimeError: If the ELF file cannot be opened
        ValueError: If the file has no .debug_info section
    """
    with ElfSectionProvider(elf_path) as provider:
        sections = provider.load()
        machine_arch = provider.machine_arch

    service = ExtractionService(
        sections,
        machine_arch=machine_arch,
        parallel=parallel,
        workers=workers,
        max_units=max_units,
        tracker=tracker,
    )
    return service.extract()
