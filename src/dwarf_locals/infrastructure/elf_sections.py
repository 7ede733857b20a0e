#!/usr/bin/env python3

"""Debug section access for ELF files.

pyelftools reads the ELF container: section lookup by name, decompression
of SHF_COMPRESSED sections, byte order and machine architecture. Decoding of
the section contents is left to the core package.
"""

from pathlib import Path
from typing import BinaryIO

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile

from ..core.sections import DwarfSections
from .logging import get_logger

logger = get_logger(__name__)

# DwarfSections field -> ELF section name
DEBUG_SECTIONS = {
    "info": ".debug_info",
    "abbrev": ".debug_abbrev",
    "str": ".debug_str",
    "line_str": ".debug_line_str",
    "str_offsets": ".debug_str_offsets",
}


class ElfSectionProvider:
    """Context manager that exposes the debug sections of an ELF file.

    Example:
        with ElfSectionProvider(Path("a.out")) as provider:
            sections = provider.load()
            arch = provider.machine_arch
    """

    def __init__(self, elf_path: Path):
        """
        Initialize the provider.

        Args:
            elf_path: Path to the ELF file to read
        """
        self.elf_path = elf_path
        self._file: BinaryIO | None = None
        self.elf_file: ELFFile | None = None

    def __enter__(self) -> "ElfSectionProvider":
        """
        Open the ELF file.

        Raises:
            RuntimeError: If the file cannot be opened or is not a valid ELF file
        """
        logger.debug(f"Opening ELF file: {self.elf_path}")
        try:
            self._file = open(self.elf_path, "rb")
            self.elf_file = ELFFile(self._file)  # type: ignore[no-untyped-call]
        except (OSError, ELFError) as e:
            self.close()
            raise RuntimeError(f"Failed to open ELF file {self.elf_path}: {e}") from e

        logger.debug(
            f"ELF characteristics: machine={self.elf_file.header['e_machine']}, "
            f"little_endian={self.elf_file.little_endian}"
        )
        return self

    def __exit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object | None
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            logger.debug(f"Closed ELF file: {self.elf_path}")
        self._file = None
        self.elf_file = None

    def _require_open(self) -> ELFFile:
        if self.elf_file is None:
            raise RuntimeError("ElfSectionProvider used outside its context")
        return self.elf_file

    @property
    def machine_arch(self) -> str | None:
        """Architecture name as reported by pyelftools (e.g. 'x64', 'ARM')."""
        arch = self._require_open().get_machine_arch()
        return arch or None

    @property
    def little_endian(self) -> bool:
        return bool(self._require_open().little_endian)

    def section_data(self, name: str) -> bytes:
        """Contents of a section, decompressed; empty if the section is absent."""
        section = self._require_open().get_section_by_name(name)
        if section is None:
            return b""
        return bytes(section.data())

    def load(self) -> DwarfSections:
        """
        Read every debug section the decoder needs.

        Returns:
            DwarfSections with the byte order of the ELF file

        Raises:
            ValueError: If the file has no .debug_info section
        """
        elf = self._require_open()
        if elf.get_section_by_name(DEBUG_SECTIONS["info"]) is None:
            raise ValueError(f"{self.elf_path} has no .debug_info section")

        data = {field: self.section_data(name) for field, name in DEBUG_SECTIONS.items()}
        for field, name in DEBUG_SECTIONS.items():
            logger.debug(f"{name}: {len(data[field]):,} bytes")

        return DwarfSections(little_endian=self.little_endian, **data)


def load_sections(elf_path: Path) -> DwarfSections:
    """Read the debug sections of an ELF file in one call."""
    with ElfSectionProvider(elf_path) as provider:
        return provider.load()
