"""Main entry point for DWARF Locals."""

import argparse
import sys
from pathlib import Path
from typing import NoReturn

from .application import extract_file, render_dies, render_functions, render_types
from .infrastructure.config import REPORT_VIEWS, Config, get_config
from .infrastructure.logging import LoggerSetup, ProgressTracker, get_logger, log_timing


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="dwarf-locals",
        description="List the parameters and local variables of every function in an "
        "ELF file, with their resolved types and stack locations",
        epilog="""
Examples:
  # Function view: one line per parameter or local
  dwarf-locals build/app

  # Write the report to a file
  dwarf-locals build/app -o locals.tsv

  # Every resolved type, members indented below aggregates
  dwarf-locals build/app --view types

  # Raw DIE dump
  dwarf-locals build/app --view dies --max-units 1

  # Decode units on 8 threads with debug logs
  dwarf-locals build/app --parallel --workers 8 --verbose

  # Using .env file for configuration
  echo 'ELF_FILE_PATH=build/app' > .env
  dwarf-locals
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "elf_file",
        type=Path,
        nargs="?",
        help="Path to the ELF file to analyze (optional if using .env)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Write the report to this file instead of stdout",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=None,
        help="Enable verbose output with debug logs",
    )
    parser.add_argument(
        "--view",
        choices=REPORT_VIEWS,
        help="Report view (default: functions)",
    )
    parser.add_argument(
        "--parallel",
        action="store_true",
        default=None,
        help="Decode and extract compilation units on a thread pool",
    )
    parser.add_argument(
        "--workers",
        type=int,
        metavar="N",
        help="Number of worker threads for --parallel (default: CPU count)",
    )
    parser.add_argument(
        "--max-units",
        type=int,
        metavar="N",
        help="Only process the first N compilation units",
    )
    return parser.parse_args(argv)


@log_timing
def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for locals extraction."""
    args = parse_args(argv)

    try:
        config = Config.from_args(
            elf_file_path=args.elf_file,
            output_file=args.output,
            verbose=args.verbose,
            view=args.view,
            parallel=args.parallel,
            workers=args.workers,
            max_units=args.max_units,
        )
        config.validate()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    LoggerSetup.initialize(config.log_dir, verbose=config.verbose)
    logger = get_logger(__name__)

    logger.debug(f"ELF file: {config.elf_file_path}")
    logger.debug(f"View: {config.view}, parallel: {config.parallel}, workers: {config.workers}")

    tracker = ProgressTracker(logger)
    assert config.elf_file_path is not None
    try:
        with tracker.track_operation("extraction"):
            result = extract_file(
                config.elf_file_path,
                parallel=config.parallel,
                workers=config.workers,
                max_units=config.max_units,
                tracker=tracker,
            )
    except (RuntimeError, ValueError) as e:
        logger.error(f"Extraction failed: {e}")
        sys.exit(1)

    machine_arch = result.machine_arch if get_config()["ARCH_REGISTER_NAMES"] else ""
    if config.view == "types":
        report = render_types(result)
    elif config.view == "dies":
        report = render_dies(result.debug_info)
    else:
        report = render_functions(result, machine_arch=machine_arch)

    if config.output_file is not None:
        config.ensure_output_parent()
        config.output_file.write_text(report, encoding="utf-8")
        logger.info(f"Report written to {config.output_file} ({len(report):,} bytes)")
    else:
        sys.stdout.write(report)

    tracker.report_summary()

    failed = result.failed_units
    logger.info("=" * 70)
    logger.info("EXTRACTION SUMMARY")
    logger.info("=" * 70)
    logger.info(f"Units: {len(result.units)}")
    logger.info(f"Functions: {len(result.functions)}")
    logger.info(f"Variables: {len(result.variables)}")
    logger.info(f"Failed units: {len(failed)}")
    for unit in failed:
        logger.info(f"  - 0x{unit.offset:08x}: {unit.error}")

    sys.exit(0 if not failed else 1)


if __name__ == "__main__":
    main()
