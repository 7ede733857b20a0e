"""Configuration management for the locals extractor."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .dwarf_config import get_config

REPORT_VIEWS = ("functions", "types", "dies")

_TRUE_VALUES = ("true", "1", "yes", "on")


@dataclass
class Config:
    """Configuration for one extraction run."""

    elf_file_path: Path | None
    output_file: Path | None = None
    verbose: bool = False
    log_dir: Path | None = Path("logs")
    view: str = "functions"
    parallel: bool = False
    workers: int | None = None
    max_units: int | None = None

    @classmethod
    def from_env(cls, env_path: Path | None = None) -> "Config":
        """
        Load configuration from environment variables or a .env file.

        Decoding options (parallel, workers, max_units) start from the
        DWARF_* engine settings of get_config().

        Args:
            env_path: Optional path to .env file (defaults to .env in current directory)

        Returns:
            Config object
        """
        if env_path is None:
            env_path = Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        elf_file_path = os.getenv("ELF_FILE_PATH")
        output_file = os.getenv("OUTPUT_FILE")
        log_dir = os.getenv("LOG_DIR", "logs")
        tuning = get_config()

        return cls(
            elf_file_path=Path(elf_file_path) if elf_file_path else None,
            output_file=Path(output_file) if output_file else None,
            verbose=os.getenv("VERBOSE", "false").lower() in _TRUE_VALUES,
            log_dir=Path(log_dir) if log_dir else None,
            view=os.getenv("REPORT_VIEW", "functions").lower(),
            parallel=tuning["PARALLEL_UNITS"],
            workers=tuning["MAX_WORKERS"] or None,
            max_units=tuning["MAX_UNITS"] or None,
        )

    @classmethod
    def from_args(
        cls,
        elf_file_path: Path | None = None,
        output_file: Path | None = None,
        verbose: bool | None = None,
        view: str | None = None,
        parallel: bool | None = None,
        workers: int | None = None,
        max_units: int | None = None,
        env_path: Path | None = None,
    ) -> "Config":
        """
        Create configuration from explicit arguments, falling back to environment.

        Arguments left as None keep the environment (or default) value.

        Returns:
            Config object
        """
        config = cls.from_env(env_path)

        if elf_file_path is not None:
            config.elf_file_path = elf_file_path
        if output_file is not None:
            config.output_file = output_file
        if verbose is not None:
            config.verbose = verbose
        if view is not None:
            config.view = view
        if parallel is not None:
            config.parallel = parallel
        if workers is not None:
            config.workers = workers
        if max_units is not None:
            config.max_units = max_units

        return config

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.elf_file_path is None:
            raise ValueError("No ELF file given (pass a path or set ELF_FILE_PATH)")
        if not self.elf_file_path.exists():
            raise ValueError(f"ELF file not found: {self.elf_file_path}")
        if not self.elf_file_path.is_file():
            raise ValueError(f"Not a file: {self.elf_file_path}")
        if self.view not in REPORT_VIEWS:
            raise ValueError(
                f"Unknown report view '{self.view}' (expected one of {', '.join(REPORT_VIEWS)})"
            )
        if self.workers is not None and self.workers < 0:
            raise ValueError(f"Worker count must not be negative: {self.workers}")
        if self.max_units is not None and self.max_units < 0:
            raise ValueError(f"Unit limit must not be negative: {self.max_units}")

    def ensure_output_parent(self) -> None:
        """Create the directory the report is written to if it doesn't exist."""
        if self.output_file is not None:
            self.output_file.parent.mkdir(parents=True, exist_ok=True)
