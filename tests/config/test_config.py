"""Tests for configuration management functionality."""

from pathlib import Path

import pytest

from dwarf_locals.infrastructure.config import DEFAULT_CONFIG, Config, get_config

ENV_VARS = (
    "ELF_FILE_PATH",
    "OUTPUT_FILE",
    "VERBOSE",
    "LOG_DIR",
    "REPORT_VIEW",
    *(f"DWARF_{key}" for key in DEFAULT_CONFIG),
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Run each test in an empty directory with no configuration variables set."""
    for name in ENV_VARS:
        # Registered with setenv so values loaded from .env files are undone too
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def elf_file(tmp_path: Path) -> Path:
    path = tmp_path / "app.elf"
    path.write_bytes(b"\x7fELF")
    return path


@pytest.mark.unit
def test_defaults() -> None:
    """Test configuration with nothing set."""
    config = Config.from_env()
    assert config.elf_file_path is None
    assert config.output_file is None
    assert config.verbose is False
    assert config.log_dir == Path("logs")
    assert config.view == "functions"
    assert config.parallel is False
    assert config.workers is None
    assert config.max_units is None


@pytest.mark.unit
def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test configuration loading from environment variables."""
    monkeypatch.setenv("ELF_FILE_PATH", "build/app")
    monkeypatch.setenv("OUTPUT_FILE", "out/locals.tsv")
    monkeypatch.setenv("VERBOSE", "yes")
    monkeypatch.setenv("REPORT_VIEW", "Types")
    monkeypatch.setenv("DWARF_PARALLEL_UNITS", "true")
    monkeypatch.setenv("DWARF_MAX_WORKERS", "4")
    monkeypatch.setenv("DWARF_MAX_UNITS", "10")

    config = Config.from_env()

    assert config.elf_file_path == Path("build/app")
    assert config.output_file == Path("out/locals.tsv")
    assert config.verbose is True
    assert config.view == "types"
    assert config.parallel is True
    assert config.workers == 4
    assert config.max_units == 10


@pytest.mark.unit
def test_config_env_file_loading(isolated_env: Path) -> None:
    """Test loading configuration from a .env file in the working directory."""
    (isolated_env / ".env").write_text("ELF_FILE_PATH=from_dotenv.elf\nVERBOSE=1\n")

    config = Config.from_env()

    assert config.elf_file_path == Path("from_dotenv.elf")
    assert config.verbose is True


@pytest.mark.unit
def test_empty_log_dir_disables_file_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_DIR", "")
    assert Config.from_env().log_dir is None


@pytest.mark.unit
def test_args_override_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that explicit arguments win and None keeps the environment value."""
    monkeypatch.setenv("ELF_FILE_PATH", "env.elf")
    monkeypatch.setenv("VERBOSE", "true")
    monkeypatch.setenv("DWARF_MAX_WORKERS", "2")

    config = Config.from_args(elf_file_path=Path("cli.elf"), view="dies", parallel=True)

    assert config.elf_file_path == Path("cli.elf")
    assert config.verbose is True
    assert config.view == "dies"
    assert config.parallel is True
    assert config.workers == 2


@pytest.mark.unit
def test_validate_accepts_existing_file(elf_file: Path) -> None:
    Config.from_args(elf_file_path=elf_file).validate()


@pytest.mark.unit
@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"elf_file_path": None}, "No ELF file"),
        ({"elf_file_path": Path("missing.elf")}, "not found"),
        ({"view": "symbols"}, "Unknown report view"),
        ({"workers": -1}, "Worker count"),
        ({"max_units": -5}, "Unit limit"),
    ],
)
def test_config_validation(elf_file: Path, overrides: dict, message: str) -> None:
    """Test configuration validation and error handling."""
    config = Config.from_args(elf_file_path=elf_file)
    for name, value in overrides.items():
        setattr(config, name, value)
    with pytest.raises(ValueError, match=message):
        config.validate()


@pytest.mark.unit
def test_directory_is_not_a_file(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Not a file"):
        Config.from_args(elf_file_path=tmp_path).validate()


@pytest.mark.unit
def test_ensure_output_parent(tmp_path: Path) -> None:
    config = Config(elf_file_path=None, output_file=tmp_path / "nested" / "dir" / "out.tsv")
    config.ensure_output_parent()
    assert (tmp_path / "nested" / "dir").is_dir()


class TestGetConfig:
    """Tests for DWARF_* engine settings."""

    @pytest.mark.unit
    def test_defaults(self) -> None:
        assert get_config() == DEFAULT_CONFIG

    @pytest.mark.unit
    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DWARF_ARCH_REGISTER_NAMES", "false")
        monkeypatch.setenv("DWARF_MAX_UNITS", "3")
        config = get_config()
        assert config["ARCH_REGISTER_NAMES"] is False
        assert config["MAX_UNITS"] == 3

    @pytest.mark.unit
    def test_invalid_integer_is_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DWARF_MAX_WORKERS", "many")
        assert get_config()["MAX_WORKERS"] == 0

    @pytest.mark.unit
    def test_defaults_not_mutated(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DWARF_PARALLEL_UNITS", "1")
        get_config()
        assert DEFAULT_CONFIG["PARALLEL_UNITS"] is False
