"""
pytest configuration and fixtures for sessionsort tests.
"""

import io
import os
import shutil
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Sequence

import pytest

from sessionsort.sessions import ScanItem


@dataclass
class CliResult:
    """Result from running CLI command."""
    exit_code: int
    output: str
    error: str


@pytest.fixture(scope="session")
def test_config_base(tmp_path_factory):
    """Shared test config directory for all tests."""
    return tmp_path_factory.mktemp("sessionsort_test_config")


@pytest.fixture
def test_config_path(test_config_base):
    """Test-specific config path with clean state guarantee."""
    config_path = test_config_base / "config.yml"

    if config_path.exists():
        config_path.unlink()

    # Also clean any residual history or operation logs
    history_dir = test_config_base / "history"
    operations_log = test_config_base / "operations.log"
    if history_dir.exists():
        shutil.rmtree(history_dir)
    if operations_log.exists():
        operations_log.unlink()

    return config_path


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep root overrides from the developer's shell out of the tests."""
    monkeypatch.delenv("SESSIONSORT_SOURCE_ROOT", raising=False)
    monkeypatch.delenv("SESSIONSORT_ARCHIVE_ROOT", raising=False)


@pytest.fixture
def cli_runner(monkeypatch):
    """Create a CLI runner that captures output and uses test config.

    Capture times come from file modification times; exiftool is never run.
    """
    monkeypatch.setattr("sessionsort.core.ExifTimestampProvider",
                        lambda timeout, tz: (lambda path: None))

    def run_cli(*args, config_path=None, answer="n"):
        from sessionsort.cli import main
        from sessionsort.constants import get_console

        old_stdout, old_stderr, old_argv = sys.stdout, sys.stderr, sys.argv
        stdout, stderr = io.StringIO(), io.StringIO()

        console = get_console()
        monkeypatch.setattr(console, "input", lambda prompt="": answer)

        try:
            sys.stdout = stdout
            sys.stderr = stderr
            sys.argv = ['sessionsort'] + [str(a) for a in args]
            exit_code = main(config_path=config_path)
            return CliResult(exit_code=exit_code, output=stdout.getvalue(),
                             error=stderr.getvalue())
        except SystemExit as e:
            return CliResult(exit_code=e.code if e.code is not None else 0,
                             output=stdout.getvalue(), error=stderr.getvalue())
        finally:
            sys.stdout, sys.stderr, sys.argv = old_stdout, old_stderr, old_argv

    return run_cli


@pytest.fixture
def create_test_files(tmp_path):
    """Helper to create test files with specific properties."""

    def create_files(file_specs: List[dict], base: str = "source") -> Path:
        """Create test files based on specifications.

        Args:
            file_specs: List of dicts with keys:
                - name: relative file path
                - content: file content (optional)
                - mtime: modification time as datetime (optional)

        Returns:
            Path to directory containing created files
        """
        test_dir = tmp_path / base
        test_dir.mkdir(exist_ok=True)

        for spec in file_specs:
            file_path = test_dir / spec['name']
            file_path.parent.mkdir(parents=True, exist_ok=True)

            content = spec.get('content', f"data for {spec['name']}".encode())
            if isinstance(content, str):
                file_path.write_text(content)
            else:
                file_path.write_bytes(content)

            if 'mtime' in spec:
                mtime = spec['mtime'].timestamp()
                os.utime(file_path, (mtime, mtime))

        return test_dir

    return create_files


@pytest.fixture
def make_items():
    """Build time-sorted scan items from millisecond offsets."""

    def build(offsets: Sequence[int], prefix: str = "/photos/IMG") -> List[ScanItem]:
        return [ScanItem(path=Path(f"{prefix}_{i:04d}.ARW"), captured_at=ts)
                for i, ts in enumerate(sorted(offsets))]

    return build


@pytest.fixture
def camera_card(create_test_files):
    """A card with two shoots an hour apart, plus sidecars and renditions."""
    morning = datetime(2025, 6, 3, 9, 0, 0, tzinfo=timezone.utc)
    later = datetime(2025, 6, 3, 11, 0, 0, tzinfo=timezone.utc)
    return create_test_files([
        {'name': 'DCIM/100MSDCF/DSC001.ARW', 'mtime': morning},
        {'name': 'DCIM/100MSDCF/DSC001.xmp', 'mtime': morning},
        {'name': 'DCIM/100MSDCF/DSC001.JPG', 'mtime': morning},
        {'name': 'DCIM/100MSDCF/DSC002.ARW', 'mtime': morning.replace(second=20)},
        {'name': 'DCIM/100MSDCF/DSC002.ARW.on1', 'mtime': morning.replace(second=20)},
        {'name': 'DCIM/100MSDCF/DSC0020.xmp', 'mtime': later},
        {'name': 'DCIM/101MSDCF/DSC0020.ARW', 'mtime': later},
        {'name': 'DCIM/101MSDCF/notes.txt', 'mtime': later},
    ])
