"""
Test file permissions and ownership features for imported files.
"""

import argparse
import grp
import os
import stat

import pytest

from sessionsort.permissions import parse_file_mode, parse_group


def _imported_files(archive_dir):
    return [p for p in archive_dir.rglob("*") if p.is_file()]


class TestFilePermissions:
    """Test file mode and group ownership functionality."""

    @pytest.mark.parametrize("mode", ["644", "600", "440"])
    def test_custom_file_mode(self, cli_runner, camera_card, tmp_path, test_config_path, mode):
        """Test setting the mode of every imported file."""
        archive = tmp_path / "PhotoRaw"
        archive.mkdir()

        result = cli_runner("import", camera_card, "--session", "0", "--archive-root", archive,
                            "--mode", mode, config_path=test_config_path)

        assert result.exit_code == 0
        files = _imported_files(archive)
        assert len(files) == 5
        for file_path in files:
            assert oct(stat.S_IMODE(file_path.stat().st_mode)) == oct(int(mode, 8)), \
                f"File {file_path.name} should have mode {mode}"

    def test_sources_keep_their_mode(self, cli_runner, camera_card, tmp_path, test_config_path):
        archive = tmp_path / "PhotoRaw"
        archive.mkdir()
        source = camera_card / "DCIM" / "100MSDCF" / "DSC001.ARW"
        before = stat.S_IMODE(source.stat().st_mode)

        cli_runner("import", camera_card, "--session", "0", "--archive-root", archive,
                   "--mode", "400", config_path=test_config_path)

        assert stat.S_IMODE(source.stat().st_mode) == before

    def test_current_group(self, cli_runner, camera_card, tmp_path, test_config_path):
        """Test group ownership with the caller's own primary group."""
        archive = tmp_path / "PhotoRaw"
        archive.mkdir()
        group_name = grp.getgrgid(os.getgid()).gr_name

        result = cli_runner("import", camera_card, "--session", "1", "--archive-root", archive,
                            "--group", group_name, config_path=test_config_path)

        assert result.exit_code == 0
        for file_path in _imported_files(archive):
            assert file_path.stat().st_gid == os.getgid()

    def test_unknown_group(self, cli_runner, camera_card, tmp_path, test_config_path):
        archive = tmp_path / "PhotoRaw"
        archive.mkdir()

        result = cli_runner("import", camera_card, "--session", "0", "--archive-root", archive,
                            "--group", "no-such-group-xyz", config_path=test_config_path)

        assert result.exit_code == 1
        assert "not found" in result.output
        assert _imported_files(archive) == []


class TestPermissionParsing:
    """Test mode and group argument parsing."""

    @pytest.mark.parametrize("value,expected", [("644", 0o644), ("0600", 0o600), ("777", 0o777)])
    def test_valid_modes(self, value, expected):
        assert parse_file_mode(value) == expected

    @pytest.mark.parametrize("value", ["999", "64", "rw-r--r--", "12345", ""])
    def test_invalid_modes(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_file_mode(value)

    def test_group_lookup(self):
        name = grp.getgrgid(os.getgid()).gr_name
        assert parse_group(name) == os.getgid()
