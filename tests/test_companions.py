"""
Test companion indexing and resolution.
"""

import os

import pytest

from sessionsort.companions import (CompanionIndex, CompanionRules, belongs_to,
                                    build_companion_index, is_raster_rendition,
                                    resolve_all, resolve_companions, split_name)
from sessionsort.errors import PreconditionError, ScopeViolation


@pytest.fixture
def shoot(create_test_files):
    """A primary with companions spread over sibling directories."""
    return create_test_files([
        {'name': 'a/DSC001.ARW'},
        {'name': 'a/DSC001.xmp'},
        {'name': 'a/DSC001.jpg'},
        {'name': 'a/DSC0010.xmp'},
        {'name': 'a/DSC0010.ARW'},
        {'name': 'b/DSC001.ARW.on1'},
        {'name': 'b/DSC0010.on1'},
        {'name': 'c/notes.txt'},
    ], base="root")


class TestNaming:
    """Test name splitting and prefix matching."""

    def test_split_name(self):
        assert split_name("DSC1.ARW") == ("DSC1", "DSC1.ARW")
        assert split_name("DSC1.ARW.on1") == ("DSC1.ARW", "DSC1.ARW.on1")
        assert split_name("README") == ("README", "README")

    @pytest.mark.parametrize("name,expected", [
        ("DSC1.on1", True),
        ("DSC1.ARW.on1", True),
        ("DSC1.on1.xml", True),
        ("DSC1 (1).onphoto", True),
        ("DSC1_edit.on1", True),
        ("DSC10.on1", False),
        ("DSC1a.on1", False),
        ("dsc1.on1", False),
    ])
    def test_belongs_to(self, name, expected):
        assert belongs_to(name, "DSC1", "DSC1.ARW") is expected

    def test_index_keys(self):
        assert CompanionIndex.keys_for("DSC001.ARW.on1") == ("dsc001.arw", "dsc001.arw.on1")


class TestCompanionIndex:
    """Test the one-pass companion index."""

    def test_indexes_candidates_only(self, shoot):
        index = build_companion_index(shoot)
        names = {p.name for p in index.paths()}

        assert names == {"DSC001.xmp", "DSC001.jpg", "DSC0010.xmp",
                         "DSC001.ARW.on1", "DSC0010.on1"}
        assert "dsc001.xmp" in index
        assert "dsc001" in index

    def test_skips_trash_and_hidden(self, shoot):
        trashed = shoot / ".sessionsort-trash" / "2025-06-03T09-00-00-000Z" / "a"
        trashed.mkdir(parents=True)
        (trashed / "DSC001.xmp").write_text("old")
        hidden = shoot / ".cache"
        hidden.mkdir()
        (hidden / "DSC001.on1").write_text("cache")
        (shoot / "a" / ".DSC001.xmp").write_text("dot")

        index = build_companion_index(shoot)

        for path in index.paths():
            assert ".sessionsort-trash" not in path.parts
            assert not any(part.startswith(".") for part in path.relative_to(shoot).parts)

    def test_does_not_follow_directory_symlinks(self, shoot, tmp_path):
        outside = tmp_path / "elsewhere"
        outside.mkdir()
        (outside / "DSC001.on1").write_text("outside")
        os.symlink(outside, shoot / "link")

        index = build_companion_index(shoot)

        assert all(outside not in p.parents for p in index.paths())

    def test_missing_root(self, tmp_path):
        with pytest.raises(PreconditionError, match="does not exist"):
            build_companion_index(tmp_path / "nope")

    def test_root_is_file(self, tmp_path):
        f = tmp_path / "file.txt"
        f.write_text("x")
        with pytest.raises(PreconditionError, match="not a directory"):
            build_companion_index(f)


class TestResolveCompanions:
    """Test per-primary companion resolution."""

    def test_sidecar_artifact_and_rendition(self, shoot):
        """Exactly the primary's own companions are returned, never a longer name's."""
        index = build_companion_index(shoot)

        found = resolve_companions(shoot / "a" / "DSC001.ARW", index)

        assert found == sorted([
            shoot / "a" / "DSC001.jpg",
            shoot / "a" / "DSC001.xmp",
            shoot / "b" / "DSC001.ARW.on1",
        ])

    def test_full_name_sidecar(self, shoot):
        (shoot / "a" / "DSC001.ARW.xmp").write_text("xmp")
        index = build_companion_index(shoot)

        found = resolve_companions(shoot / "a" / "DSC001.ARW", index)

        assert shoot / "a" / "DSC001.ARW.xmp" in found

    def test_case_insensitive_sidecar(self, shoot):
        (shoot / "a" / "DSC0010.XMP").write_text("xmp")
        (shoot / "a" / "DSC0010.xmp").unlink()
        index = build_companion_index(shoot)

        found = resolve_companions(shoot / "a" / "DSC0010.ARW", index)

        assert shoot / "a" / "DSC0010.XMP" in found
        assert shoot / "b" / "DSC0010.on1" in found

    def test_jpg_primary_has_no_rendition(self, create_test_files):
        root = create_test_files([
            {'name': 'IMG_1.JPG'},
            {'name': 'IMG_1.jpeg'},
            {'name': 'IMG_1.xmp'},
        ], base="phone")
        index = build_companion_index(root)

        found = resolve_companions(root / "IMG_1.JPG", index)

        assert found == [root / "IMG_1.xmp"]

    def test_rendition_disabled(self, shoot):
        rules = CompanionRules(include_raster_for_raw=False)
        index = build_companion_index(shoot, rules)

        found = resolve_companions(shoot / "a" / "DSC001.ARW", index, rules=rules)

        assert shoot / "a" / "DSC001.jpg" not in found

    def test_primary_outside_root(self, shoot):
        index = build_companion_index(shoot)
        with pytest.raises(ScopeViolation):
            resolve_companions(shoot / "a" / ".." / ".." / "DSC001.ARW", index)

    def test_narrower_root_excludes_siblings(self, shoot):
        """Companions from a wider index never escape the requested root."""
        index = build_companion_index(shoot)

        found = resolve_companions(shoot / "a" / "DSC001.ARW", index, root=shoot / "a")

        assert shoot / "b" / "DSC001.ARW.on1" not in found
        assert all(p.parent == shoot / "a" for p in found)

    def test_resolve_all(self, shoot):
        index = build_companion_index(shoot)
        result = resolve_all([shoot / "a" / "DSC001.ARW", shoot / "a" / "DSC0010.ARW"], index)

        assert len(result[shoot / "a" / "DSC001.ARW"]) == 3
        assert result[shoot / "a" / "DSC0010.ARW"] == [shoot / "a" / "DSC0010.xmp",
                                                      shoot / "b" / "DSC0010.on1"]

    def test_raster_rendition(self, shoot):
        raw = shoot / "a" / "DSC001.ARW"
        assert is_raster_rendition(shoot / "a" / "DSC001.jpg", raw)
        assert not is_raster_rendition(shoot / "a" / "DSC001.xmp", raw)
        assert not is_raster_rendition(shoot / "x.jpg", shoot / "y.JPG")
