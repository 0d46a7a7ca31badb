"""
Test session grouping by capture-time gaps.
"""

import random
from pathlib import Path

import pytest

from sessionsort.errors import PreconditionError
from sessionsort.sessions import (ScanItem, find_session, group_sessions,
                                  group_sessions_by_minutes, sort_scan_items)


class TestGroupSessions:
    """Test single-pass gap clustering."""

    def test_two_sessions(self, make_items):
        """A gap larger than the threshold starts a new session."""
        sessions = group_sessions(make_items([0, 30_000, 45_000, 4_000_000]), 60_000)

        assert len(sessions) == 2
        first, second = sessions
        assert (first.id, first.start, first.end, first.count) == ("0", 0, 45_000, 3)
        assert (second.id, second.start, second.end, second.count) == ("1", 4_000_000, 4_000_000, 1)
        assert first.example_path == first.items[0]
        assert first.duration == 45_000

    def test_empty_input(self):
        assert group_sessions([], 60_000) == []

    def test_single_session(self, make_items):
        """Every gap within the threshold gives one session."""
        sessions = group_sessions(make_items([0, 1000, 2000, 3000]), 1000)
        assert len(sessions) == 1
        assert sessions[0].count == 4

    def test_singletons(self, make_items):
        """Every gap above the threshold gives one session per item."""
        sessions = group_sessions(make_items([0, 5000, 10_000]), 4999)
        assert [s.count for s in sessions] == [1, 1, 1]
        assert [s.id for s in sessions] == ["0", "1", "2"]

    def test_gap_equal_to_threshold_stays_together(self, make_items):
        sessions = group_sessions(make_items([0, 60_000]), 60_000)
        assert len(sessions) == 1

    def test_duplicates_share_session(self, make_items):
        """Zero gaps never split, even with a zero threshold."""
        sessions = group_sessions(make_items([500, 500, 500, 900]), 0)
        assert [s.count for s in sessions] == [3, 1]

    def test_partition_and_order(self, make_items):
        """Sessions cover every item once, in order, with gaps above threshold between them."""
        rng = random.Random(3)
        offsets = [rng.randrange(0, 10 * 3_600_000) for _ in range(400)]
        items = make_items(offsets)
        threshold = 5 * 60_000

        sessions = group_sessions(items, threshold)

        flattened = [p for s in sessions for p in s.items]
        assert flattened == [it.path for it in items]
        assert sum(s.count for s in sessions) == len(items)
        for a, b in zip(sessions, sessions[1:]):
            assert b.start - a.end > threshold
        for s in sessions:
            assert s.start <= s.end

    def test_larger_threshold_never_adds_sessions(self, make_items):
        rng = random.Random(5)
        items = make_items([rng.randrange(0, 86_400_000) for _ in range(250)])

        counts = [len(group_sessions(items, t)) for t in (0, 1000, 60_000, 600_000, 3_600_000)]

        assert counts == sorted(counts, reverse=True)

    def test_unsorted_input_rejected(self):
        items = [ScanItem(Path("/p/b.ARW"), 2000), ScanItem(Path("/p/a.ARW"), 1000)]
        with pytest.raises(PreconditionError):
            group_sessions(items, 60_000)

    def test_negative_threshold_rejected(self, make_items):
        with pytest.raises(PreconditionError):
            group_sessions(make_items([0, 1]), -1)

    def test_threshold_in_minutes(self, make_items):
        items = make_items([0, 20 * 60_000, 60 * 60_000])
        assert len(group_sessions_by_minutes(items, 30)) == 2
        assert len(group_sessions_by_minutes(items, 45)) == 1

    def test_to_dict(self, make_items):
        session = group_sessions(make_items([0, 10]), 60_000)[0]
        data = session.to_dict()
        assert data["id"] == "0"
        assert data["count"] == 2
        assert data["exampleName"] == "IMG_0000.ARW"
        assert len(data["items"]) == 2


class TestScanItem:
    """Test scan item validation and ordering."""

    @pytest.mark.parametrize("value", [-1, float("nan"), float("inf"), "123", None, True])
    def test_invalid_capture_time(self, value):
        with pytest.raises(PreconditionError):
            ScanItem(Path("/p/a.ARW"), value)

    def test_empty_path(self):
        with pytest.raises(PreconditionError):
            ScanItem("", 0)

    @pytest.mark.parametrize("path", [Path(""), Path("."), "."])
    def test_current_directory_path(self, path):
        with pytest.raises(PreconditionError):
            ScanItem(path, 0)

    def test_coercion(self):
        item = ScanItem("/p/a.ARW", 1500.7)
        assert item.path == Path("/p/a.ARW")
        assert item.captured_at == 1500

    def test_sort_ties_by_path(self):
        items = [ScanItem("/p/c.ARW", 5), ScanItem("/p/a.ARW", 5), ScanItem("/p/b.ARW", 1)]
        assert [it.path.name for it in sort_scan_items(items)] == ["b.ARW", "a.ARW", "c.ARW"]


class TestFindSession:
    """Test session lookup."""

    def test_found(self, make_items):
        sessions = group_sessions(make_items([0, 10_000_000]), 1000)
        assert find_session(sessions, "1") is sessions[1]
        assert find_session(sessions, 0) is sessions[0]

    def test_unknown(self, make_items):
        sessions = group_sessions(make_items([0]), 1000)
        with pytest.raises(PreconditionError, match="Unknown session"):
            find_session(sessions, "7")
