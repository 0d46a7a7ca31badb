"""
Session grouping of scanned media items by capture-time gaps.
"""

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from .errors import PreconditionError
from .gaps import MINUTE_MS


@dataclass(frozen=True)
class ScanItem:
    """One primary media file and its capture time in epoch milliseconds."""
    path: Path
    captured_at: int

    def __post_init__(self):
        # Path("") collapses to "." so the current directory counts as empty too
        if not str(self.path or "").strip() or Path(self.path) == Path("."):
            raise PreconditionError("ScanItem path is empty")
        value = self.captured_at
        if isinstance(value, bool) or not isinstance(value, (int, float)) \
                or not math.isfinite(value) or value < 0:
            raise PreconditionError(f"Invalid capture time for {self.path}: {value!r}")
        object.__setattr__(self, "path", Path(self.path))
        object.__setattr__(self, "captured_at", int(value))


@dataclass
class Session:
    """A maximal run of items whose consecutive gaps stay within the threshold."""
    id: str
    start: int
    end: int
    count: int
    example_path: Path
    items: List[Path] = field(default_factory=list)

    @property
    def example_name(self) -> str:
        return self.example_path.name

    @property
    def duration(self) -> int:
        return self.end - self.start

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "start": self.start,
            "end": self.end,
            "count": self.count,
            "examplePath": str(self.example_path),
            "exampleName": self.example_name,
            "items": [str(p) for p in self.items],
        }


def sort_scan_items(items: Iterable[ScanItem]) -> List[ScanItem]:
    """Order items by capture time, then path, for stable grouping."""
    return sorted(items, key=lambda it: (it.captured_at, str(it.path)))


def _make_session(idx: int, group: List[ScanItem]) -> Session:
    return Session(
        id=str(idx),
        start=group[0].captured_at,
        end=group[-1].captured_at,
        count=len(group),
        example_path=group[0].path,
        items=[it.path for it in group],
    )


def group_sessions(items: Sequence[ScanItem], threshold_ms: int) -> List[Session]:
    """Split time-sorted items into sessions wherever a gap exceeds threshold_ms."""
    if threshold_ms is None or threshold_ms < 0:
        raise PreconditionError(f"Gap threshold must be non-negative: {threshold_ms!r}")

    groups: List[List[ScanItem]] = []
    current: List[ScanItem] = []
    for item in items:
        if not current:
            current.append(item)
            continue

        delta = item.captured_at - current[-1].captured_at
        if delta < 0:
            raise PreconditionError("group_sessions() requires items sorted by capture time")
        if delta > threshold_ms:
            groups.append(current)
            current = [item]
        else:
            current.append(item)

    if current:
        groups.append(current)

    return [_make_session(idx, group) for idx, group in enumerate(groups)]


def group_sessions_by_minutes(items: Sequence[ScanItem], minutes: float) -> List[Session]:
    """Group with a threshold expressed in minutes (the configured default gap)."""
    return group_sessions(items, int(minutes * MINUTE_MS))


def find_session(sessions: Sequence[Session], session_id: str) -> Session:
    """Look up a session by id, raising PreconditionError when unknown."""
    for session in sessions:
        if session.id == str(session_id):
            return session
    raise PreconditionError(f"Unknown session: {session_id}")
