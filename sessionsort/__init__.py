"""
sessionsort - Group photos into capture sessions and archive or trash them safely.

Scans a source folder, clusters photos into sessions by the gaps between
their capture times, and moves a chosen session (with its sidecars, edit
artifacts and JPEG renditions) into a dated archive layout or into a
recoverable trash folder that never leaves the source root.

MIT License.
"""

__version__ = "1.0.0"
__copyright__ = "Copyright (c) 2025 Joe Monaco (joe@selfmotion.net)"


# Public API
from .archive import ImportOutcome, SessionImporter, build_session_folders, sanitize_title
from .cli import main
from .companions import CompanionIndex, CompanionRules, build_companion_index, resolve_companions
from .config import Config
from .core import SessionSorter
from .errors import PreconditionError, ScopeViolation, SessionSortError
from .gaps import GapStats, PresetOptions, analyze_gaps, compute_gap_presets
from .sessions import ScanItem, Session, group_sessions
from .trash import MoveOutcome, TrashMover

__all__ = [
    "main", "Config", "SessionSorter", "ScanItem", "Session", "group_sessions",
    "GapStats", "PresetOptions", "analyze_gaps", "compute_gap_presets",
    "CompanionIndex", "CompanionRules", "build_companion_index", "resolve_companions",
    "MoveOutcome", "TrashMover", "ImportOutcome", "SessionImporter", "build_session_folders",
    "sanitize_title", "PreconditionError", "ScopeViolation", "SessionSortError",
]
