"""
Gap analysis and data-driven gap presets for session clustering.

Real photo bursts cluster at specific gap scales, so evenly spaced
thresholds mostly land on values that produce the same grouping. Presets
are therefore snapped up to gaps that actually occur in the data, which
makes every step of an interactive control change the session count.
"""

import math
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


@dataclass(frozen=True)
class GapStats:
    """Sorted positive deltas between consecutive timestamps, plus summary values."""
    deltas: List[int] = field(default_factory=list)
    span: int = 0
    min_delta: int = 0
    max_delta: int = 0

    def session_count(self, threshold_ms: int) -> int:
        """Number of sessions the grouper produces for a threshold."""
        if not self.deltas and self.span == 0:
            return 1
        return 1 + len(self.deltas) - bisect_right(self.deltas, threshold_ms)


@dataclass(frozen=True)
class PresetOptions:
    """Tuning knobs for gap preset generation."""
    steps: int = 11
    top_k: int = 6
    floor_ms: int = SECOND_MS
    base_ms: Tuple[int, ...] = (
        SECOND_MS, 2 * SECOND_MS, 5 * SECOND_MS, 10 * SECOND_MS, 30 * SECOND_MS, MINUTE_MS,
    )
    fallback_ms: Tuple[int, ...] = (
        5 * SECOND_MS, 15 * SECOND_MS, 30 * SECOND_MS, MINUTE_MS,
        5 * MINUTE_MS, 30 * MINUTE_MS, 2 * HOUR_MS,
    )


def analyze_gaps(timestamps: Iterable[int]) -> GapStats:
    """Compute positive consecutive deltas of the (sorted) timestamps."""
    ordered = sorted(int(ts) for ts in timestamps)
    if len(ordered) < 2:
        return GapStats()

    # Duplicate captures yield zero deltas; they still share a session later
    deltas = sorted(b - a for a, b in zip(ordered, ordered[1:]) if b - a > 0)
    span = ordered[-1] - ordered[0]
    if not deltas:
        return GapStats(deltas=[], span=span)

    return GapStats(deltas=deltas, span=span, min_delta=deltas[0], max_delta=deltas[-1])


def snap_up_to_delta(deltas: Sequence[int], target: float) -> int:
    """Return the smallest occurring delta >= target (the largest one if none is)."""
    if not deltas:
        raise ValueError("snap_up_to_delta() requires at least one delta")
    idx = bisect_left(deltas, target)
    if idx >= len(deltas):
        return deltas[-1]
    return deltas[idx]


def _log_targets(low: int, high: int, steps: int) -> List[int]:
    if steps < 2 or low <= 0 or high <= low:
        return [low]

    a, b = math.log(low), math.log(high)
    targets = []
    for i in range(steps):
        t = round(math.exp(a + (b - a) * (i / (steps - 1))))
        targets.append(max(low, min(high, t)))
    return targets


def _collapse_equivalent(presets: List[int], stats: GapStats) -> List[int]:
    """Drop presets that group the data exactly like their larger neighbour."""
    collapsed: List[int] = []
    for value in presets:
        if collapsed and stats.session_count(collapsed[-1]) == stats.session_count(value):
            collapsed[-1] = value
        else:
            collapsed.append(value)
    return collapsed


def compute_gap_presets(stats: GapStats, options: PresetOptions = PresetOptions()) -> List[int]:
    """Build an ascending list of at least two candidate gap thresholds (ms)."""
    fallback = sorted(set(options.fallback_ms))
    if len(stats.deltas) < 2:
        return fallback

    deltas = stats.deltas
    span = stats.span
    # Sub-second bursts: lower the floor so the range keeps two distinct ends
    floor = options.floor_ms if span > options.floor_ms else stats.min_delta

    candidates = [b for b in options.base_ms if b <= span]
    candidates.extend(deltas[-options.top_k:] if options.top_k > 0 else [])
    candidates.extend([span, stats.max_delta])

    low = max(floor, stats.min_delta)
    high = max(stats.max_delta, span)
    candidates.extend(snap_up_to_delta(deltas, t) for t in _log_targets(low, high, options.steps))

    presets = sorted({max(floor, min(span, int(c))) for c in candidates})
    if presets[-1] != span:
        presets.append(span)

    collapsed = _collapse_equivalent(presets, stats)
    if len(collapsed) < 2:
        return presets
    return collapsed


def presets_for_timestamps(timestamps: Iterable[int],
                           options: PresetOptions = PresetOptions()) -> List[int]:
    """Analyze timestamps and build presets in one step."""
    return compute_gap_presets(analyze_gaps(timestamps), options)


def nearest_preset_index(presets: Sequence[int], gap_ms: int) -> int:
    """Index of the first preset >= gap_ms, or the last one."""
    for idx, value in enumerate(presets):
        if value >= gap_ms:
            return idx
    return max(0, len(presets) - 1)


def format_gap(ms: float) -> str:
    """Short human label for a gap duration."""
    if ms is None or not math.isfinite(ms) or ms <= 0:
        return "-"

    seconds = ms / SECOND_MS
    if seconds < 60:
        return f"{round(seconds)}s"
    minutes = seconds / 60
    if minutes < 60:
        return f"{round(minutes)}min"
    hours = minutes / 60
    if hours < 48:
        return f"{round(hours)}h"
    return f"{round(hours / 24)}d"
