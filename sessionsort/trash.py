"""
Scoped trash moves: primaries and companions into a recoverable holding area.

Layout: ``<root>/<trash dir>/<stamp>/<path relative to root>``. One stamp
directory per request keeps a session together and makes the move easy to
audit or reverse by hand.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .companions import DEFAULT_RULES, CompanionRules, build_companion_index, resolve_companions
from .constants import get_logger
from .errors import PreconditionError
from .file_operations import (FileOperations, PathLike, is_path_inside, normalize_abs,
                              relative_inside, resolve_inside_root)


@dataclass
class MoveOutcome:
    """Per-file results of a trash move."""
    trash_dir: Optional[Path] = None
    moved: List[Dict] = field(default_factory=list)
    skipped: List[Dict] = field(default_factory=list)
    errors: List[Dict] = field(default_factory=list)
    primary_count: int = 0
    target_count: int = 0

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> Dict:
        return {
            "trashedTo": str(self.trash_dir) if self.trash_dir else None,
            "primaryCount": self.primary_count,
            "targetCount": self.target_count,
            "movedCount": len(self.moved),
            "moved": [{"from": str(m["from"]), "to": str(m["to"])} for m in self.moved],
            "skipped": [{"path": str(s["path"]), "reason": s["reason"]} for s in self.skipped],
            "errors": [{"path": str(e["path"]), "error": e["error"]} for e in self.errors],
        }


def trash_stamp(now: Optional[datetime] = None) -> str:
    """Filesystem-safe ISO 8601 UTC stamp, e.g. 2025-06-03T14-05-09-123Z."""
    now = now or datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"


class TrashMover:
    """Moves files into ``<root>/<trash dir>/<stamp>/`` without leaving root."""

    def __init__(self, root: PathLike, rules: CompanionRules = DEFAULT_RULES,
                 file_ops: Optional[FileOperations] = None):
        self.root = normalize_abs(root)
        self.rules = rules
        self.file_ops = file_ops or FileOperations()
        self.trash_root = self.root / rules.trash_dir_name
        self.logger = get_logger("trash")

    def _check_root(self) -> None:
        if not self.root.exists():
            raise PreconditionError(f"Root directory does not exist: {self.root}")
        if not self.root.is_dir():
            raise PreconditionError(f"Root is not a directory: {self.root}")

    def _next_trash_dir(self) -> Path:
        """Pick this batch's stamp directory, adding a counter on collision.

        The directory is not created here; it appears with the first moved file.
        """
        stamp = trash_stamp()
        folder = self.trash_root / stamp
        counter = 1
        while folder.exists():
            folder = self.trash_root / f"{stamp}-{counter:02d}"
            counter += 1
        return folder

    def collect_targets(self, primaries: Iterable[PathLike]) -> List[Path]:
        """Primaries plus all their companions, deduplicated in first-seen order."""
        primaries = [resolve_inside_root(p, self.root) for p in primaries]
        index = build_companion_index(self.root, self.rules)

        targets: Dict[Path, None] = {}
        for primary in primaries:
            targets[primary] = None
            for companion in resolve_companions(primary, index, self.root, self.rules):
                targets[companion] = None
        return list(targets)

    def trash_session(self, primaries: Iterable[PathLike]) -> MoveOutcome:
        """Trash a set of primary files together with their companions."""
        primaries = list(primaries)
        if not primaries:
            raise PreconditionError("No files to trash")
        self._check_root()

        targets = self.collect_targets(primaries)
        outcome = self.move_to_trash(targets)
        outcome.primary_count = len(primaries)
        return outcome

    def move_to_trash(self, paths: Iterable[PathLike]) -> MoveOutcome:
        """Move each path into this batch's trash directory, preserving its relative path."""
        paths = list(paths)
        if not paths:
            raise PreconditionError("No files to trash")
        self._check_root()

        # Refuse the whole batch before touching anything
        targets: Dict[Path, None] = {}
        for path in paths:
            targets[resolve_inside_root(path, self.root)] = None

        trash_dir = self._next_trash_dir()
        outcome = MoveOutcome(target_count=len(targets))
        self.logger.info(f"Trashing {len(targets)} files into {trash_dir}")

        for path in targets:
            if is_path_inside(path, self.trash_root):
                outcome.skipped.append({"path": path, "reason": "already-in-trash"})
                continue
            if path.is_symlink() or not path.is_file():
                outcome.skipped.append({"path": path, "reason": "not-a-file-or-missing"})
                continue

            try:
                dest = trash_dir / relative_inside(path, self.root)
                dest = self.file_ops.rename_no_clobber(path, dest)
                outcome.moved.append({"from": path, "to": dest})
            except FileNotFoundError:
                outcome.skipped.append({"path": path, "reason": "not-a-file-or-missing"})
            except OSError as e:
                self.logger.error(f"Failed to trash {path}: {e}")
                outcome.errors.append({"path": path, "error": str(e)})

        if outcome.moved:
            outcome.trash_dir = trash_dir
        return outcome
