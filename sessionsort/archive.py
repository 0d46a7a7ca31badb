"""
Archive import: idempotent copy of a session into a dated, titled folder.

Layout under an existing archive root (the root itself is never created)::

    <root>/YYYY/MM/YYYY-MM-DD Title/originals/<device>__<name>
    <root>/YYYY/MM/YYYY-MM-DD Title/exports/<kind>/<device>__<name>

Raster renditions that accompany a RAW primary go to ``exports/<kind>``;
primaries and every other companion go to ``originals``.
"""

import math
import os
import re
import zoneinfo
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .companions import (DEFAULT_RULES, CompanionRules, build_companion_index,
                         is_raster_rendition, resolve_companions)
from .constants import (DEFAULT_DEVICE_LABEL, DEFAULT_TIMEZONE, DEFAULT_TITLE, DEVICE_SEPARATOR,
                        EXPORTS_DIR_NAME, ORIGINALS_DIR_NAME, TITLE_MAX_LENGTH, get_logger)
from .errors import PreconditionError
from .file_operations import FileOperations, PathLike, normalize_abs, resolve_inside_root

logger = get_logger("archive")


def assert_writable_root(root: PathLike) -> Path:
    """Validate an existing, writable archive root (a mount is never auto-created)."""
    if root is None or not str(root).strip():
        raise PreconditionError("Archive root is missing")
    root_abs = normalize_abs(root)
    if not root_abs.exists():
        raise PreconditionError(f"Archive root does not exist (not mounted?): {root_abs}")
    if not root_abs.is_dir():
        raise PreconditionError(f"Archive root is not a directory: {root_abs}")
    if not os.access(root_abs, os.W_OK):
        raise PreconditionError(f"Archive root is not writable: {root_abs}")
    return root_abs


def sanitize_title(title: Optional[str], fallback: str = DEFAULT_TITLE,
                   max_len: int = TITLE_MAX_LENGTH) -> str:
    """Make a user-provided session title safe to use as a folder name."""
    s = str(title or "").strip()
    if not s:
        return fallback

    s = re.sub(r"\s+", " ", s)
    s = re.sub(r"[/\\]", "-", s)
    s = re.sub(r'[:*?"<>|]', "", s)
    s = re.sub(r"[^\w\s.()\-]", "", s)
    s = s.strip()[:max_len]
    s = re.sub(r"[.\s]+$", "", s).strip()
    return s or fallback


def sanitize_device_label(label: Optional[str]) -> str:
    """Device labels become filename prefixes, so keep them short and plain."""
    s = re.sub(r"[^\w\-]+", "", str(label or "").replace(" ", ""))
    return s or DEFAULT_DEVICE_LABEL


@dataclass
class SessionFolders:
    """Destination directories for one imported session."""
    root: Path
    year_dir: Path
    month_dir: Path
    session_dir: Path
    originals_dir: Path
    exports_dir: Path
    session_dir_name: str
    ymd: str


def build_session_folders(archive_root: PathLike, first_captured_at: int, title: Optional[str],
                          tz: str = DEFAULT_TIMEZONE) -> SessionFolders:
    """Compute (but do not create) the folder layout for a session."""
    if archive_root is None or not str(archive_root).strip():
        raise PreconditionError("Archive root is missing")
    if isinstance(first_captured_at, bool) or not isinstance(first_captured_at, (int, float)) \
            or not math.isfinite(first_captured_at) or first_captured_at < 0:
        raise PreconditionError(f"Invalid session start timestamp: {first_captured_at!r}")

    root = normalize_abs(archive_root)
    start = datetime.fromtimestamp(first_captured_at / 1000, tz=zoneinfo.ZoneInfo(tz))
    yyyy, mm, ymd = f"{start.year:04d}", f"{start.month:02d}", start.strftime("%Y-%m-%d")
    session_dir_name = f"{ymd} {sanitize_title(title)}"

    session_dir = root / yyyy / mm / session_dir_name
    logger.debug(f"Session folder: {session_dir}")
    return SessionFolders(
        root=root,
        year_dir=root / yyyy,
        month_dir=root / yyyy / mm,
        session_dir=session_dir,
        originals_dir=session_dir / ORIGINALS_DIR_NAME,
        exports_dir=session_dir / EXPORTS_DIR_NAME,
        session_dir_name=session_dir_name,
        ymd=ymd,
    )


@dataclass
class CopyRecord:
    """Mapping from a source file to its archived name, for audit manifests."""
    src: Path
    dst_name: str
    dst_relative_path: str

    def to_dict(self) -> Dict:
        return {"src": str(self.src), "dstName": self.dst_name,
                "dstRelativePath": self.dst_relative_path}


@dataclass
class ImportOutcome:
    """Per-file results of an archive import."""
    session_dir: Optional[Path] = None
    copied: List[CopyRecord] = field(default_factory=list)
    skipped: List[Dict] = field(default_factory=list)
    errors: List[Dict] = field(default_factory=list)
    records: List[CopyRecord] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> Dict:
        return {
            "sessionDir": str(self.session_dir) if self.session_dir else None,
            "copiedCount": len(self.copied),
            "copied": [r.to_dict() for r in self.copied],
            "skipped": [{"path": str(s["path"]), "reason": s["reason"]} for s in self.skipped],
            "errors": [{"path": str(e["path"]), "error": e["error"]} for e in self.errors],
            "records": [r.to_dict() for r in self.records],
        }


class SessionImporter:
    """Copies sessions into the archive layout, skipping files already imported."""

    def __init__(self, archive_root: PathLike, device_label: Optional[str] = None,
                 file_ops: Optional[FileOperations] = None,
                 rules: CompanionRules = DEFAULT_RULES, tz: str = DEFAULT_TIMEZONE):
        self.archive_root = archive_root
        self.device_label = sanitize_device_label(device_label)
        self.file_ops = file_ops or FileOperations()
        self.rules = rules
        self.tz = tz

    def destination_name(self, src: Path) -> str:
        return f"{self.device_label}{DEVICE_SEPARATOR}{src.name}"

    def destination_dir(self, folders: SessionFolders, src: Path, primary: Path) -> Path:
        """exports/<kind> for raster renditions of RAW primaries, else originals."""
        if src != primary and is_raster_rendition(src, primary, self.rules):
            kind = self.file_ops.normalize_jpg_extension(src.suffix).lstrip(".")
            return folders.exports_dir / kind
        return folders.originals_dir

    def plan(self, primaries: Iterable[PathLike],
             source_root: Optional[PathLike] = None) -> List[Tuple[Path, Path]]:
        """(file, owning primary) pairs, companions resolved when a source root is given."""
        primaries = [normalize_abs(p) for p in primaries]
        if source_root is None:
            return [(p, p) for p in primaries]

        root = normalize_abs(source_root)
        primaries = [resolve_inside_root(p, root) for p in primaries]
        index = build_companion_index(root, self.rules)

        seen: Dict[Path, Path] = {}
        for primary in primaries:
            seen.setdefault(primary, primary)
            for companion in resolve_companions(primary, index, root, self.rules):
                seen.setdefault(companion, primary)
        return list(seen.items())

    def copy_files(self, folders: SessionFolders,
                   plan: Iterable[Tuple[Path, Path]]) -> ImportOutcome:
        """Copy-if-absent every planned file into the session folders."""
        outcome = ImportOutcome(session_dir=folders.session_dir)
        for src, primary in plan:
            dst_dir = self.destination_dir(folders, src, primary)
            dst = resolve_inside_root(dst_dir / self.destination_name(src), folders.root)
            record = CopyRecord(src=src, dst_name=dst.name,
                                dst_relative_path=dst.relative_to(folders.session_dir).as_posix())

            if not src.is_file():
                outcome.skipped.append({"path": src, "reason": "not-a-file-or-missing"})
                continue

            try:
                if self.file_ops.copy_if_absent(src, dst):
                    outcome.copied.append(record)
                elif dst.stat().st_size != src.stat().st_size:
                    # Same archive name, different file (e.g. a folder counter rollover)
                    logger.warning(f"Not importing {src}: {dst} already holds a different file")
                    outcome.skipped.append({"path": src, "reason": "name-collision"})
                    continue
                else:
                    outcome.skipped.append({"path": src, "reason": "already-imported"})
                outcome.records.append(record)
            except OSError as e:
                logger.error(f"Failed to copy {src} -> {dst}: {e}")
                outcome.errors.append({"path": src, "error": str(e)})

        return outcome

    def import_session(self, primaries: Iterable[PathLike], first_captured_at: int,
                       title: Optional[str], source_root: Optional[PathLike] = None) -> ImportOutcome:
        """Validate, plan and copy a session; only preconditions raise."""
        primaries = list(primaries)
        if not primaries:
            raise PreconditionError("No files to import")

        root = assert_writable_root(self.archive_root)
        folders = build_session_folders(root, first_captured_at, title, self.tz)
        plan = self.plan(primaries, source_root)

        logger.info(f"Importing {len(plan)} files into {folders.session_dir}")
        return self.copy_files(folders, plan)
