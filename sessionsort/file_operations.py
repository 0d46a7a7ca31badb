"""
Root containment checks and shared file operations for trash and archive moves.
"""

import os
import shutil
import time
from pathlib import Path
from typing import Optional, Union

from .constants import JPG_EXTENSIONS, get_logger
from .errors import PreconditionError, ScopeViolation

PathLike = Union[str, os.PathLike]


def normalize_abs(path: PathLike) -> Path:
    """Absolute, lexically normalized path (".." resolved, symlinks untouched)."""
    raw = os.fspath(path)
    if isinstance(raw, bytes):
        raw = os.fsdecode(raw)
    raw = raw.strip()
    if not raw:
        raise PreconditionError("Path is empty")
    if "\0" in raw:
        raise PreconditionError(f"Invalid path: {raw!r}")
    return Path(os.path.abspath(raw))


def relative_inside(path: PathLike, root: PathLike) -> Optional[Path]:
    """Path relative to root, or None when path is root itself or lies outside."""
    root_abs = normalize_abs(root)
    path_abs = normalize_abs(path)
    try:
        rel = os.path.relpath(path_abs, root_abs)
    except ValueError:
        # Different drives on Windows
        return None
    if rel == os.curdir or rel == os.pardir or rel.startswith(os.pardir + os.sep) \
            or os.path.isabs(rel):
        return None
    return Path(rel)


def is_path_inside(path: PathLike, root: PathLike) -> bool:
    """Check that path is a strict descendant of root."""
    try:
        return relative_inside(path, root) is not None
    except PreconditionError:
        return False


def _parent_resolves_inside(path: Path, root: Path) -> bool:
    # Only the directory chain is resolved; symlinked files are the callers' concern
    root_real = os.path.realpath(root)
    parent_real = os.path.realpath(path.parent)
    return parent_real == root_real or relative_inside(parent_real, root_real) is not None


def resolve_inside_root(path: PathLike, root: PathLike) -> Path:
    """Return the normalized path, raising ScopeViolation when it escapes root.

    A path is inside root only if it is lexically below root and its parent
    directory still is after symlinks are resolved, so a symlinked directory
    pointing elsewhere cannot smuggle an outside file into a move.
    """
    if relative_inside(path, root) is None:
        raise ScopeViolation(path, root)
    path_abs = normalize_abs(path)
    if not _parent_resolves_inside(path_abs, normalize_abs(root)):
        raise ScopeViolation(path, root)
    return path_abs


def unique_suffix_path(dest: Path) -> Path:
    """Append a millisecond time suffix before the extension of dest."""
    suffix = f"-{int(time.time() * 1000)}"
    candidate = dest.with_name(f"{dest.stem}{suffix}{dest.suffix}")
    counter = 1
    while candidate.exists():
        candidate = dest.with_name(f"{dest.stem}{suffix}-{counter}{dest.suffix}")
        counter += 1
    return candidate


class FileOperations:
    """File moves and copies with permissions, group ownership and dry-run support."""

    def __init__(self, dry_run: bool = False, mode: Optional[int] = None,
                 gid: Optional[int] = None):
        self.dry_run = dry_run
        self.file_mode = mode
        self.group_gid = gid
        self.logger = get_logger("files")

    @staticmethod
    def normalize_jpg_extension(ext: str) -> str:
        """Normalize JPG extensions to .jpg."""
        if ext.lower() in JPG_EXTENSIONS:
            return ".jpg"
        return ext.lower()

    def ensure_directory(self, directory: Path) -> None:
        """Create directory and parents if needed, with dry-run support."""
        if not self.dry_run and not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)

    def rename_no_clobber(self, source: Path, dest: Path) -> Path:
        """Atomically rename source to dest, picking a unique name if dest exists."""
        if dest.exists():
            dest = unique_suffix_path(dest)
        if self.dry_run:
            return dest

        self.ensure_directory(dest.parent)
        os.rename(source, dest)
        self.logger.info(f"{source} -> {dest}")
        return dest

    def copy_if_absent(self, source: Path, dest: Path) -> bool:
        """Copy source to dest unless dest already exists. Returns True if copied."""
        if dest.exists():
            return False
        if self.dry_run:
            return True

        self.ensure_directory(dest.parent)

        # Stage the copy so an interrupted run never leaves a file that looks imported
        partial = dest.with_name(f".{dest.name}.part")
        try:
            shutil.copy2(str(source), str(partial))
            os.replace(partial, dest)
        finally:
            if partial.exists():
                partial.unlink()

        self.apply_file_permissions(dest)
        self.apply_file_group(dest)
        self.logger.info(f"{source} -> {dest}")
        return True

    def apply_file_permissions(self, file_path: Path) -> None:
        """Apply file permissions if mode is specified."""
        if self.dry_run or self.file_mode is None:
            return

        try:
            os.chmod(file_path, self.file_mode)
        except OSError as e:
            self.logger.error(f"Failed to set permissions on {file_path}: {e}")

    def apply_file_group(self, file_path: Path) -> None:
        """Apply file group ownership if gid is specified."""
        if self.dry_run or self.group_gid is None:
            return

        try:
            os.chown(file_path, -1, self.group_gid)  # -1 preserves current owner
        except PermissionError as e:
            # Common on systems without elevated privileges
            self.logger.debug(f"Permission denied setting group on {file_path}: {e}")
        except OSError as e:
            self.logger.error(f"Failed to set group on {file_path}: {e}")
