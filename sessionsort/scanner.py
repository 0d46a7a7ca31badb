"""
Directory walking and concurrent capture-time acquisition.
"""

import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

from .constants import (DEFAULT_WORKERS, MAX_WORKERS, PRIMARY_EXTENSIONS, SKIP_DIR_NAMES,
                        TRASH_DIR_NAME, get_logger)
from .errors import PreconditionError
from .file_operations import PathLike, normalize_abs
from .progress import ScanProgress
from .sessions import ScanItem, sort_scan_items
from .timestamps import file_mtime_ms, to_epoch_ms

logger = get_logger("scanner")

TimestampProvider = Callable[[Path], Optional[datetime]]


@dataclass(frozen=True)
class ScanOptions:
    """Which files the walker collects and how many timestamp workers run."""
    extensions: Tuple[str, ...] = PRIMARY_EXTENSIONS
    skip_dir_names: FrozenSet[str] = SKIP_DIR_NAMES | {TRASH_DIR_NAME}
    workers: int = DEFAULT_WORKERS

    @property
    def worker_count(self) -> int:
        return max(1, min(MAX_WORKERS, int(self.workers)))


def walk_media_files(root: PathLike, options: ScanOptions = ScanOptions()) -> List[Path]:
    """Collect files with a primary extension under root, without recursion.

    Unreadable subdirectories are skipped; an unreadable root is an error so
    a scan never silently returns nothing.
    """
    root_abs = normalize_abs(root)
    if not root_abs.exists():
        raise PreconditionError(f"Source directory does not exist: {root_abs}")
    if not root_abs.is_dir():
        raise PreconditionError(f"Source is not a directory: {root_abs}")
    if not os.access(root_abs, os.R_OK | os.X_OK):
        raise PreconditionError(f"Source directory not accessible (permissions?): {root_abs}")

    extensions = {ext.lower() for ext in options.extensions}
    results = []
    stack = [root_abs]
    while stack:
        directory = stack.pop()
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            logger.debug(f"Skipping unreadable directory {directory}: {e}")
            continue

        for entry in entries:
            name = entry.name
            if name.startswith(".") or name in options.skip_dir_names:
                continue
            try:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(Path(entry.path))
                    continue
                if not entry.is_file():
                    continue
            except OSError:
                continue

            if os.path.splitext(name)[1].lower() in extensions:
                results.append(Path(entry.path))

    return sorted(results)


def capture_time_ms(path: Path, provider: Optional[TimestampProvider]) -> int:
    """Capture time from the provider, falling back to the file modification time."""
    if provider is not None:
        try:
            value = provider(path)
            if value is not None:
                ms = to_epoch_ms(value)
                if ms >= 0:
                    return ms
        except Exception as e:
            logger.debug(f"Timestamp read failed for {path}, using mtime: {e}")
    return file_mtime_ms(path)


def collect_scan_items(files: Iterable[Path], provider: Optional[TimestampProvider] = None,
                       options: ScanOptions = ScanOptions(),
                       progress: Optional[ScanProgress] = None) -> List[ScanItem]:
    """Read capture times with a bounded worker pool; returns items sorted by time.

    Files that vanish before their time can be read are dropped.
    """
    files = list(files)
    progress = progress or ScanProgress()
    progress.start(len(files), "Reading capture times")

    items = []
    try:
        with ThreadPoolExecutor(max_workers=options.worker_count) as executor:
            future_to_path = {executor.submit(capture_time_ms, path, provider): path
                              for path in files}
            for future in as_completed(future_to_path):
                path = future_to_path[future]
                try:
                    items.append(ScanItem(path=path, captured_at=future.result()))
                except (OSError, PreconditionError) as e:
                    logger.warning(f"Skipping {path}: {e}")
                finally:
                    progress.advance()
    finally:
        progress.finish()

    return sort_scan_items(items)


def scan_directory(root: PathLike, provider: Optional[TimestampProvider] = None,
                   options: ScanOptions = ScanOptions(),
                   progress: Optional[ScanProgress] = None) -> List[ScanItem]:
    """Walk root and return its primary media files as time-sorted scan items."""
    files = walk_media_files(root, options)
    logger.info(f"Found {len(files)} media files under {root}")
    return collect_scan_items(files, provider, options, progress)
