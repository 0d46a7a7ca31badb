"""
Companion file resolution for primary media files.

A companion belongs to a primary by naming convention:

- metadata sidecars: ``base.xmp`` or ``full.xmp`` (``DSC1.xmp``, ``DSC1.ARW.xmp``)
- vendor edit artifacts: names containing ``.on1`` or ``.onphoto`` that start
  with the primary's base or full name (``DSC1.on1``, ``DSC1.ARW.on1``,
  ``DSC1.on1.xml``, ``DSC1.onphoto.meta``)
- raster renditions of RAW primaries: ``base.jpg`` / ``base.jpeg``

Companions may live anywhere under the root, so the tree is indexed once per
request and each primary is then resolved against the index.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Iterator, List, Set, Tuple

from .constants import (ARTIFACT_FRAGMENTS, COMPANION_SEPARATORS, RASTER_EXTENSIONS,
                        RAW_EXTENSIONS, SIDECAR_EXTENSION, SKIP_DIR_NAMES, TRASH_DIR_NAME,
                        get_logger)
from .errors import PreconditionError
from .file_operations import PathLike, is_path_inside, normalize_abs, resolve_inside_root

logger = get_logger("companions")


@dataclass(frozen=True)
class CompanionRules:
    """Naming rules that decide which files are companions."""
    sidecar_extension: str = SIDECAR_EXTENSION
    artifact_fragments: Tuple[str, ...] = ARTIFACT_FRAGMENTS
    raster_extensions: Tuple[str, ...] = RASTER_EXTENSIONS
    raw_extensions: Tuple[str, ...] = RAW_EXTENSIONS
    include_raster_for_raw: bool = True
    separators: str = COMPANION_SEPARATORS
    skip_dir_names: FrozenSet[str] = SKIP_DIR_NAMES
    trash_dir_name: str = TRASH_DIR_NAME

    def is_sidecar(self, name_lower: str) -> bool:
        return name_lower.endswith(self.sidecar_extension)

    def is_artifact(self, name_lower: str) -> bool:
        return any(fragment in name_lower for fragment in self.artifact_fragments)

    def is_raster(self, name_lower: str) -> bool:
        return os.path.splitext(name_lower)[1] in self.raster_extensions

    def is_raw(self, name: str) -> bool:
        return os.path.splitext(name)[1].lower() in self.raw_extensions

    def is_candidate(self, name: str) -> bool:
        name_lower = name.lower()
        return (self.is_sidecar(name_lower) or self.is_artifact(name_lower)
                or (self.include_raster_for_raw and self.is_raster(name_lower)))

    def skip_directory(self, name: str) -> bool:
        return (not name or name.startswith(".") or name in self.skip_dir_names
                or name == self.trash_dir_name)


DEFAULT_RULES = CompanionRules()


def split_name(file_name: str) -> Tuple[str, str]:
    """Return (base, full) for a file name: 'DSC1.ARW' -> ('DSC1', 'DSC1.ARW')."""
    full = file_name.strip()
    base = os.path.splitext(full)[0]
    return base, full


def belongs_to(file_name: str, base: str, full: str, separators: str = COMPANION_SEPARATORS) -> bool:
    """Prefix containment: file_name starts with full, or with base plus a separator."""
    if not file_name or not base or not full:
        return False
    if file_name.startswith(full):
        return True
    if not file_name.startswith(base):
        return False
    # Reject DSC1 vs DSC10.on1
    if len(file_name) == len(base):
        return True
    return file_name[len(base)] in separators


class CompanionIndex:
    """Case-folded name keys mapped to candidate companion paths under one root."""

    def __init__(self, root: PathLike):
        self.root = normalize_abs(root)
        self._buckets: Dict[str, Set[Path]] = {}

    @staticmethod
    def keys_for(file_name: str) -> Tuple[str, str]:
        base, full = split_name(file_name)
        return base.lower(), full.lower()

    def add(self, path: Path) -> None:
        for key in set(self.keys_for(path.name)):
            if key:
                self._buckets.setdefault(key, set()).add(path)

    def get(self, key: str) -> Set[Path]:
        return self._buckets.get(key.lower(), set())

    def paths(self) -> Set[Path]:
        out: Set[Path] = set()
        for bucket in self._buckets.values():
            out.update(bucket)
        return out

    def __contains__(self, key: str) -> bool:
        return key.lower() in self._buckets

    def __len__(self) -> int:
        return len(self._buckets)


def _iter_candidate_files(root: Path, rules: CompanionRules) -> Iterator[Path]:
    """Iterative walk yielding companion candidates under root."""
    stack = [root]
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
            try:
                if entry.is_dir(follow_symlinks=False):
                    if not rules.skip_directory(name):
                        stack.append(Path(entry.path))
                    continue
                if not entry.is_file():
                    continue
            except OSError:
                continue

            if name.startswith("."):
                continue
            if rules.is_candidate(name):
                yield Path(entry.path)


def _require_directory(root: PathLike) -> Path:
    root_abs = normalize_abs(root)
    if not root_abs.exists():
        raise PreconditionError(f"Root directory does not exist: {root_abs}")
    if not root_abs.is_dir():
        raise PreconditionError(f"Root is not a directory: {root_abs}")
    if not os.access(root_abs, os.R_OK | os.X_OK):
        raise PreconditionError(f"Root directory not accessible (permissions?): {root_abs}")
    return root_abs


def build_companion_index(root: PathLike, rules: CompanionRules = DEFAULT_RULES) -> CompanionIndex:
    """Traverse root once and index every companion candidate."""
    root_abs = _require_directory(root)
    index = CompanionIndex(root_abs)
    count = 0
    for path in _iter_candidate_files(root_abs, rules):
        index.add(path)
        count += 1
    logger.debug(f"Indexed {count} companion candidates under {root_abs}")
    return index


def resolve_companions(primary: PathLike, index: CompanionIndex, root: PathLike = None,
                       rules: CompanionRules = DEFAULT_RULES) -> List[Path]:
    """Return the verified companions of one primary file, sorted and deduplicated."""
    root_abs = normalize_abs(root) if root is not None else index.root
    primary_abs = resolve_inside_root(primary, root_abs)

    base, full = split_name(primary_abs.name)
    base_key, full_key = base.lower(), full.lower()
    found: Set[Path] = set()

    # Sidecars: exact name match on either form
    for want in (f"{base_key}{rules.sidecar_extension}", f"{full_key}{rules.sidecar_extension}"):
        for candidate in index.get(want):
            if candidate.name.lower() == want:
                found.add(candidate)

    # Vendor artifacts may be keyed by base, full, or base/full plus a fragment
    bucket_keys = [base_key, full_key]
    for fragment in rules.artifact_fragments:
        bucket_keys.extend([f"{base_key}{fragment}", f"{full_key}{fragment}"])
    for key in bucket_keys:
        for candidate in index.get(key):
            name = candidate.name
            if rules.is_artifact(name.lower()) and belongs_to(name, base, full, rules.separators):
                found.add(candidate)

    # Raster renditions accompany RAW primaries
    if rules.include_raster_for_raw and rules.is_raw(full):
        for ext in rules.raster_extensions:
            want = f"{base_key}{ext}"
            for candidate in index.get(want):
                if candidate.name.lower() == want:
                    found.add(candidate)

    verified = []
    for candidate in found:
        if candidate == primary_abs:
            continue
        if not is_path_inside(candidate, root_abs):
            logger.warning(f"Ignoring companion outside {root_abs}: {candidate}")
            continue
        verified.append(normalize_abs(candidate))
    return sorted(set(verified))


def is_raster_rendition(path: Path, primary: Path, rules: CompanionRules = DEFAULT_RULES) -> bool:
    """True when path is a raster rendition accompanying a RAW primary."""
    return rules.is_raw(primary.name) and rules.is_raster(path.name.lower()) \
        and not rules.is_artifact(path.name.lower())


def resolve_all(primaries: Iterable[PathLike], index: CompanionIndex, root: PathLike = None,
                rules: CompanionRules = DEFAULT_RULES) -> Dict[Path, List[Path]]:
    """Resolve companions for several primaries against one index."""
    return {normalize_abs(p): resolve_companions(p, index, root, rules) for p in primaries}
