"""
File extension constants, shared settings and logging/console accessors.
"""

import functools
import logging
import subprocess
from typing import Optional

from rich.console import Console

PROGRAM = "sessionsort"

# Primary media formats accepted by the directory walker
JPG_EXTENSIONS = (".jpg", ".jpeg")
RAW_EXTENSIONS = (
    ".arw", ".cr2", ".cr3", ".nef", ".raf", ".dng", ".rw2", ".orf", ".pef",
    ".srw",
)
PRIMARY_EXTENSIONS = RAW_EXTENSIONS + JPG_EXTENSIONS + (".tif", ".tiff", ".heic")

# Companion (sidecar/raster) candidates
SIDECAR_EXTENSION = ".xmp"
ARTIFACT_FRAGMENTS = (".on1", ".onphoto")
RASTER_EXTENSIONS = JPG_EXTENSIONS
COMPANION_SEPARATORS = " ._()-"

# Directory names never descended into
TRASH_DIR_NAME = f".{PROGRAM}-trash"
SKIP_DIR_NAMES = frozenset({
    ".Trashes", ".Spotlight-V100", ".fseventsd", "__MACOSX",
    "System Volume Information",
})

# Archive layout
ORIGINALS_DIR_NAME = "originals"
EXPORTS_DIR_NAME = "exports"
DEVICE_SEPARATOR = "__"
DEFAULT_DEVICE_LABEL = "camera"
DEFAULT_TITLE = "Untitled"
TITLE_MAX_LENGTH = 80

# Session grouping and scanning defaults
DEFAULT_GAP_MINUTES = 30
DEFAULT_WORKERS = 8
MAX_WORKERS = 32
DEFAULT_EXIF_TIMEOUT = 2.5
DEFAULT_TIMEZONE = "America/New_York"

_console: Optional[Console] = None


def get_console() -> Console:
    """Shared rich console for all terminal output."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Program logger, or a dotted child logger when a name is given."""
    if name is None or name == PROGRAM:
        return logging.getLogger(PROGRAM)
    if not name.startswith(f"{PROGRAM}."):
        name = f"{PROGRAM}.{name}"
    return logging.getLogger(name)


@functools.lru_cache(maxsize=None)
def check_tool_availability(cmd: str, version_flag: str = "-h") -> bool:
    """Check whether an external command-line tool can be executed."""
    try:
        subprocess.run([cmd, version_flag], capture_output=True, check=True, timeout=10)
        return True
    except (FileNotFoundError, subprocess.CalledProcessError, subprocess.TimeoutExpired,
            PermissionError):
        return False
