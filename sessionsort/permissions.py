"""
File permissions and group ownership parsing for archived copies.
"""

import argparse
import grp
import re


def parse_file_mode(mode_str: str) -> int:
    """Convert octal string (e.g., '644') to integer mode."""
    # Valid octal string: 3-4 digits, 0-7 only
    if not re.match(r'^[0-7]{3,4}$', str(mode_str)):
        raise argparse.ArgumentTypeError(f"Invalid file mode: {mode_str}")
    return int(mode_str, 8)


def parse_group(group_str: str) -> int:
    """Convert group name to GID with validation."""
    try:
        return grp.getgrnam(group_str).gr_gid
    except KeyError:
        raise argparse.ArgumentTypeError(f"Group '{group_str}' not found on system")
