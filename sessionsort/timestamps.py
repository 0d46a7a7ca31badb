"""Capture-time extraction from EXIF metadata via exiftool."""

import json
import re
import subprocess
import threading
import zoneinfo
from dataclasses import dataclass, fields
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional

from .constants import DEFAULT_EXIF_TIMEOUT, DEFAULT_TIMEZONE, check_tool_availability, get_logger

logger = get_logger("timestamps")


@dataclass
class CaptureTags:
    """Capture-time tags read from a file, tried in field order.

    Sub-second capture tags win over whole-second ones, capture tags over
    creation tags, and GPS time over the file write time in ModifyDate.
    """
    SubSecDateTimeOriginal: Optional[str] = None
    DateTimeOriginal: Optional[str] = None
    SubSecCreateDate: Optional[str] = None
    CreateDate: Optional[str] = None
    GPSDateTime: Optional[str] = None
    ModifyDate: Optional[str] = None

    @classmethod
    def tag_names(cls):
        return [f.name for f in fields(cls)]

    @classmethod
    def from_exiftool(cls, data: Dict) -> "CaptureTags":
        values = {}
        for name in cls.tag_names():
            value = data.get(name)
            if value not in (None, ""):
                values[name] = str(value)
        return cls(**values)

    def capture_datetime(self, default_tz: str = DEFAULT_TIMEZONE) -> Optional[datetime]:
        """First parseable tag in precedence order, as an aware datetime."""
        for name in self.tag_names():
            value = getattr(self, name)
            if not value:
                continue
            parsed = parse_exif_datetime(value, default_tz)
            if parsed:
                return parsed
        return None


def parse_exif_datetime(timestamp_str: str, default_tz: str = DEFAULT_TIMEZONE) -> Optional[datetime]:
    """Parse ISO 8601 or EXIF date-time string into an aware datetime.

    Handles both ISO 8601 (2025-05-06T19:41:34-0400) and raw EXIF
    (2025:05:06 19:41:34.745-04:00) date formats. Values without an offset
    are camera-local times and are placed in default_tz.
    """
    pattern = r'(\d{4}[-:]\d{2}[-:]\d{2})[T ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:?\d{2})?'
    match = re.match(pattern, timestamp_str.strip())
    if not match:
        return None

    date_part = match.group(1).replace(':', '-')
    time_part = match.group(2)
    fractional_part = match.group(3)
    timezone_part = match.group(4)

    # Cameras write 0000:00:00 00:00:00 when the clock was never set
    try:
        if fractional_part:
            milliseconds = fractional_part.ljust(3, '0')[:3]
            base_dt = datetime.strptime(f"{date_part} {time_part}.{milliseconds}",
                                        "%Y-%m-%d %H:%M:%S.%f")
        else:
            base_dt = datetime.strptime(f"{date_part} {time_part}", "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return None

    if not timezone_part:
        return base_dt.replace(tzinfo=zoneinfo.ZoneInfo(default_tz))
    if timezone_part == 'Z':
        return base_dt.replace(tzinfo=timezone.utc)

    tz_str = timezone_part
    if ':' not in tz_str:
        tz_str = f"{tz_str[:-2]}:{tz_str[-2:]}"
    sign = 1 if tz_str[0] == '+' else -1
    offset_minutes = sign * (int(tz_str[1:3]) * 60 + int(tz_str[4:6]))
    return base_dt.replace(tzinfo=timezone(timedelta(minutes=offset_minutes)))


# Read alongside the capture tags but never part of the date precedence
CAMERA_TAGS = ("Make", "Model")


def derive_camera_label(data: Dict) -> Optional[str]:
    """Camera label such as "SONY ILCE-7M4" from exiftool output, or None."""
    parts = [str(data.get(name) or "").strip() for name in CAMERA_TAGS]
    return " ".join(p for p in parts if p) or None


def to_epoch_ms(value: datetime) -> int:
    """Epoch milliseconds for a datetime (naive values are local time)."""
    return int(round(value.timestamp() * 1000))


def file_mtime_ms(path: Path) -> int:
    return int(path.stat().st_mtime * 1000)


class ExifTimestampProvider:
    """Reads capture times with exiftool, bounded by a per-call timeout.

    The camera make and model are collected on the way; ``camera_label``
    reports the one found on the first file by path.
    """

    def __init__(self, timeout: float = DEFAULT_EXIF_TIMEOUT, default_tz: str = DEFAULT_TIMEZONE):
        self.timeout = timeout
        self.default_tz = default_tz
        self.available = check_tool_availability("exiftool", "-ver")
        self._labels: Dict[Path, str] = {}
        self._lock = threading.Lock()
        if not self.available:
            logger.warning("exiftool unavailable: using file modification times")

    def read_metadata(self, path: Path) -> Optional[Dict]:
        tags = CaptureTags.tag_names() + list(CAMERA_TAGS)
        result = subprocess.run(
            ["exiftool", "-q", "-json"] + [f"-{name}" for name in tags] + [str(path)],
            capture_output=True, text=True, check=True, timeout=self.timeout,
        )
        try:
            data = json.loads(result.stdout)[0]
        except (IndexError, json.JSONDecodeError):
            return None
        return data if isinstance(data, dict) else None

    @property
    def camera_label(self) -> Optional[str]:
        with self._lock:
            if not self._labels:
                return None
            return self._labels[min(self._labels)]

    def __call__(self, path: Path) -> Optional[datetime]:
        if not self.available:
            return None
        data = self.read_metadata(path)
        if data is None:
            return None
        label = derive_camera_label(data)
        if label:
            with self._lock:
                self._labels[Path(path)] = label
        return CaptureTags.from_exiftool(data).capture_datetime(self.default_tz)
