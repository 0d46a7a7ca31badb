"""Progress tracking for long-running scans."""

import threading
from typing import Dict, Optional

from rich.progress import Progress, TaskID


class ProgressContext:
    """Encapsulates rich progress bar state for cleaner parameter passing."""

    def __init__(self, progress: Optional[Progress] = None, task: Optional[TaskID] = None):
        self.progress = progress
        self.task = task

    @property
    def is_active(self) -> bool:
        """Check if progress tracking is active."""
        return self.progress is not None and self.task is not None

    def update(self, description: str, total: Optional[int] = None) -> None:
        """Update progress description (and total) if tracking is active."""
        if self.is_active:
            self.progress.update(self.task, description=description, total=total)

    def advance(self, steps: int = 1) -> None:
        """Advance progress by given number of steps."""
        if self.is_active:
            self.progress.advance(self.task, steps)


class ScanProgress:
    """Request-scoped scan counters, safe to advance from worker threads."""

    def __init__(self, progress_ctx: Optional[ProgressContext] = None):
        self.progress_ctx = progress_ctx or ProgressContext()
        self._lock = threading.Lock()
        self.active = False
        self.current = 0
        self.total = 0
        self.message = ""

    def start(self, total: int, message: str) -> None:
        with self._lock:
            self.active = True
            self.current = 0
            self.total = total
            self.message = message
        self.progress_ctx.update(message, total=total)

    def advance(self, steps: int = 1) -> None:
        with self._lock:
            self.current += steps
        self.progress_ctx.advance(steps)

    def finish(self) -> None:
        with self._lock:
            self.active = False
            self.message = ""

    def snapshot(self) -> Dict:
        with self._lock:
            return {"active": self.active, "current": self.current,
                    "total": self.total, "message": self.message}
