"""
Core session sorting workflow: scan, cluster, trash and import.
"""

import logging
import zoneinfo
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rich.logging import RichHandler
from rich.progress import Progress
from rich.table import Table

from .archive import ImportOutcome, SessionImporter
from .companions import DEFAULT_RULES, CompanionRules
from .constants import (DEFAULT_EXIF_TIMEOUT, DEFAULT_TIMEZONE, DEFAULT_WORKERS, PROGRAM,
                        get_console, get_logger)
from .file_operations import FileOperations, normalize_abs
from .gaps import PresetOptions, format_gap, presets_for_timestamps
from .history import HistoryManager
from .progress import ProgressContext, ScanProgress
from .scanner import ScanOptions, TimestampProvider, scan_directory
from .sessions import ScanItem, Session, group_sessions_by_minutes
from .timestamps import ExifTimestampProvider
from .trash import MoveOutcome, TrashMover


class SessionSorter:
    """Main class for scanning a source folder and acting on its sessions."""

    def __init__(self, source: Path, root_dir: Optional[Path] = None, dry_run: bool = False,
                 timezone: str = DEFAULT_TIMEZONE, workers: int = DEFAULT_WORKERS,
                 exif_timeout: float = DEFAULT_EXIF_TIMEOUT, file_mode: Optional[int] = None,
                 group_gid: Optional[int] = None,
                 timestamp_provider: Optional[TimestampProvider] = None,
                 rules: CompanionRules = DEFAULT_RULES,
                 preset_options: PresetOptions = PresetOptions(), verbose: bool = False):
        self.source = normalize_abs(source)
        self.root_dir = root_dir or Path.home() / f".{PROGRAM}"
        self.dry_run = dry_run
        self.timezone = timezone
        self.exif_timeout = exif_timeout
        self.rules = rules
        self.preset_options = preset_options
        self.scan_options = ScanOptions(workers=workers)
        self._timestamp_provider = timestamp_provider

        # Console gets WARNING and up (INFO when verbose); history log files get DEBUG
        self.console = get_console()
        console_handler = RichHandler(console=self.console, rich_tracebacks=True)
        console_handler.setLevel(logging.INFO if verbose else logging.WARNING)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[console_handler]
        )
        self.logger = get_logger()

        self.file_ops = FileOperations(dry_run=dry_run, mode=file_mode, gid=group_gid)

    @property
    def timestamp_provider(self) -> TimestampProvider:
        if self._timestamp_provider is None:
            self._timestamp_provider = ExifTimestampProvider(self.exif_timeout, self.timezone)
        return self._timestamp_provider

    def scan(self, progress_ctx: Optional[ProgressContext] = None) -> List[ScanItem]:
        """Collect time-sorted scan items for the source folder."""
        if progress_ctx is None:
            with Progress(console=self.console, transient=True) as progress:
                task = progress.add_task("Reading capture times...", total=None)
                return self._scan(ScanProgress(ProgressContext(progress, task)))
        return self._scan(ScanProgress(progress_ctx))

    def _scan(self, scan_progress: ScanProgress) -> List[ScanItem]:
        self.logger.info(f"Scanning {self.source}")
        return scan_directory(self.source, self.timestamp_provider, self.scan_options,
                              scan_progress)

    @property
    def camera_label(self) -> Optional[str]:
        """Make and model reported by the timestamp provider during the scan, if any."""
        return getattr(self._timestamp_provider, "camera_label", None)

    @staticmethod
    def cluster(items: List[ScanItem], gap_minutes: float) -> List[Session]:
        return group_sessions_by_minutes(items, gap_minutes)

    def gap_presets(self, items: List[ScanItem]) -> List[int]:
        return presets_for_timestamps((it.captured_at for it in items), self.preset_options)

    def _history(self, operation: str, name: str) -> HistoryManager:
        history = HistoryManager(root_dir=self.root_dir, operation=operation, name=name,
                                 file_ops=self.file_ops)
        history.setup_operation_logger(self.logger)
        return history

    def trash_session(self, session: Session) -> MoveOutcome:
        """Move a session's files and their companions into the source trash area."""
        history = self._history("trash", self.source.name)
        try:
            self.logger.info(f"Trashing session {session.id} ({session.count} files) "
                             f"under {self.source}")
            mover = TrashMover(self.source, rules=self.rules, file_ops=self.file_ops)
            outcome = mover.trash_session(session.items)
            history.write_manifest(outcome, {"source": str(self.source), "session": session.id})
            history.log_operation_summary(self.source, outcome)
            return outcome
        finally:
            history.close(self.logger)

    def import_session(self, session: Session, archive_root: Path, title: Optional[str],
                       device_label: Optional[str]) -> ImportOutcome:
        """Copy a session and its companions into the archive."""
        history = self._history("import", title or session.example_name)
        try:
            self.logger.info(f"Importing session {session.id} ({session.count} files) "
                             f"into {archive_root}")
            importer = SessionImporter(archive_root, device_label=device_label,
                                       file_ops=self.file_ops, rules=self.rules, tz=self.timezone)
            outcome = importer.import_session(session.items, session.start, title,
                                              source_root=self.source)
            history.write_manifest(outcome, {"source": str(self.source), "session": session.id,
                                             "deviceLabel": importer.device_label})
            history.log_operation_summary(self.source, outcome)
            return outcome
        finally:
            history.close(self.logger)

    def print_sessions(self, sessions: List[Session], gap_ms: int) -> None:
        """Print the session table for the active gap."""
        tz = zoneinfo.ZoneInfo(self.timezone)
        table = Table(title=f"Sessions (gap {format_gap(gap_ms)})")
        table.add_column("ID", style="cyan")
        table.add_column("Start", style="green")
        table.add_column("Duration")
        table.add_column("Files", justify="right")
        table.add_column("Example")

        for session in sessions:
            start = datetime.fromtimestamp(session.start / 1000, tz=tz)
            table.add_row(session.id, start.strftime("%Y-%m-%d %H:%M:%S"),
                          format_gap(session.duration), str(session.count), session.example_name)

        self.console.print(table)

    def print_presets(self, presets: List[int], gap_ms: int) -> None:
        labels = []
        for value in presets:
            label = format_gap(value)
            labels.append(f"[bold]{label}[/bold]" if value == gap_ms else label)
        self.console.print("Gap presets: " + "  ".join(labels))

    def _print_problems(self, outcome) -> None:
        for skipped in outcome.skipped:
            if skipped["reason"] == "already-imported":
                continue
            self.console.print(f"  [yellow]skipped[/yellow] {skipped['path']} ({skipped['reason']})")
        for error in outcome.errors:
            self.console.print(f"  [red]error[/red] {error['path']}: {error['error']}")

    def print_trash_summary(self, outcome: MoveOutcome) -> None:
        table = Table(title="Trash Summary")
        table.add_column("Category", style="cyan")
        table.add_column("Count", style="green")
        table.add_row("Primaries", str(outcome.primary_count))
        table.add_row("Targets", str(outcome.target_count))
        table.add_row("Moved", str(len(outcome.moved)))
        table.add_row("Skipped", str(len(outcome.skipped)))
        table.add_row("Errors", str(len(outcome.errors)))
        self.console.print(table)
        self._print_problems(outcome)
        if outcome.trash_dir:
            self.console.print(f"Trash folder: [blue]{outcome.trash_dir}[/blue]")

    def print_import_summary(self, outcome: ImportOutcome) -> None:
        table = Table(title="Import Summary")
        table.add_column("Category", style="cyan")
        table.add_column("Count", style="green")
        table.add_row("Copied", str(len(outcome.copied)))
        table.add_row("Already Imported",
                      str(sum(1 for s in outcome.skipped if s["reason"] == "already-imported")))
        table.add_row("Skipped", str(len(outcome.skipped)))
        table.add_row("Errors", str(len(outcome.errors)))
        self.console.print(table)
        self._print_problems(outcome)
        if outcome.session_dir:
            self.console.print(f"Session folder: [blue]{outcome.session_dir}[/blue]")
