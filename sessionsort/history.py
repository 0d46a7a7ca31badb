"""
Operation history: per-operation log folder, manifest and global audit log.
"""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

from .archive import ImportOutcome
from .file_operations import FileOperations
from .trash import MoveOutcome


class HistoryManager:
    """Manages operation history folders, manifests and the operations log."""

    def __init__(self, root_dir: Path, operation: str, name: str, file_ops: FileOperations):
        self.root_dir = root_dir
        self.operation = operation
        self.file_ops = file_ops
        self.history_dir = self.root_dir / "history"
        self.operations_audit_log = self.root_dir / "operations.log"
        self.file_handler: Optional[logging.Handler] = None

        self._setup_history_folder(name)

    def _setup_history_folder(self, name: str) -> None:
        """Create a dated history folder, adding a counter on collision."""
        timestamp = datetime.now().strftime("%Y-%m-%d")
        folder_name = f"{timestamp}+{self.operation}-{self._sanitize_name(name)}"

        folder = self.history_dir / folder_name
        counter = 1
        while folder.exists() and any(folder.iterdir()):
            folder = self.history_dir / f"{folder_name}-{counter:02d}"
            counter += 1

        self.file_ops.ensure_directory(folder)
        self.history_folder = folder
        self.history_folder_name = folder.name
        self.operation_log = folder / "operation.log"
        self.manifest_path = folder / "manifest.json"

    @staticmethod
    def _sanitize_name(name: str) -> str:
        """Convert a path or title to a safe folder name fragment."""
        sanitized = re.sub(r'[^\w\-_]', '-', str(name))
        sanitized = re.sub(r'-+', '-', sanitized)
        return sanitized.strip('-') or "untitled"

    def setup_operation_logger(self, logger: logging.Logger) -> None:
        """Configure logger to write to the operation-specific log file."""
        if self.file_ops.dry_run:
            return

        file_handler = logging.FileHandler(self.operation_log)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(name)s] %(levelname)s: %(message)s'
        ))
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)
        self.file_handler = file_handler

    def close(self, logger: logging.Logger) -> None:
        """Detach and close the operation log handler."""
        if self.file_handler is not None:
            logger.removeHandler(self.file_handler)
            self.file_handler.close()
            self.file_handler = None

    def write_manifest(self, outcome: Union[ImportOutcome, MoveOutcome], extra: Dict) -> None:
        """Write the outcome (including per-file mapping records) as JSON."""
        if self.file_ops.dry_run:
            return

        manifest = {"operation": self.operation,
                    "createdAt": datetime.now().isoformat(timespec="seconds")}
        manifest.update(extra)
        manifest.update(outcome.to_dict())
        with open(self.manifest_path, 'w', encoding='utf-8') as f:
            json.dump(manifest, f, indent=2)

    def log_operation_summary(self, source: Path, outcome: Union[ImportOutcome, MoveOutcome]) -> None:
        """Append a one-line summary to the global operations.log."""
        if self.file_ops.dry_run:
            return

        self.root_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        status = "PARTIAL" if outcome.errors else "SUCCESS"
        if isinstance(outcome, ImportOutcome):
            done = f"Copied: {len(outcome.copied)} | Dest: {outcome.session_dir}"
        else:
            done = f"Moved: {len(outcome.moved)} | Trash: {outcome.trash_dir}"

        summary = (
            f"{timestamp} | {self.operation.upper()} | {status} | Source: {source} | {done} | "
            f"Skipped: {len(outcome.skipped)} | Errors: {len(outcome.errors)} | "
            f"History: {self.history_folder_name}\n"
        )
        with open(self.operations_audit_log, 'a', encoding='utf-8') as f:
            f.write(summary)
