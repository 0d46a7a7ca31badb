"""
Command-line interface for sessionsort.
"""

import argparse
import sys
import zoneinfo
from pathlib import Path
from typing import Optional

from rich.console import Console

from .config import Config
from .constants import PROGRAM, get_console
from .core import SessionSorter
from .errors import SessionSortError
from .gaps import MINUTE_MS, format_gap
from .permissions import parse_file_mode, parse_group
from .sessions import Session, find_session


def create_parser(config: Config) -> argparse.ArgumentParser:
    """Create argument parser with dynamic defaults from config."""
    last_source = config.get_last_source()
    archive_root = config.get_archive_root()
    device_label = config.get_device_label()

    source_help = "Source directory containing photos to group into sessions"
    archive_help = "Existing archive root to import into"
    device_help = "Device label prefixed to every imported file name"
    if last_source:
        source_help += f" (default: {last_source})"
    if archive_root:
        archive_help += f" (default: {archive_root})"
    if device_label:
        device_help += f" (default: {device_label})"

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("source", nargs="?", help=source_help)
    common.add_argument(
        "--gap", type=float, metavar="MINUTES",
        help=f"Gap between photos that starts a new session (default: {config.get_gap_minutes():g})"
    )
    common.add_argument(
        "--workers", "-w", type=int, metavar="N",
        help=f"Concurrent capture-time readers (default: {config.get_workers()})"
    )
    common.add_argument(
        "--timezone", "--tz", type=str, metavar="TIMEZONE",
        help=f"Timezone for capture times without offset (default: {config.get_timezone()})"
    )
    common.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose logging"
    )

    parser = argparse.ArgumentParser(
        prog=PROGRAM,
        description="Group photos into capture sessions, then archive or trash them safely",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  {PROGRAM} scan ~/Pictures/Card --presets
  {PROGRAM} import --session 2 --title "Plant test" --archive-root /mnt/PhotoRaw
  {PROGRAM} trash --session 3 --dry-run
        """
    )
    parser.add_argument(
        "--version", "-V", action="store_true",
        help=f"Display the version number of {PROGRAM} and exit"
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    scan = subparsers.add_parser("scan", parents=[common], help="List sessions in a source folder")
    scan.add_argument("--presets", action="store_true", help="Show data-driven gap presets")

    trash = subparsers.add_parser("trash", parents=[common],
                                  help="Move a session and its companions to the trash area")
    trash.add_argument("--session", "-s", required=True, metavar="ID", help="Session to trash")
    trash.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    trash.add_argument("--dry-run", "-n", action="store_true",
                       help="Preview operations without making changes")

    imp = subparsers.add_parser("import", parents=[common],
                                help="Copy a session and its companions into the archive")
    imp.add_argument("--session", "-s", required=True, metavar="ID", help="Session to import")
    imp.add_argument("--title", "-t", metavar="TITLE", help="Session title for the folder name")
    imp.add_argument("--archive-root", "-a", metavar="DIR", help=archive_help)
    imp.add_argument("--device", "-d", metavar="LABEL", help=device_help)
    imp.add_argument("--dry-run", "-n", action="store_true",
                     help="Preview operations without making changes")
    imp.add_argument("--mode", "-m", type=str, metavar="MODE",
                     help="File permissions mode in octal format (e.g., 644, 664, 400)")
    imp.add_argument("--group", "-g", type=str, metavar="GROUP",
                     help="Group ownership for imported files (e.g., staff, users)")

    return parser


def show_session_plan(action: str, session: Session, source: Path, dry_run: bool,
                      console: Console, target: Optional[str] = None) -> None:
    """Display what is about to happen to a session."""
    console.print(f"\n[bold]{action} Plan:[/bold]")
    console.print(f"  Source:          [blue]{source}[/blue]")
    if target:
        console.print(f"  Destination:     [blue]{target}[/blue]")
    console.print(f"  Session:         [cyan]{session.id}[/cyan] "
                  f"({session.count} files, {session.example_name})")
    console.print(f"  Processing Mode: [cyan]{'DRY RUN' if dry_run else action.upper()}[/cyan]")
    console.print()


def confirm_processing(console: Console, prompt: str) -> bool:
    """Ask for confirmation before a destructive operation."""
    try:
        response = console.input(f"{prompt} [y/N]: ").strip().lower()
        return response in ['y', 'yes']
    except (EOFError, KeyboardInterrupt):
        console.print("\n[red]Operation cancelled[/red]")
        return False


def main(config_path: Optional[Path] = None) -> int:
    """Main entry point.

    Args:
        config_path: Optional path to config file (for testing)
    """
    config = Config(config_path=config_path)
    parser = create_parser(config)
    args = parser.parse_args()

    if args.version:
        from . import __version__, __copyright__
        print(f"{PROGRAM} version {__version__} {__copyright__}")
        return 0

    if not args.command:
        parser.print_help()
        return 1

    source_path = args.source or config.get_last_source()
    if not source_path:
        parser.error("Source directory is required")

    source = Path(source_path).expanduser().resolve()
    if not source.exists():
        print(f"Error: Source directory does not exist: {source}")
        return 1
    if not source.is_dir():
        print(f"Error: Source is not a directory: {source}")
        return 1

    if args.gap is not None and args.gap < 0:
        print(f"Error: Gap must not be negative: {args.gap}")
        return 1

    if args.timezone:
        try:
            zoneinfo.ZoneInfo(args.timezone)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            print(f"Error: Unknown timezone: {args.timezone}")
            return 1

    config.update(last_source=str(source), gap_minutes=args.gap, workers=args.workers,
                  timezone=args.timezone)

    console = get_console()
    dry_run = getattr(args, "dry_run", False)

    # Import-only settings
    file_mode = group_gid = None
    if args.command == "import":
        try:
            if args.mode or config.get_file_mode():
                file_mode = parse_file_mode(args.mode or config.get_file_mode())
            if args.group or config.get_group():
                group_gid = parse_group(args.group or config.get_group())
        except argparse.ArgumentTypeError as e:
            print(f"Error: {e}")
            return 1
        config.update(file_mode=args.mode, group=args.group)

    sorter = SessionSorter(
        source=source,
        root_dir=config.program_root,
        dry_run=dry_run,
        timezone=config.get_timezone(),
        workers=config.get_workers(),
        exif_timeout=config.get_exif_timeout(),
        file_mode=file_mode,
        group_gid=group_gid,
        verbose=args.verbose,
    )

    try:
        items = sorter.scan()
        if not items:
            console.print("[yellow]No media files found in source directory[/yellow]")
            return 0

        gap_ms = int(config.get_gap_minutes() * MINUTE_MS)
        sessions = sorter.cluster(items, config.get_gap_minutes())
        console.print(f"Found {len(items)} files in {len(sessions)} sessions "
                      f"(gap {format_gap(gap_ms)})")
        if sorter.camera_label:
            console.print(f"Camera: {sorter.camera_label}")

        if args.command == "scan":
            sorter.print_sessions(sessions, gap_ms)
            if args.presets:
                sorter.print_presets(sorter.gap_presets(items), gap_ms)
            return 0

        session = find_session(sessions, args.session)

        if args.command == "trash":
            show_session_plan("Trash", session, source, dry_run, console)
            if not (args.yes or dry_run) and \
                    not confirm_processing(console, f"Move session {session.id} to trash?"):
                return 0
            outcome = sorter.trash_session(session)
            sorter.print_trash_summary(outcome)
        else:
            archive_root = args.archive_root or config.get_archive_root()
            if not archive_root:
                print("Error: Archive root is required (use --archive-root)")
                return 1
            archive_root = str(Path(archive_root).expanduser())
            device_label = args.device or config.get_device_label() or sorter.camera_label
            config.update(archive_root=archive_root, device_label=args.device)

            show_session_plan("Import", session, source, dry_run, console, target=archive_root)
            outcome = sorter.import_session(session, Path(archive_root), args.title, device_label)
            sorter.print_import_summary(outcome)

        if outcome.errors:
            console.print(f"\n[yellow]Completed with {len(outcome.errors)} errors[/yellow]")
            return 1
        console.print("\n[green]✓ Processing completed successfully![/green]")
        return 0

    except SessionSortError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[red]Operation cancelled by user[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
