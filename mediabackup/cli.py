"""
Command-line interface for mediabackup.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.progress import Progress

from .config import Config
from .constants import PROGRAM, get_console, get_logger
from .core import BackupPipeline, configure_logging
from .history import RunHistory
from .progress import ProgressContext
from .timestamps import is_valid_timezone


def non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Not an integer: {value}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"Must not be negative: {value}")
    return number


def positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Not a number: {value}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"Must be greater than zero: {value}")
    return number


def timezone_name(value: str) -> str:
    if not is_valid_timezone(value):
        raise argparse.ArgumentTypeError(f"Unknown timezone: {value}")
    return value


def create_parser(config: Config) -> argparse.ArgumentParser:
    """Create argument parser with dynamic defaults from config."""
    last_source = config.get_last_source()
    last_dest = config.get_last_dest()

    source_help = "Source directory to scan for media"
    dest_help = "Destination directory for the organized backup"
    if last_source:
        source_help += f" (default: {last_source})"
    if last_dest:
        dest_help += f" (default: {last_dest})"

    parser = argparse.ArgumentParser(
        prog=PROGRAM,
        description="Back up media into Category/YYYY-MM folders, skipping duplicate content",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  {PROGRAM} /media/sdcard ~/Backup/Media
  {PROGRAM} --preview /media/sdcard
  {PROGRAM} --min-size 50 --workers 8 ~/Downloads ~/Backup/Media
        """
    )

    parser.add_argument("source", nargs="?", help=source_help)
    parser.add_argument("dest", nargs="?", help=dest_help)
    parser.add_argument(
        "--source", "-s", dest="source_override",
        help="Override source directory"
    )
    parser.add_argument(
        "--dest", "-d", dest="dest_override",
        help="Override destination directory"
    )
    parser.add_argument(
        "--preview", "--dry-run", "-n", action="store_true",
        help="Scan and report what would be backed up without writing anything"
    )
    parser.add_argument(
        "--yes", "-y", action="store_true",
        help="Auto-confirm processing for saved source/dest paths"
    )
    parser.add_argument(
        "--min-size", type=non_negative_int, metavar="KB",
        help=f"Skip files smaller than this many KB (default: {config.get_min_file_size_kb()})"
    )
    parser.add_argument(
        "--workers", "-j", type=non_negative_int, metavar="N",
        help=f"Number of parallel workers (default: {config.get_workers()})"
    )
    parser.add_argument(
        "--metadata-timeout", type=positive_float, metavar="SECONDS",
        help=f"Give up on a metadata lookup after this long (default: {config.get_metadata_timeout()})"
    )
    parser.add_argument(
        "--timezone", "--tz", type=timezone_name, metavar="TIMEZONE",
        help="Timezone for metadata dates carrying a UTC offset (default: system local time)"
    )
    parser.add_argument(
        "--no-seed", action="store_true",
        help="Do not index files already in the destination before backing up"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Trace every file"
    )
    parser.add_argument(
        "--version", "-V", action="store_true",
        help=f"Display the version number of {PROGRAM} and exit"
    )

    return parser


def prompt_for_source(console: Console) -> Optional[str]:
    """Ask for a source directory when none was given or saved."""
    try:
        response = console.input("Source directory to back up: ").strip()
    except (EOFError, KeyboardInterrupt):
        console.print("\n[red]Operation cancelled[/red]")
        return None
    return response or None


def show_processing_plan(source: Path, dest: Optional[Path], preview: bool, min_size_kb: int,
                         workers: int, seed: bool, console: Console) -> None:
    """Display the processing plan before execution."""
    console.print("\n[bold]Processing Plan:[/bold]")
    console.print(f"  Source:          [blue]{source}[/blue]")
    console.print(f"  Destination:     [blue]{dest if dest else '(none)'}[/blue]")
    console.print(f"  Processing Mode: [cyan]{'PREVIEW' if preview else 'BACKUP'}[/cyan]")
    console.print(f"  Minimum Size:    [cyan]{min_size_kb} KB[/cyan]")
    console.print(f"  Workers:         [cyan]{workers}[/cyan]")
    console.print(f"  Index Existing:  [cyan]{'Yes' if seed else 'No'}[/cyan]")
    console.print()


def confirm_processing(console: Console) -> bool:
    """Ask for confirmation when using saved configuration."""
    console.print("[yellow]Confirm processing plan with saved configuration.[/yellow]")

    try:
        response = console.input("Continue? [y/N]: ").strip().lower()
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
    console = get_console()

    if args.version:
        from . import __version__
        print(__version__)
        return 0

    using_saved_config = args.source is None and args.dest is None and \
                         args.source_override is None and args.dest_override is None

    source_path = args.source_override or args.source or config.get_last_source()
    if not source_path:
        using_saved_config = False
        source_path = prompt_for_source(console)
        if not source_path:
            parser.error("A source directory is required")

    dest_path = args.dest_override or args.dest or config.get_last_dest()
    if not dest_path and not args.preview:
        parser.error("A destination directory is required unless --preview is given")

    source = Path(source_path).expanduser().resolve()
    dest = Path(dest_path).expanduser().resolve() if dest_path else None

    if not source.exists():
        print(f"Error: Source directory does not exist: {source}")
        return 1

    if not source.is_dir():
        print(f"Error: Source is not a directory: {source}")
        return 1

    if dest is not None and (source == dest or source in dest.parents or dest in source.parents):
        print("Error: Identical or overlapping source/dest folders:")
        print(f" - Source:      {source}")
        print(f" - Destination: {dest}")
        return 1

    config.update_paths(str(source), str(dest) if dest else None)
    config.update(min_file_size_kb=args.min_size, workers=args.workers,
                  metadata_timeout=args.metadata_timeout, timezone=args.timezone)

    min_size_kb = args.min_size if args.min_size is not None else config.get_min_file_size_kb()
    workers = args.workers or config.get_workers()
    metadata_timeout = args.metadata_timeout or config.get_metadata_timeout()
    timezone = args.timezone or config.get_timezone()
    seed = config.get_seed_from_destination() and not args.no_seed

    configure_logging(console, verbose=args.verbose)
    logger = get_logger()

    show_processing_plan(source, dest, args.preview, min_size_kb, workers, seed, console)

    if using_saved_config and not args.yes:
        if not confirm_processing(console):
            return 0

    history = RunHistory(config.program_root, dest, preview=args.preview)
    history.attach(logger)

    pipeline = BackupPipeline(
        source=source,
        dest=dest,
        preview=args.preview,
        min_file_size_kb=min_size_kb,
        workers=workers,
        metadata_timeout=metadata_timeout,
        timezone=timezone,
        seed_from_destination=seed,
    )

    try:
        files = pipeline.find_source_files()
        if not files:
            console.print("[yellow]No media files found in source directory[/yellow]")
            return 0

        console.print(f"Found {len(files)} media files to process")

        with Progress(console=console, transient=True) as progress:
            task = progress.add_task("Processing files...", total=len(files))
            pipeline.on_progress = ProgressContext(progress, task)
            record = pipeline.run(files)

        console.print(record.render())
        history.log_summary(source, record, success=not record.cancelled)

        if record.cancelled:
            console.print("\n[red]Operation cancelled by user[/red]")
            return 1

        if args.preview:
            console.print(f"\n[green]✓ Preview complete:[/green] {record.get_copied()} files would be backed up")
        elif record.has_errors():
            console.print(f"\n[green]✓ Backup completed![/green] [yellow]({record.get_errors()} files failed)[/yellow]")
        else:
            console.print("\n[green]✓ Backup completed successfully![/green]")
        return 0

    except KeyboardInterrupt:
        console.print("\n[red]Operation cancelled by user[/red]")
        return 1
    except Exception as e:
        logger.debug("Run aborted", exc_info=True)
        console.print(pipeline.record.render())
        history.log_summary(source, pipeline.record, success=False)
        console.print(f"\n[red]Fatal error: {e}[/red]")
        return 1
    finally:
        history.detach(logger)


if __name__ == "__main__":
    sys.exit(main())
