"""Command line entry point for ingesting S-57 charts into PostGIS."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from chartingest.database import Connect, Database, DatabaseError
from chartingest.ingest import ChartIngest, find_s57_files
from chartingest.models import ProcessingOptions, ProcessingResult
from chartingest.s57 import S57, ChartOpenError, Opener

VERSION = "1.0.0"
PROG_NAME = "s57-postgis"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass
class _Arguments:
    """The outcome of parsing the command line."""

    options: ProcessingOptions = field(default_factory=ProcessingOptions)
    input_path: Optional[str] = None
    show_help: bool = False
    show_version: bool = False


def _parse_workers(text: str) -> int:
    match = _LEADING_INT.match(text)
    if match is None:
        raise ValueError("--workers requires a number")
    return int(match.group(1))


def parse_args(argv: Sequence[str]) -> _Arguments:
    """Parse command line arguments.

    Parsing stops at ``-h``/``--help`` or ``--version``. A missing or
    malformed option value raises :class:`ValueError`. The first argument
    not starting with ``-`` is the input path; later ones are ignored.
    """
    args = _Arguments()
    opts = args.options
    tokens = iter(argv)
    for arg in tokens:
        if arg in ("-h", "--help"):
            args.show_help = True
            return args
        if arg == "--version":
            args.show_version = True
            return args
        if arg in ("-d", "--database"):
            value = next(tokens, None)
            if value is None:
                raise ValueError("--database requires a connection string")
            opts.database_url = value
        elif arg in ("-w", "--workers"):
            value = next(tokens, None)
            if value is None:
                raise ValueError("--workers requires a number")
            opts.workers = _parse_workers(value)
        elif arg in ("-r", "--recursive"):
            opts.recursive = True
        elif arg in ("-v", "--verbose"):
            opts.verbose = True
        elif arg == "--list":
            opts.list_only = True
        elif arg == "--info":
            opts.info_only = True
        elif arg == "--init-schema":
            opts.init_schema = True
        elif not args.input_path and not arg.startswith("-"):
            args.input_path = arg or None
    return args


def usage(prog: str) -> str:
    """Return the help text for the program named ``prog``."""
    return (
        f"S57-PostGIS v{VERSION}\n"
        "S-57 chart ingestion into PostGIS\n\n"
        f"Usage: {prog} <input> [options]\n\n"
        "Input:\n"
        "  <input>                 S-57 file (.000) or directory\n\n"
        "Database Options:\n"
        "  -d, --database <conn>   PostgreSQL connection string\n"
        f"                          Default: {ProcessingOptions().database_url}\n"
        "  --init-schema           Initialize database schema\n\n"
        "Processing Options:\n"
        "  -w, --workers <n>       Number of parallel workers (default: 4)\n"
        "  -r, --recursive         Recursively search directories\n"
        "  -v, --verbose           Verbose output\n\n"
        "Other Options:\n"
        "  --list                  List all .000 files found\n"
        "  --info                  Show chart metadata (for single file)\n"
        "  -h, --help              Show this help\n"
        "  --version               Show version\n\n"
        "Examples:\n"
        f"  {prog} chart.000 -d postgresql://localhost/njord\n"
        f"  {prog} /charts -r -v\n"
        f"  {prog} /charts --list\n"
    )


def list_files(path: str, recursive: bool) -> None:
    """Print the S-57 files found at ``path``."""
    files = find_s57_files(path, recursive)
    print(f"Found {len(files)} S-57 files:")
    for name in files:
        print(f"  {name}")
    print()


def show_chart_info(file_path: str, opener: Opener) -> None:
    """Print the metadata, layers and coverage of one chart file."""
    with S57(file_path, opener) as chart:
        if not chart.is_open():
            print(f"Error: Failed to open {file_path}", file=sys.stderr)
            return
        info = chart.chart_info()
        print("Chart Information:")
        print(f"  Name:     {info.name}")
        print(f"  Scale:    1:{info.scale}")
        print(f"  File:     {info.file_name}")
        print(f"  Updated:  {info.updated}")
        print(f"  Issued:   {info.issued}")
        print(f"  Zoom:     {info.zoom}")
        print()
        print("Layers:")
        for layer in chart.layer_names():
            print(f"  - {layer}")
        print()
        print("DSID Properties:")
        print(info.dsid_props)
        print()
        print("Coverage:")
        print(info.covr_geojson)
        print()


def _no_reader(path: str) -> None:
    raise ChartOpenError(f"no S-57 reader is available for {path}")


def _no_driver(connection_string: str) -> None:
    raise DatabaseError("no PostgreSQL driver is available")


def _print_progress(current: int, total: int, file_name: str) -> None:
    print(
        f"\rProcessing: {current}/{total} ({file_name})          ",
        end="",
        flush=True,
    )


def _init_schema(db: Database) -> bool:
    try:
        db.init_schema()
    except DatabaseError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        print("Error: Failed to initialize schema", file=sys.stderr)
        return False
    return True


def _print_summary(ingest: ChartIngest, results: list[ProcessingResult]) -> int:
    stats = ingest.statistics()
    print()
    print("Processing Complete:")
    print(f"  Files processed: {stats.total_files}")
    print(f"  Successful:      {stats.success_count}")
    print(f"  Failed:          {stats.fail_count}")
    print(f"  Total features:  {stats.total_features}")
    if stats.fail_count > 0:
        print()
        print("Failed files:")
        for result in results:
            if not result.success:
                print(f"  {result.file_name}: {result.error_message}")
    return 1 if stats.fail_count > 0 else 0


def _run(argv: Sequence[str], prog: str, opener: Opener, connect: Connect) -> int:
    try:
        args = parse_args(argv)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if args.show_help:
        print(usage(prog))
        return 0
    if args.show_version:
        print(f"{PROG_NAME} {VERSION}")
        return 0

    opts = args.options
    input_path = args.input_path

    if opts.list_only:
        if not input_path:
            print("Error: No input path specified", file=sys.stderr)
            return 1
        list_files(input_path, opts.recursive)
        return 0

    if opts.info_only:
        if not input_path:
            print("Error: No input file specified", file=sys.stderr)
            return 1
        show_chart_info(input_path, opener)
        return 0

    if opts.init_schema and not input_path:
        print("Initializing database schema...")
        with Database(opts.database_url, connect) as db:
            if not db.is_connected():
                print("Error: Failed to connect to database", file=sys.stderr)
                return 1
            if not _init_schema(db):
                return 1
        print("Schema initialized successfully.")
        return 0

    if not input_path:
        print("Error: No input specified\n", file=sys.stderr)
        print(usage(prog))
        return 1

    path = Path(input_path)
    if not path.exists():
        print(f"Error: Input path does not exist: {input_path}", file=sys.stderr)
        return 1

    if opts.verbose:
        print(f"Connecting to database: {opts.database_url}")

    with Database(opts.database_url, connect) as db:
        if not db.is_connected():
            print("Error: Failed to connect to database", file=sys.stderr)
            return 1

        if opts.init_schema:
            print("Initializing database schema...")
            if not _init_schema(db):
                return 1

        ingest = ChartIngest(
            db,
            opener,
            workers=opts.workers,
            verbose=opts.verbose,
            progress=None if opts.verbose else _print_progress,
        )

        if path.is_file():
            results = [ingest.process_file(input_path)]
        else:
            results = ingest.process_directory(input_path, opts.recursive)

        if not opts.verbose:
            print()
        return _print_summary(ingest, results)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command line program and return its exit status."""
    if argv is None:
        prog = Path(sys.argv[0]).name or PROG_NAME
        argv = sys.argv[1:]
    else:
        prog = PROG_NAME
    return _run(list(argv), prog, _no_reader, _no_driver)


if __name__ == "__main__":
    sys.exit(main())