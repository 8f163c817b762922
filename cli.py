#!/usr/bin/env python3
"""
Command Line Interface for the Root Document Scanner

Scans every domain listed in a zone-style input file over HTTPS and stores
the results in PostgreSQL. Database settings come from the environment or
a .env file (DB_NAME, DB_USER, DB_PASS, DB_HOST, DB_PORT).

Usage:
    python cli.py domains.txt [options]

Example:
    python cli.py com.zone --workers 31

License: MIT
"""

import argparse
import asyncio
import sys

import psycopg
from rich.console import Console
from rich.markup import escape

from record_store import RecordStore
from root_scanner import RootScanner, configure_logging
from scan_config import ConfigError, DatabaseConfig, ScanSettings, default_worker_count
from work_queue import load_queue_from_file


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Root Document Scanner')
    parser.add_argument('input_file', help='Path to input file (lines of "<domain>.<TAB>...")')
    parser.add_argument('--workers', '-w', type=int, default=default_worker_count(),
                        help='Number of concurrent workers (default: 2 x CPUs - 1)')
    parser.add_argument('--log-file', default='root_scanner.log',
                        help='Log file path (default: root_scanner.log)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Log every failed fetch')
    return parser.parse_args(argv)


async def run(args, console: Console) -> int:
    settings = ScanSettings(workers=args.workers)
    db_config = DatabaseConfig.from_env()
    queue = load_queue_from_file(args.input_file)

    store = RecordStore.from_conninfo(db_config.conninfo(), max_size=settings.workers)
    try:
        await store.open()

        console.print(f"[bold blue]Starting scan of {len(queue)} domains with {settings.workers} workers...[/bold blue]")
        scanner = RootScanner(store, settings=settings, console=console)
        summary = await scanner.scan(queue)
    finally:
        await store.close()

    console.print("[green]All tasks done.[/green]")
    scanner.print_summary(summary)
    return 0


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.log_file, args.verbose)
    console = Console()

    try:
        code = asyncio.run(run(args, console))
    except ConfigError as e:
        console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        sys.exit(1)
    except OSError as e:
        console.print(f"[red]Failed to open specified input file: {escape(str(e))}[/red]")
        sys.exit(1)
    except psycopg.Error as e:
        console.print(f"[red]Database unavailable: {escape(str(e))}[/red]")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
