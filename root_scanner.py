#!/usr/bin/env python3
"""
Root Document Scanner

Probes a large list of domains over HTTPS and records connection and
response metadata for each one in PostgreSQL. A fixed pool of async
workers pulls domains from a shared, shuffled queue while a monitor
drives the progress bar.

License: MIT
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import httpx
from rich.console import Console
from rich.table import Table

from completion_monitor import make_progress, monitor_queue
from fetcher import build_client, fetch
from scan_config import ScanSettings
from work_queue import WorkQueue
from worker_pool import all_done, join_workers, spawn_workers

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def configure_logging(log_file: Optional[str] = "root_scanner.log", verbose: bool = False):
    """Log to a file and to the console, once per process."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@dataclass
class ScanSummary:
    total_queued: int
    workers: int
    succeeded: int = 0
    failed: int = 0
    stored: int = 0
    duplicates: int = 0
    dropped: int = 0
    crashed_workers: int = 0
    scan_duration: float = 0.0

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed

    def as_dict(self) -> Dict:
        return {
            'total_queued': self.total_queued,
            'workers': self.workers,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'stored': self.stored,
            'duplicates': self.duplicates,
            'dropped': self.dropped,
            'crashed_workers': self.crashed_workers,
            'scan_duration': self.scan_duration,
        }


class RootScanner:
    """
    Runs one scan of a WorkQueue against a result store.

    Args:
        store: object with ``async store(outcome, worker_id)`` (normally a RecordStore)
        settings (ScanSettings): worker count, timeouts and polling interval
        client_factory: builds the shared httpx.AsyncClient
        console (Console): where progress and the summary are rendered
    """
    def __init__(self, store, settings: Optional[ScanSettings] = None,
                 client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
                 console: Optional[Console] = None):
        self.store = store
        self.settings = settings or ScanSettings()
        self.client_factory = client_factory or (
            lambda: build_client(timeout=self.settings.timeout, user_agent=self.settings.user_agent)
        )
        self.console = console or Console()

    async def scan(self, queue: WorkQueue) -> ScanSummary:
        """Drain the queue with the worker pool and return a summary once every worker has finished."""
        start_time = time.time()
        initial = len(queue)
        summary = ScanSummary(total_queued=initial, workers=self.settings.workers)

        async with self.client_factory() as client:
            async def probe(domain: str):
                return await fetch(client, domain, timeout=self.settings.timeout)

            tasks = spawn_workers(self.settings.workers, queue, probe, self.store)

            with make_progress(self.console) as progress:
                task_id = progress.add_task("scan", total=initial)
                await monitor_queue(
                    queue, progress, task_id, initial,
                    interval=self.settings.poll_interval,
                    stop_early=lambda: all_done(tasks),
                )

            # The queue being empty does not mean the last fetches and writes are done.
            totals, crashed = await join_workers(tasks)

        summary.succeeded = totals.succeeded
        summary.failed = totals.failed
        summary.stored = totals.stored
        summary.duplicates = totals.duplicates
        summary.dropped = totals.dropped
        summary.crashed_workers = crashed
        summary.scan_duration = time.time() - start_time
        logger.info(f"Scan finished: {summary.as_dict()}")
        return summary

    def print_summary(self, summary: ScanSummary):
        table = Table(title="Root Document Scan Summary")
        table.add_column("Metric", style="cyan")
        table.add_column("Count", style="green")

        table.add_row("Domains queued", str(summary.total_queued))
        table.add_row("Workers", str(summary.workers))
        table.add_row("Responses obtained", str(summary.succeeded))
        table.add_row("Unreachable", str(summary.failed))
        table.add_row("Rows written", str(summary.stored))
        table.add_row("Already present (ignored)", str(summary.duplicates))
        table.add_row("Dropped (database errors)", str(summary.dropped))
        if summary.crashed_workers:
            table.add_row("Crashed workers", str(summary.crashed_workers))
        table.add_row("Total scan duration", f"{summary.scan_duration:.2f} seconds")

        self.console.print(table)
