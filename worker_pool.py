#!/usr/bin/env python3
"""
Claim -> fetch -> store workers.

All workers are interchangeable: they compete for the front of the shared
queue and stop for good the first time they find it empty.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Tuple

from fetcher import ScanOutcome
from record_store import Dropped, StoreResult
from work_queue import WorkQueue

logger = logging.getLogger(__name__)

FetchFn = Callable[[str], Awaitable[ScanOutcome]]


@dataclass
class WorkerStats:
    """Per-worker tallies, used only for the run summary."""

    claimed: int = 0
    succeeded: int = 0
    failed: int = 0
    stored: int = 0
    duplicates: int = 0
    dropped: int = 0

    def record(self, outcome: ScanOutcome, result: StoreResult):
        if outcome.success:
            self.succeeded += 1
        else:
            self.failed += 1

        if isinstance(result, Dropped):
            self.dropped += 1
        elif result.inserted:
            self.stored += 1
        else:
            self.duplicates += 1

    def merge(self, other: "WorkerStats"):
        self.claimed += other.claimed
        self.succeeded += other.succeeded
        self.failed += other.failed
        self.stored += other.stored
        self.duplicates += other.duplicates
        self.dropped += other.dropped


async def worker(worker_id: int, queue: WorkQueue, fetch: FetchFn, store) -> WorkerStats:
    """
    Run one worker until the queue is empty.

    ``store`` is anything with an ``async store(outcome, worker_id)`` method
    returning a StoreResult (normally a RecordStore).
    """
    stats = WorkerStats()
    while True:
        domain = await queue.claim()
        if domain is None:
            break
        stats.claimed += 1

        outcome = await fetch(domain)
        result = await store.store(outcome, worker_id=worker_id)
        stats.record(outcome, result)

    logger.debug(f"Worker[{worker_id}] finished after {stats.claimed} domains")
    return stats


def spawn_workers(count: int, queue: WorkQueue, fetch: FetchFn, store) -> List["asyncio.Task[WorkerStats]"]:
    """Start ``count`` worker tasks on the running loop."""
    return [
        asyncio.create_task(worker(worker_id, queue, fetch, store), name=f"worker-{worker_id}")
        for worker_id in range(count)
    ]


async def join_workers(tasks: List["asyncio.Task[WorkerStats]"]) -> Tuple[WorkerStats, int]:
    """Wait for every worker. Returns merged stats and the number of workers that crashed."""
    totals = WorkerStats()
    crashed = 0
    results = await asyncio.gather(*tasks, return_exceptions=True)
    for task, result in zip(tasks, results):
        if isinstance(result, BaseException):
            logger.error(f"{task.get_name()} failed with exception: {type(result).__name__}: {result}")
            crashed += 1
        else:
            totals.merge(result)
    return totals, crashed


def all_done(tasks: List[asyncio.Task]) -> bool:
    return all(task.done() for task in tasks)
