#!/usr/bin/env python3
"""
Progress reporting for a running scan.

The monitor watches how many domains are left in the queue and moves the
progress bar to ``initial - remaining`` once per poll. It returns when the
queue is empty. Waiting for in-flight work is the caller's job.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sized

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


def make_progress(console: Optional[Console] = None) -> Progress:
    """[elapsed] bar pos/total"""
    return Progress(
        TextColumn("[", markup=False),
        TimeElapsedColumn(),
        TextColumn("]", markup=False),
        BarColumn(bar_width=80, style="blue", complete_style="cyan", finished_style="cyan"),
        MofNCompleteColumn(),
        console=console,
    )


async def monitor_queue(queue: Sized, progress, task_id, initial: int,
                        interval: float = 1.0,
                        stop_early: Optional[Callable[[], bool]] = None,
                        sleep: SleepFn = asyncio.sleep) -> int:
    """
    Poll ``len(queue)`` every ``interval`` seconds until it reaches zero.

    ``stop_early`` lets the caller end monitoring if the workers are all gone
    while domains remain (only possible if workers crashed). Returns the
    number of polls made.
    """
    polls = 0
    while True:
        remaining = len(queue)
        polls += 1
        progress.update(task_id, completed=initial - remaining)
        if remaining == 0:
            break
        if stop_early is not None and stop_early():
            logger.error(f"All workers stopped with {remaining} domains still queued")
            break
        await sleep(interval)
    return polls
