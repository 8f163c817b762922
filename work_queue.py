#!/usr/bin/env python3
"""
Work queue construction and claiming.

Input files are zone-style listings where each useful line starts with a
domain name followed by a dot and a tab (``example.com.\tNS\t...``).
The queue is built once, shuffled, and then only ever shrinks as workers
claim domains from its front.
"""

import asyncio
import logging
import random
from collections import deque
from itertools import groupby
from typing import BinaryIO, Iterable, Iterator, List, Optional

logger = logging.getLogger(__name__)

DELIMITER = ".\t"


class WorkQueue:
    """
    Shared queue of unclaimed domains.

    ``claim()`` is the only mutation after construction; it pops the front
    element under a lock, so every domain is handed to exactly one worker.
    The lock is never held across network or database I/O.
    """

    def __init__(self, domains: Iterable[str] = ()):
        self._items = deque(domains)
        self._lock = asyncio.Lock()

    async def claim(self) -> Optional[str]:
        """Remove and return the front domain, or None once the queue is empty."""
        async with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))


def parse_line(line: str) -> Optional[str]:
    """Return the domain before the first '.\\t', or None if the line has none."""
    prefix, sep, _ = line.partition(DELIMITER)
    if not sep:
        return None
    domain = prefix.strip()
    return domain or None


def dedup_adjacent(domains: Iterable[str]) -> List[str]:
    """Collapse runs of identical consecutive entries. Non-adjacent repeats survive."""
    return [domain for domain, _ in groupby(domains)]


def extract_domains(lines: Iterable[str]) -> List[str]:
    domains = []
    for line in lines:
        domain = parse_line(line)
        if domain is not None:
            domains.append(domain)
    return domains


def build_queue(lines: Iterable[str], rng: Optional[random.Random] = None) -> WorkQueue:
    """Parse, deduplicate and shuffle input lines into a WorkQueue."""
    domains = extract_domains(lines)

    logger.info("Deduplicating domains...")
    domains = dedup_adjacent(domains)

    logger.info("Randomizing work queue...")
    (rng or random).shuffle(domains)

    logger.info("Starting scan...")
    return WorkQueue(domains)


def read_lines(stream: BinaryIO) -> Iterator[str]:
    """Yield decoded lines from a binary stream, skipping lines that are not valid UTF-8."""
    for number, raw in enumerate(stream, start=1):
        try:
            yield raw.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"Failed to read line {number} from input: {e}")


def load_queue_from_file(file_path: str, rng: Optional[random.Random] = None) -> WorkQueue:
    """Build a WorkQueue from an input file. Raises OSError if the file cannot be opened."""
    with open(file_path, "rb") as f:
        queue = build_queue(read_lines(f), rng=rng)
    logger.info(f"Loaded {len(queue)} domains from {file_path}")
    return queue
