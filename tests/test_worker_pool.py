import asyncio
import logging

import scan_config
from fakes import MemoryStore
from fetcher import ScanFailure, ScanSuccess
from record_store import Dropped
from scan_config import default_worker_count
from work_queue import WorkQueue
from worker_pool import WorkerStats, join_workers, spawn_workers, worker


async def fake_fetch(domain):
    await asyncio.sleep(0)
    if domain.startswith("down"):
        return ScanFailure(domain)
    return ScanSuccess(domain=domain, status=200)


def test_worker_count_formula(monkeypatch):
    monkeypatch.setattr(scan_config.os, "cpu_count", lambda: 4)
    assert default_worker_count() == 7
    monkeypatch.setattr(scan_config.os, "cpu_count", lambda: 1)
    assert default_worker_count() == 1
    monkeypatch.setattr(scan_config.os, "cpu_count", lambda: None)
    assert default_worker_count() == 1


def test_every_domain_is_stored_exactly_once(memory_store):
    domains = [f"up{i}.com" for i in range(40)] + [f"down{i}.com" for i in range(10)]
    queue = WorkQueue(domains)

    async def run():
        return await join_workers(spawn_workers(5, queue, fake_fetch, memory_store))

    totals, crashed = asyncio.run(run())

    stored_domains = [outcome.domain for _, outcome in memory_store.outcomes]
    assert sorted(stored_domains) == sorted(domains)
    assert crashed == 0
    assert totals.claimed == 50
    assert totals.succeeded == 40
    assert totals.failed == 10
    assert totals.stored == 50
    assert len(queue) == 0


def test_work_is_spread_across_workers(memory_store):
    queue = WorkQueue([f"up{i}.com" for i in range(30)])

    async def run():
        await join_workers(spawn_workers(3, queue, fake_fetch, memory_store))

    asyncio.run(run())
    assert {worker_id for worker_id, _ in memory_store.outcomes} == {0, 1, 2}


def test_worker_exits_on_empty_queue(memory_store):
    stats = asyncio.run(worker(0, WorkQueue(), fake_fetch, memory_store))
    assert stats == WorkerStats()
    assert memory_store.outcomes == []


def test_dropped_and_duplicate_results_are_counted():
    class FlakyStore(MemoryStore):
        async def store(self, outcome, worker_id=None):
            if outcome.domain == "bad.com":
                return Dropped(outcome.domain, "OperationalError: gone")
            return await super().store(outcome, worker_id)

    store = FlakyStore()
    store.rows["seen.com"] = ScanFailure("seen.com")
    queue = WorkQueue(["bad.com", "seen.com", "new.com"])

    stats = asyncio.run(worker(0, queue, fake_fetch, store))

    assert stats.claimed == 3
    assert stats.dropped == 1
    assert stats.duplicates == 1
    assert stats.stored == 1


def test_crashed_worker_is_reported(memory_store, caplog):
    async def exploding_fetch(domain):
        await asyncio.sleep(0)
        if domain == "boom.com":
            raise RuntimeError("unexpected")
        return ScanSuccess(domain=domain, status=200)

    queue = WorkQueue(["boom.com"] + [f"up{i}.com" for i in range(10)])

    async def run():
        return await join_workers(spawn_workers(2, queue, exploding_fetch, memory_store))

    with caplog.at_level(logging.ERROR, logger="worker_pool"):
        totals, crashed = asyncio.run(run())

    assert crashed == 1
    assert totals.claimed == 10
    assert len(queue) == 0
    assert any("RuntimeError" in r.getMessage() for r in caplog.records)
