"""
Fetch tests against a real TLS connection on 127.0.0.1.

These cover what a mock transport cannot: the peer address of the socket,
the wall-clock deadline and the size of the client's connection pool.
"""

import asyncio
import io

from rich.console import Console

from fakes import MemoryStore
from fetcher import ScanFailure, as_smallint, build_client, encode_body, fetch
from root_scanner import RootScanner
from scan_config import ScanSettings
from tls_server import respond_after, respond_at_once, respond_trickling, tls_server
from work_queue import WorkQueue


async def timed_fetch(respond, timeout):
    async with tls_server(respond) as port:
        async with build_client(timeout=timeout) as client:
            loop = asyncio.get_running_loop()
            started = loop.time()
            outcome = await fetch(client, f"127.0.0.1:{port}", timeout=timeout)
            return port, outcome, loop.time() - started


def test_self_signed_server_is_recorded():
    port, outcome, _ = asyncio.run(timed_fetch(respond_at_once, timeout=5.0))

    assert outcome.success
    assert outcome.status == 200
    assert outcome.ip_addr == "127.0.0.1"
    assert outcome.port == as_smallint(port)
    assert outcome.server == "loopback"
    assert outcome.content_type == "text/plain"
    assert outcome.resulting_url == f"https://127.0.0.1:{port}/"
    assert outcome.body == encode_body("hello")


def test_trickled_body_is_cut_at_the_deadline():
    _, outcome, elapsed = asyncio.run(timed_fetch(respond_trickling(1.0), timeout=1.0))

    assert elapsed < 2.0
    assert outcome.success
    assert outcome.status == 200
    assert outcome.ip_addr == "127.0.0.1"
    assert outcome.body is None


def test_no_response_before_the_deadline_is_a_failure():
    port, outcome, elapsed = asyncio.run(timed_fetch(respond_after(5.0), timeout=1.0))

    assert elapsed < 2.0
    assert outcome == ScanFailure(f"127.0.0.1:{port}")


def test_more_workers_than_default_connection_limit():
    workers = 150
    arrived = 0
    everyone = None

    async def respond_when_all_arrived(reader, writer):
        nonlocal arrived
        arrived += 1
        if arrived >= workers:
            everyone.set()
        await everyone.wait()
        await respond_at_once(reader, writer)

    async def run():
        nonlocal everyone
        everyone = asyncio.Event()
        async with tls_server(respond_when_all_arrived) as port:
            scanner = RootScanner(
                MemoryStore(),
                settings=ScanSettings(workers=workers, timeout=10.0, poll_interval=0.05),
                console=Console(file=io.StringIO()),
            )
            return await scanner.scan(WorkQueue([f"127.0.0.1:{port}"] * workers))

    summary = asyncio.run(run())

    assert summary.failed == 0
    assert summary.succeeded == workers
