#!/usr/bin/env python3
"""
HTTPS probing of a single domain.

A probe is one GET to ``https://<domain>/``. Any response at all, whatever
its status code, is a ScanSuccess. Anything that prevents a response from
arriving (DNS, refused connection, timeout, TLS) is a ScanFailure with no
further detail.
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import httpx

from scan_config import DEFAULT_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)

CAPTURED_HEADERS = ("date", "server", "content-security-policy", "content-type")


@dataclass(frozen=True)
class ScanSuccess:
    """A response was obtained. Every field besides ``domain`` may be absent."""

    domain: str
    ip_addr: Optional[str] = None
    port: Optional[int] = None
    status: Optional[int] = None
    resulting_url: Optional[str] = None
    date: Optional[str] = None
    server: Optional[str] = None
    content_security_policy: Optional[str] = None
    content_type: Optional[str] = None
    body: Optional[str] = None

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True)
class ScanFailure:
    """No response could be obtained."""

    domain: str

    @property
    def success(self) -> bool:
        return False


ScanOutcome = Union[ScanSuccess, ScanFailure]


def build_client(timeout: float = DEFAULT_TIMEOUT, user_agent: str = USER_AGENT,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    Create the HTTP client shared by all workers.

    Certificate validation is off: the scan records what is served, not
    whether it is trusted. Connections are uncapped, as each worker has at
    most one request in flight, and none are kept alive.
    """
    return httpx.AsyncClient(
        headers={"User-Agent": user_agent},
        timeout=httpx.Timeout(timeout),
        limits=httpx.Limits(max_connections=None, max_keepalive_connections=0),
        verify=False,
        follow_redirects=True,
        transport=transport,
    )


def strip_nul(value: str) -> str:
    return value.replace("\x00", "")


def as_smallint(value: int) -> int:
    """Wrap an integer into the signed 16-bit range used by SMALLINT columns."""
    return ((value + 0x8000) & 0xFFFF) - 0x8000


def encode_body(text: str) -> str:
    """Base64 (standard alphabet, no padding) so arbitrary content survives a TEXT column."""
    return base64.b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def header_text(response: httpx.Response, name: str) -> Optional[str]:
    """First value of a header decoded as UTF-8, or None if absent or undecodable."""
    wanted = name.encode("ascii")
    for key, value in response.headers.raw:
        if key.lower() != wanted:
            continue
        try:
            return strip_nul(value.decode("utf-8"))
        except UnicodeDecodeError:
            return None
    return None


def peer_address(response: httpx.Response) -> Tuple[Optional[str], Optional[int]]:
    stream = response.extensions.get("network_stream")
    if stream is None:
        return None, None
    try:
        addr = stream.get_extra_info("server_addr")
    except (AttributeError, OSError):
        return None, None
    if not addr:
        return None, None
    return str(addr[0]), int(addr[1])


async def read_body(response: httpx.Response, remaining: float) -> Optional[str]:
    try:
        await asyncio.wait_for(response.aread(), max(remaining, 0.0))
        return encode_body(response.text)
    except asyncio.TimeoutError:
        logger.debug(f"Deadline reached while reading body from {response.url}")
        return None
    except (httpx.HTTPError, httpx.StreamError, UnicodeError, LookupError) as e:
        logger.debug(f"Failed to read body from {response.url}: {type(e).__name__}: {e}")
        return None


async def to_outcome(response: httpx.Response, domain: str, remaining: float = DEFAULT_TIMEOUT) -> ScanSuccess:
    """
    Convert an open streamed response into a ScanSuccess, reading the body in full.

    If the body is not complete within ``remaining`` seconds it is left out.
    """
    ip_addr, port = peer_address(response)
    headers = {name: header_text(response, name) for name in CAPTURED_HEADERS}
    body = await read_body(response, remaining)

    return ScanSuccess(
        domain=domain,
        ip_addr=ip_addr,
        port=as_smallint(port) if port is not None else None,
        status=as_smallint(response.status_code),
        resulting_url=strip_nul(str(response.url)),
        date=headers["date"],
        server=headers["server"],
        content_security_policy=headers["content-security-policy"],
        content_type=headers["content-type"],
        body=body,
    )


async def fetch(client: httpx.AsyncClient, domain: str, timeout: float = DEFAULT_TIMEOUT) -> ScanOutcome:
    """
    Probe ``https://<domain>/`` once. Never raises for network problems.

    ``timeout`` is a wall-clock deadline for the whole probe, redirects and
    body included. Running out before a response arrives is a ScanFailure;
    running out while the body is being read only drops the body.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    url = f"https://{domain}/"
    try:
        request = client.build_request("GET", url)
        response = await asyncio.wait_for(client.send(request, stream=True), timeout)
    except asyncio.TimeoutError:
        logger.debug(f"Failed to fetch {domain}: no response within {timeout}s")
        return ScanFailure(domain)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.debug(f"Failed to fetch {domain}: {type(e).__name__}: {e}")
        return ScanFailure(domain)

    try:
        return await to_outcome(response, domain, deadline - loop.time())
    finally:
        await response.aclose()
