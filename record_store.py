#!/usr/bin/env python3
"""
PostgreSQL persistence for scan outcomes.

Rows are keyed by domain and only ever inserted: a second write for a
domain that already has a row is silently ignored, so the first outcome
recorded for a domain wins.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

import psycopg
from psycopg_pool import AsyncConnectionPool

from fetcher import ScanOutcome, ScanSuccess

logger = logging.getLogger(__name__)

CREATE_TABLE = """
    CREATE TABLE IF NOT EXISTS root_documents (
        domain                  TEXT PRIMARY KEY,
        ip_addr                 TEXT,
        port                    SMALLINT,
        req_num                 SERIAL,
        success                 BOOL NOT NULL,
        date                    TEXT,
        status                  SMALLINT,
        resulting_url           TEXT,
        server                  TEXT,
        content_security_policy TEXT,
        content_type            TEXT,
        body                    TEXT
    )
"""

INSERT_SUCCESS = """
    INSERT INTO root_documents (
        domain, ip_addr, port, success, date, status, resulting_url,
        server, content_security_policy, content_type, body
    )
    VALUES (%s, %s, %s, true, %s, %s, %s, %s, %s, %s, %s)
    ON CONFLICT (domain) DO NOTHING
"""

INSERT_FAILURE = """
    INSERT INTO root_documents (domain, success)
    VALUES (%s, false)
    ON CONFLICT (domain) DO NOTHING
"""


@dataclass(frozen=True)
class Stored:
    """The write reached the database. ``inserted`` is False if a row already existed."""

    domain: str
    inserted: bool = True


@dataclass(frozen=True)
class Dropped:
    """The write failed and the outcome was discarded."""

    domain: str
    reason: str


StoreResult = Union[Stored, Dropped]


def outcome_params(outcome: ScanOutcome) -> tuple:
    if isinstance(outcome, ScanSuccess):
        return (
            outcome.domain,
            outcome.ip_addr,
            outcome.port,
            outcome.date,
            outcome.status,
            outcome.resulting_url,
            outcome.server,
            outcome.content_security_policy,
            outcome.content_type,
            outcome.body,
        )
    return (outcome.domain,)


class RecordStore:
    """
    Idempotent writer for the ``root_documents`` table.

    Each ``store()`` call borrows a connection from the pool for a single
    statement and returns it straight away, so any number of workers can
    share one instance.

    Args:
        pool (AsyncConnectionPool): psycopg async connection pool
    """

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    @classmethod
    def from_conninfo(cls, conninfo: str, max_size: int) -> "RecordStore":
        pool = AsyncConnectionPool(conninfo, min_size=1, max_size=max(1, max_size), open=False)
        return cls(pool)

    async def open(self, timeout: float = 30.0):
        """Open the pool and make sure the table exists. Errors here are fatal to the caller."""
        await self.pool.open(wait=True, timeout=timeout)
        await self.ensure_schema()

    async def close(self):
        await self.pool.close()

    async def ensure_schema(self):
        async with self.pool.connection() as conn:
            await conn.execute(CREATE_TABLE)
        logger.info("Table root_documents is ready")

    async def store(self, outcome: ScanOutcome, worker_id: Optional[int] = None) -> StoreResult:
        """Insert one outcome, ignoring conflicts. Database errors are logged, not raised."""
        query = INSERT_SUCCESS if outcome.success else INSERT_FAILURE
        try:
            async with self.pool.connection() as conn:
                cursor = await conn.execute(query, outcome_params(outcome))
                inserted = cursor.rowcount != 0
        except psycopg.Error as e:
            kind = "success" if outcome.success else "fail"
            reason = f"{type(e).__name__}: {e}"
            logger.error(f"Worker[{worker_id}]: Failed to insert {kind} case for {outcome.domain}: {reason}")
            return Dropped(outcome.domain, reason)

        return Stored(outcome.domain, inserted)
