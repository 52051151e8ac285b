"""Cross-process run exclusion via PostgreSQL advisory locks."""

from __future__ import annotations

import hashlib
import logging
import time
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)


def advisory_lock_key(name: str) -> int:
    """Map a lock name to a stable signed 64-bit key."""
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


def _try_lock(connection: Connection, key: int) -> bool:
    return bool(connection.execute(text("SELECT pg_try_advisory_lock(:key)"), {"key": key}).scalar())


@contextmanager
def run_lock(
    engine: Engine,
    name: str,
    timeout_seconds: float = 0.0,
    poll_interval_seconds: float = 1.0,
) -> Generator[bool, None, None]:
    """
    Hold the named run lock for the life of this context.

    On PostgreSQL this is a session-level advisory lock on a dedicated
    connection, so the run's own commits and rollbacks never release it.
    With timeout_seconds=0 a held lock fails at once; otherwise the lock is
    polled until the timeout expires. Other backends (SQLite in development)
    have a single writer and run unlocked.

    Raises:
        TimeoutError: if another process still holds the lock at the deadline.
    """
    if engine.dialect.name != "postgresql":
        logger.debug("Advisory locks unsupported on %s; running unlocked", engine.dialect.name)
        yield True
        return

    key = advisory_lock_key(name)
    deadline = time.monotonic() + max(timeout_seconds, 0.0)
    connection = engine.connect()
    acquired = False
    try:
        acquired = _try_lock(connection, key)
        while not acquired and time.monotonic() < deadline:
            logger.info("Run lock '%s' held elsewhere; retrying", name)
            time.sleep(max(poll_interval_seconds, 0.05))
            acquired = _try_lock(connection, key)

        if not acquired:
            raise TimeoutError(f"Run lock '{name}' (key={key}) is held by another process")

        logger.debug("Run lock '%s' acquired", name)
        yield True
    finally:
        if acquired:
            connection.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": key})
        connection.close()
