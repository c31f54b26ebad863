"""Per-environment deploy lease backed by SQLite.

Only one deploy run may hold an environment at a time, so that two plans
computed against mutually stale remote states never interleave their
applies.  Leases expire after ``ttl_seconds`` so a crashed holder cannot
wedge an environment forever.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_LEASES = """
CREATE TABLE IF NOT EXISTS environment_leases (
    environment TEXT PRIMARY KEY,
    holder      TEXT NOT NULL,
    acquired_at REAL NOT NULL,
    expires_at  REAL NOT NULL
);
"""


class EnvironmentLockedError(RuntimeError):
    """Raised when another run holds the environment lease."""

    def __init__(self, environment: str, holder: str) -> None:
        super().__init__(
            f"Environment {environment!r} is locked by run {holder!r}"
        )
        self.environment = environment
        self.holder = holder


class EnvironmentLock:
    """Mutually exclusive, expiring leases keyed by environment name.

    Parameters
    ----------
    db_path:
        SQLite database holding the lease table.  Shared by every process
        deploying from the same workspace.
    ttl_seconds:
        Lease lifetime.  A running deploy renews its lease as it makes
        progress, so this only has to outlast the slowest single step.
    clock:
        Wall-clock source (seconds since epoch); injectable for tests.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        ttl_seconds: float = 1800.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ttl = ttl_seconds
        self._clock = clock
        self._sleep = sleep
        with self._connect() as conn:
            conn.execute(_CREATE_LEASES)

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode; transactions are opened explicitly below.
        conn = sqlite3.connect(
            str(self._db_path), timeout=30.0, isolation_level=None,
            check_same_thread=False,
        )
        return conn

    def try_acquire(self, environment: str, holder: str) -> bool:
        """Take the lease if it is free, expired, or already ours."""
        now = self._clock()
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT holder, expires_at FROM environment_leases WHERE environment = ?",
                (environment,),
            ).fetchone()
            if row is not None and row[0] != holder and row[1] > now:
                conn.execute("ROLLBACK")
                return False
            if row is not None and row[0] != holder:
                logger.warning(
                    "Taking over expired lease on %s from %s", environment, row[0]
                )
            conn.execute(
                "INSERT OR REPLACE INTO environment_leases "
                "(environment, holder, acquired_at, expires_at) VALUES (?, ?, ?, ?)",
                (environment, holder, now, now + self._ttl),
            )
            conn.execute("COMMIT")
            return True
        finally:
            conn.close()

    def acquire(
        self,
        environment: str,
        holder: str,
        *,
        wait_seconds: float = 0.0,
        poll_seconds: float = 1.0,
    ) -> None:
        """Acquire the lease, waiting up to ``wait_seconds``.

        Raises EnvironmentLockedError if the lease is still held afterwards.
        """
        deadline = self._clock() + wait_seconds
        while not self.try_acquire(environment, holder):
            if self._clock() >= deadline:
                raise EnvironmentLockedError(environment, self.holder(environment) or "?")
            self._sleep(poll_seconds)
        logger.info("Acquired deploy lease on %s for %s", environment, holder)

    def renew(self, environment: str, holder: str) -> bool:
        """Push the lease expiry out by one TTL.

        Returns False if ``holder`` no longer owns the lease (another run
        took it over after it expired).
        """
        now = self._clock()
        conn = self._connect()
        try:
            cursor = conn.execute(
                "UPDATE environment_leases SET expires_at = ? "
                "WHERE environment = ? AND holder = ?",
                (now + self._ttl, environment, holder),
            )
            renewed = cursor.rowcount == 1
        finally:
            conn.close()
        if not renewed:
            logger.error("Lost deploy lease on %s for %s", environment, holder)
        return renewed

    def release(self, environment: str, holder: str) -> None:
        """Release the lease if ``holder`` still owns it."""
        conn = self._connect()
        try:
            conn.execute(
                "DELETE FROM environment_leases WHERE environment = ? AND holder = ?",
                (environment, holder),
            )
        finally:
            conn.close()
        logger.info("Released deploy lease on %s for %s", environment, holder)

    def holder(self, environment: str) -> str | None:
        """Return the current unexpired holder, or None."""
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT holder, expires_at FROM environment_leases WHERE environment = ?",
                (environment,),
            ).fetchone()
        finally:
            conn.close()
        if row is None or row[1] <= self._clock():
            return None
        return row[0]

    @contextmanager
    def hold(
        self, environment: str, holder: str, *, wait_seconds: float = 0.0
    ) -> Iterator[None]:
        """Context manager form of acquire/release."""
        self.acquire(environment, holder, wait_seconds=wait_seconds)
        try:
            yield
        finally:
            self.release(environment, holder)
