"""
SQLite-backed run lock.

Holding an EXCLUSIVE transaction on a small SQLite file serializes whole
ingestion runs across processes on one host and across threads in one
process. SQLite's busy timeout gives the bounded wait: a second run waits
up to `timeout` seconds and then fails with LockBusy.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from loguru import logger
from ..errors import IngestionError, LockBusy


class SQLiteRunLock:
    """
    Mutual-exclusion lock for ingestion runs.

    Usage:
        lock = SQLiteRunLock("ingest.lock", timeout=10)
        with lock.held():
            ...  # only one run at a time gets here
    """

    def __init__(self, lock_path: str = "ingest.lock", timeout: float = 10.0):
        """
        Args:
            lock_path: SQLite file used as the lock (created on demand)
            timeout: Seconds to wait for another holder before giving up
        """
        self.lock_path = lock_path
        self.timeout = timeout

    def acquire(self) -> sqlite3.Connection:
        """
        Take the lock.

        Returns:
            The connection holding the exclusive transaction; pass it to release()

        Raises:
            LockBusy: another run held the lock for longer than the timeout
        """
        Path(self.lock_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.lock_path, timeout=self.timeout, isolation_level=None)
        try:
            conn.execute("BEGIN EXCLUSIVE")
        except sqlite3.OperationalError as e:
            conn.close()
            if "locked" not in str(e):
                raise IngestionError(f"Could not open lock file {self.lock_path}: {e}", stage="lock")
            raise LockBusy(
                f"Ingestion lock busy: another run did not finish within {self.timeout:g}s"
            )
        logger.debug("Run lock acquired", lock_path=self.lock_path)
        return conn

    def release(self, conn: sqlite3.Connection) -> None:
        try:
            conn.execute("ROLLBACK")
        finally:
            conn.close()
        logger.debug("Run lock released", lock_path=self.lock_path)

    @contextmanager
    def held(self) -> Iterator[None]:
        conn = self.acquire()
        try:
            yield
        finally:
            self.release(conn)
