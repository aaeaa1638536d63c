# Overview: Retry handling for storage writes and per-sale serialisation of ledger mutations.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, on_retry=None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locked database, dropped connection) and
    StaleDataError. on_retry is called before each new attempt, typically to
    roll back the session.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            if on_retry is not None:
                on_retry()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


class SaleLocks:
    """
    Registry of re-entrant locks keyed by sale id.

    Every ledger mutation for a sale holds that sale's lock, so two requests
    touching the same sale never interleave their read-recompute-write steps.
    Re-entrant because recompute_totals calls recompute_payment_status while
    already holding the lock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[int, threading.RLock] = {}

    def _lock_for(self, sale_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(sale_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[sale_id] = lock
            return lock

    @contextmanager
    def hold(self, sale_id: int):
        lock = self._lock_for(int(sale_id))
        with lock:
            yield

    def discard(self, sale_id: int) -> None:
        with self._guard:
            self._locks.pop(int(sale_id), None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
