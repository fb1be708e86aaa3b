# Overview: Service-layer operations for concurrency; row locks, keyed locks and conflict mapping.

from __future__ import annotations

import threading
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflict, StorageError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


class KeyedLocks:
    """
    In-process mutexes keyed by (namespace, key).

    Serializes concurrent mutations of the same bill from multiple request
    threads. Acquisition is bounded by a timeout; a timeout surfaces as
    ConcurrencyConflict so the caller can retry.

    An entry lives only while some thread holds or waits for its lock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # (namespace, key) -> [lock, holders and waiters]
        self._locks: dict[tuple[str, object], list] = {}

    def _checkout(self, ident: tuple[str, object]) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(ident)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[ident] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, ident: tuple[str, object]) -> None:
        with self._guard:
            entry = self._locks[ident]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[ident]

    def active_count(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, namespace: str, key, timeout: float = 5.0):
        ident = (namespace, key)
        lock = self._checkout(ident)
        try:
            if not lock.acquire(timeout=timeout):
                raise ConcurrencyConflict(
                    f"{namespace} {key} is being modified by another request",
                    details={"namespace": namespace, "key": key, "timeout_seconds": timeout},
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(ident)


keyed_locks = KeyedLocks()


@contextmanager
def storage_errors():
    """
    Translate database failures into the domain taxonomy.

    Lock contention and optimistic-version failures become
    ConcurrencyConflict; everything else becomes StorageError.
    """
    try:
        yield
    except (OperationalError, StaleDataError) as exc:
        raise ConcurrencyConflict("Concurrent modification detected, please retry") from exc
    except SQLAlchemyError as exc:
        raise StorageError("Database error", details={"reason": exc.__class__.__name__}) from exc
