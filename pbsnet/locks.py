"""
Keyed locks that serialize read-modify-write updates per user.

The platform offers no version checks, so JSON merges and username claims are
run under a lock keyed by user id (or username). The in-memory registry covers
a single process; the Redis implementation coordinates several workers.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import ContextManager, Dict, Iterator, Protocol

import redis
from redis import exceptions as redis_exceptions

from pbsnet.errors import Conflict, UpstreamFailure

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "Another update is in progress, please retry"


class UserLocks(Protocol):
    """Minimal keyed-lock interface."""

    def hold(self, key: str) -> ContextManager[None]:
        ...


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


@dataclass
class InMemoryUserLocks:
    """
    Per-process lock registry backed by ``threading.Lock``.

    Entries are reference counted and dropped once nobody holds or waits on
    them, so the registry only ever contains keys that are in use.
    """

    timeout: float = 10.0
    _locks: Dict[str, _LockEntry] = field(default_factory=dict)
    _guard: threading.Lock = field(default_factory=threading.Lock)

    def _checkout(self, key: str) -> _LockEntry:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _LockEntry()
            entry.users += 1
            return entry

    def _checkin(self, key: str, entry: _LockEntry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=self.timeout):
                raise Conflict(BUSY_MESSAGE)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)


@dataclass
class RedisUserLocks:
    """Redis-backed locks shared by every API worker."""

    url: str
    prefix: str = "pbsnet:lock"
    timeout: float = 10.0

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        # The lock expires on its own if a worker dies while holding it.
        lock = self.client.lock(
            f"{self.prefix}:{key}",
            timeout=self.timeout * 3,
            blocking_timeout=self.timeout,
        )
        try:
            acquired = lock.acquire()
        except redis_exceptions.RedisError as exc:
            raise UpstreamFailure("Lock service unavailable") from exc
        if not acquired:
            raise Conflict(BUSY_MESSAGE)
        try:
            yield
        finally:
            try:
                lock.release()
            except redis_exceptions.LockError:
                # Expired before release; another worker may already hold it.
                logger.warning("Lock %s expired before release", key)
