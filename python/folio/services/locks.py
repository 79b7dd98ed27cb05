"""Per-(space, slug) publish locks.

Publishing one slug is serialized inside the process by a keyed lock, and
across processes by the FOR UPDATE lock on the publication slot row. The
keyed lock spans staging and commit; publishes of unrelated slugs never
contend.

Callers must take the keyed lock before touching the database in the same
session, so a thread never waits on the lock while holding a database write
lock another holder needs.
"""

import threading
from collections.abc import Generator, Hashable
from contextlib import contextmanager

from folio.errors import ApiErrorCode, ConflictError
from folio.logging import get_logger

logger = get_logger(__name__)


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class PublishLockRegistry:
    """Keyed mutexes created on demand and dropped when unused."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    @contextmanager
    def hold(self, key: Hashable, timeout: float | None = None) -> Generator[None, None, None]:
        """Hold the lock for key for the duration of the block.

        Raises:
            ConflictError: If the lock is not acquired within timeout seconds.
        """
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.holders += 1

        acquired = entry.lock.acquire(timeout=-1 if timeout is None else timeout)
        try:
            if not acquired:
                logger.warning("publish_lock_timeout", key=str(key), timeout=timeout)
                raise ConflictError(
                    ApiErrorCode.E_PUBLISH_CONFLICT, "Another publish of this slug is in progress"
                )
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


# Process-wide registry used when no registry is injected.
publish_locks = PublishLockRegistry()
