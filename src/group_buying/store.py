"""Atomic read-modify-write over Protean repositories.

All mutation of group orders, orders and sequence counters goes through
``AtomicStore.atomic_update``. Two disciplines are combined:

- Pessimistic: a per-record lock serializes writers within the process.
  The lock is acquired with a bounded wait; a timeout surfaces as
  ``UpdateConflict`` instead of blocking indefinitely.
- Optimistic: Protean versions every aggregate and raises
  ``ExpectedVersionError`` when a write was based on a stale snapshot
  (another process committed first). The mutation is then re-run against a
  fresh snapshot, up to ``update_attempts`` times.

A mutation that raises leaves the stored record untouched, because it only
ever touches an in-memory snapshot that is discarded on error.
"""

import threading
import time
from collections.abc import Callable
from contextlib import contextmanager

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from group_buying.config import get_settings
from group_buying.exceptions import StoreUnavailable, UpdateConflict

logger = structlog.get_logger(__name__)


class _KeyedLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class KeyedLocks:
    """Registry of one lock per record key.

    An entry exists only while some thread holds or waits for its key; the
    last one out removes it, so the registry stays as small as the set of
    records currently being written.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, _KeyedLock] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _check_out(self, key: str) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyedLock()
            entry.users += 1
            return entry.lock

    def _check_in(self, key: str) -> None:
        with self._guard:
            entry = self._locks[key]
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str, timeout: float):
        lock = self._check_out(key)
        try:
            if not lock.acquire(timeout=timeout):
                raise UpdateConflict(f"Timed out after {timeout}s waiting for {key}", key=key)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._check_in(key)


class AtomicStore:
    """Serialized access to records of one Protean aggregate type.

    Locks live in a class-level registry so that every store instance in the
    process guards the same record with the same lock.
    """

    _locks = KeyedLocks()

    def __init__(
        self,
        aggregate_cls,
        key_field: str = "id",
        lock_timeout: float | None = None,
        update_attempts: int | None = None,
        retry_backoff: float | None = None,
    ):
        settings = get_settings()
        self.aggregate_cls = aggregate_cls
        self.key_field = key_field
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.lock_timeout
        self.update_attempts = update_attempts if update_attempts is not None else settings.update_attempts
        self.retry_backoff = retry_backoff if retry_backoff is not None else settings.retry_backoff

    @property
    def repository(self):
        return current_domain.repository_for(self.aggregate_cls)

    def _lock_key(self, identifier) -> str:
        return f"{self.aggregate_cls.__name__}:{identifier}"

    # -------------------------------------------------------------------
    # Reads and writes
    # -------------------------------------------------------------------
    def get(self, identifier):
        """Load a fresh snapshot. Raises ``ObjectNotFoundError`` if missing."""
        try:
            return self.repository.get(str(identifier))
        except ObjectNotFoundError:
            raise
        except Exception as exc:
            raise StoreUnavailable(f"Failed to load {self.aggregate_cls.__name__} {identifier}") from exc

    def _write(self, record) -> None:
        try:
            self.repository.add(record)
        except (ExpectedVersionError, ValidationError):
            raise
        except Exception as exc:
            raise StoreUnavailable(f"Failed to persist {self.aggregate_cls.__name__}") from exc

    def create(self, record):
        """Persist a new record under its own lock."""
        identifier = getattr(record, self.key_field)
        with self._locks.hold(self._lock_key(identifier), self.lock_timeout):
            self._write(record)
        return record

    @contextmanager
    def exclusive(self, key: str):
        """Hold the store's lock for an arbitrary key, e.g. a natural key."""
        with self._locks.hold(self._lock_key(key), self.lock_timeout):
            yield

    def atomic_update(self, identifier, mutation: Callable, default: Callable | None = None):
        """Apply ``mutation`` to a fresh snapshot and commit it atomically.

        ``mutation`` receives the record and mutates it in place. When the
        record does not exist and ``default`` is given, ``default()`` builds
        the initial record, which is then mutated and created.

        Returns the committed record.
        """
        key = self._lock_key(identifier)

        for attempt in range(1, self.update_attempts + 1):
            with self._locks.hold(key, self.lock_timeout):
                try:
                    record = self.get(identifier)
                except ObjectNotFoundError:
                    if default is None:
                        raise
                    record = default()

                mutation(record)

                try:
                    self._write(record)
                except ExpectedVersionError:
                    logger.info(
                        "Stale snapshot, retrying update",
                        record=key,
                        attempt=attempt,
                    )
                else:
                    return record

            time.sleep(self.retry_backoff * attempt)

        raise UpdateConflict(
            f"Could not update {key} after {self.update_attempts} attempts",
            key=key,
        )
