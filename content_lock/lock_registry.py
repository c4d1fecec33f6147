from datetime import datetime
from typing import Callable, Optional

from config.common_settings import ContentLockSettings
from config.database.exceptions import DatabaseError
from content_lock import ContentLock
from content_lock.expiry_sweeper import ExpirySweeper
from content_lock.outcomes import LockOutcome, LockStatus
from content_lock.repositories import ContentLockRepository, normalize_kind
from utils.date_util import get_timestamp_in_utc
from utils.logging_util import logger


class LockRegistry:
    """
    Acquire, refresh and release content locks.

    Locks are advisory at read time: acquiring never blocks the caller, it only
    reports who holds the resource. Enforcement happens in ConflictGuard.
    """

    def __init__(self, repository: ContentLockRepository, sweeper: Optional[ExpirySweeper] = None,
                 clock: Callable[[], datetime] = get_timestamp_in_utc):
        self.repository = repository
        self.clock = clock
        self.sweeper = sweeper or ExpirySweeper(repository, clock)
        self.logger = logger

    def acquire(self, entity_id: int, entity_kind: str, requester_id: int,
                settings: ContentLockSettings) -> LockOutcome:
        if settings.disabled:
            return LockOutcome(LockStatus.NO_LOCK)

        kind = normalize_kind(entity_kind)
        self.sweeper.sweep_expired(settings.duration)

        lock = self.repository.find_by_key(entity_id, kind)
        if lock is None:
            try:
                result = self.repository.insert_if_absent(entity_id, kind, requester_id, self.clock())
            except DatabaseError as e:
                self.logger.warning(f"No content lock for {kind} #{entity_id}: {str(e)}")
                return LockOutcome(LockStatus.NO_LOCK)

            if result.inserted:
                self.logger.info(f"User #{requester_id} locked {kind} #{entity_id}")
                return LockOutcome(LockStatus.ACQUIRED, result.lock)
            if result.lock is None:
                self.logger.warning(f"No lock could be stored for {kind} #{entity_id}, editing unlocked")
                return LockOutcome(LockStatus.NO_LOCK)
            lock = result.lock

        if lock.owner_id == requester_id:
            # Reopened or resubmitted edition: keep the row, move its timestamp forward
            refreshed = self.repository.refresh(lock.id, self.clock())
            if refreshed is None:
                self.logger.warning(f"Lock {lock.id} removed while being refreshed, editing unlocked")
                return LockOutcome(LockStatus.NO_LOCK)
            self.logger.debug(f"User #{requester_id} refreshed lock on {kind} #{entity_id}")
            return LockOutcome(LockStatus.SELF_ALREADY_LOCKED, refreshed)

        self.logger.info(f"User #{requester_id} opened {kind} #{entity_id} locked by user #{lock.owner_id}")
        return LockOutcome(LockStatus.HELD_BY_OTHER, lock)

    def inspect(self, entity_id: int, entity_kind: str, requester_id: int,
                settings: ContentLockSettings) -> LockOutcome:
        """Report the lock state without creating or refreshing anything (delete confirmation)."""
        if settings.disabled:
            return LockOutcome(LockStatus.NO_LOCK)

        self.sweeper.sweep_expired(settings.duration)
        lock = self.repository.find_by_key(entity_id, entity_kind)
        if lock is None:
            return LockOutcome(LockStatus.NO_LOCK)
        if lock.owner_id == requester_id:
            return LockOutcome(LockStatus.SELF_ALREADY_LOCKED, lock)
        return LockOutcome(LockStatus.HELD_BY_OTHER, lock)

    def refresh(self, entity_id: int, entity_kind: str, requester_id: int) -> Optional[ContentLock]:
        lock = self.repository.find_by_key(entity_id, entity_kind)
        if lock is None or lock.owner_id != requester_id:
            return None
        return self.repository.refresh(lock.id, self.clock())

    def release(self, entity_id: int, entity_kind: str, requester_id: int) -> bool:
        released = self.repository.delete_owned(entity_id, entity_kind, requester_id)
        if released:
            self.logger.info(f"User #{requester_id} released {normalize_kind(entity_kind)} #{entity_id}")
        return released

    def get_lock(self, entity_id: int, entity_kind: str) -> Optional[ContentLock]:
        return self.repository.find_by_key(entity_id, entity_kind)
