from dataclasses import dataclass
from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional

from content_lock import ContentLock


class LockStatus(str, PyEnum):
    ACQUIRED = "acquired"
    SELF_ALREADY_LOCKED = "self_already_locked"
    HELD_BY_OTHER = "held_by_other"
    # Feature disabled, or the insert race could not be recovered
    NO_LOCK = "no_lock"


class WriteAction(str, PyEnum):
    UPDATE = "update"
    DELETE = "delete"


class WriteStatus(str, PyEnum):
    ALLOW = "allow"
    ALLOW_BYPASSED = "allow_bypassed"
    DENY = "deny"


class InsertStatus(str, PyEnum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class InsertResult:
    """Tagged result of the store's insert-if-absent. `lock` is None when the winner vanished."""
    status: InsertStatus
    lock: Optional[ContentLock]

    @property
    def inserted(self) -> bool:
        return self.status == InsertStatus.INSERTED


@dataclass(frozen=True)
class LockOutcome:
    status: LockStatus
    lock: Optional[ContentLock] = None

    @property
    def owner_id(self) -> Optional[int]:
        return self.lock.owner_id if self.lock else None

    @property
    def locked_since(self) -> Optional[datetime]:
        return self.lock.created_at if self.lock else None

    @property
    def is_locked_by_other(self) -> bool:
        return self.status == LockStatus.HELD_BY_OTHER


@dataclass(frozen=True)
class WriteDecision:
    status: WriteStatus
    action: WriteAction
    # The lock as it was read at write time, before any removal
    lock: Optional[ContentLock] = None
    lock_removed: bool = False
    # False when locking is disabled and the lock was only cleaned up
    enforced: bool = True

    @property
    def allowed(self) -> bool:
        return self.status != WriteStatus.DENY

    @property
    def owner_id(self) -> Optional[int]:
        return self.lock.owner_id if self.lock else None

    @property
    def locked_since(self) -> Optional[datetime]:
        return self.lock.created_at if self.lock else None
