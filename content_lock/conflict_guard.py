from config.common_settings import ContentLockSettings
from content_lock.exceptions import WriteConflictError
from content_lock.outcomes import WriteAction, WriteDecision, WriteStatus
from content_lock.repositories import ContentLockRepository, normalize_kind
from utils.logging_util import logger


class ConflictGuard:
    """Decide whether an update or delete may commit given the current lock on the resource."""

    def __init__(self, repository: ContentLockRepository):
        self.repository = repository
        self.logger = logger

    def check_on_write(self, entity_id: int, entity_kind: str, requester_id: int, action: WriteAction,
                       bypass: bool, settings: ContentLockSettings) -> WriteDecision:
        # No sweep here: a lock must not disappear between the edit view and the commit
        action = WriteAction(action)
        kind = normalize_kind(entity_kind)

        if settings.disabled and action == WriteAction.UPDATE:
            return WriteDecision(WriteStatus.ALLOW, action, enforced=False)

        lock = self.repository.find_by_key(entity_id, kind)
        if lock is None:
            return WriteDecision(WriteStatus.ALLOW, action)

        if settings.disabled:
            # Deleting a resource removes its lock even when locking is off, so no row is orphaned
            removed = self.repository.delete_by_id(lock.id)
            return WriteDecision(WriteStatus.ALLOW, action, lock, removed, enforced=False)

        if lock.owner_id == requester_id:
            removed = self.repository.delete_by_id(lock.id)
            self.logger.debug(f"User #{requester_id} completed {action.value} of {kind} #{entity_id}, lock removed")
            return WriteDecision(WriteStatus.ALLOW, action, lock, removed)

        if bypass:
            if action == WriteAction.DELETE:
                removed = self.repository.delete_by_id(lock.id)
                self.logger.warning(f"User #{requester_id} deleted {kind} #{entity_id} "
                                    f"locked by user #{lock.owner_id} since {lock.created_at.isoformat()}")
                return WriteDecision(WriteStatus.ALLOW_BYPASSED, action, lock, removed)
            # The owner keeps the lock and will meet the same check when saving
            self.logger.warning(f"User #{requester_id} bypassed lock on {kind} #{entity_id} "
                                f"held by user #{lock.owner_id} since {lock.created_at.isoformat()}")
            return WriteDecision(WriteStatus.ALLOW_BYPASSED, action, lock)

        self.logger.error(f"User #{requester_id} tried to {action.value} {kind} #{entity_id} "
                          f"edited by user #{lock.owner_id} since {lock.created_at.isoformat()}")
        return WriteDecision(WriteStatus.DENY, action, lock)

    def enforce(self, entity_id: int, entity_kind: str, requester_id: int, action: WriteAction,
                bypass: bool, settings: ContentLockSettings) -> WriteDecision:
        """Like check_on_write, but a denial raises WriteConflictError."""
        decision = self.check_on_write(entity_id, entity_kind, requester_id, action, bypass, settings)
        if decision.status == WriteStatus.DENY:
            raise WriteConflictError(
                entity_id=entity_id,
                entity_kind=normalize_kind(entity_kind),
                owner_id=decision.lock.owner_id,
                locked_since=decision.lock.created_at,
                action=decision.action.value
            )
        return decision
