from dataclasses import dataclass, field
from typing import Callable, Dict, List

from config.common_settings import ContentLockSettings
from content_lock.conflict_guard import ConflictGuard
from content_lock.exceptions import WriteConflictError
from content_lock.lock_registry import LockRegistry
from content_lock.messages import MessageRenderer, Notice, default_user_name
from content_lock.outcomes import LockOutcome, WriteAction, WriteDecision

EDIT_VIEW = "view.edit.before"
DELETE_CONFIRM = "view.delete_confirm.before"
UPDATE_COMMIT = "write.update.before"
DELETE_COMMIT = "write.delete.before"


@dataclass
class ViewLockState:
    outcome: LockOutcome
    notices: List[Notice] = field(default_factory=list)

    @property
    def offer_bypass(self) -> bool:
        """The host renders a bypass control wired to the write's bypass flag."""
        return self.outcome.is_locked_by_other


@dataclass
class WriteLockState:
    decision: WriteDecision
    notices: List[Notice] = field(default_factory=list)


class ContentLockHooks:
    """
    Entry points the host calls around its edit views and CRUD commits.

    Settings are read through settings_provider on every call so an admin
    toggle takes effect without restarting the host.

    The commit hooks remove the lock before the host's own write commits.
    """

    def __init__(self, registry: LockRegistry, guard: ConflictGuard,
                 settings_provider: Callable[[], ContentLockSettings],
                 user_names: Callable[[int], str] = default_user_name):
        self.registry = registry
        self.guard = guard
        self.settings_provider = settings_provider
        self.renderer = MessageRenderer(user_names)

    def before_edit_view(self, entity_id: int, entity_kind: str, user_id: int,
                         is_post: bool = False) -> ViewLockState:
        outcome = self.registry.acquire(entity_id, entity_kind, user_id, self.settings_provider())
        notice = self.renderer.for_edit_view(outcome, is_post)
        return ViewLockState(outcome, [notice] if notice else [])

    def before_delete_confirm(self, entity_id: int, entity_kind: str, user_id: int) -> ViewLockState:
        outcome = self.registry.inspect(entity_id, entity_kind, user_id, self.settings_provider())
        notice = self.renderer.for_delete_confirm(outcome)
        return ViewLockState(outcome, [notice] if notice else [])

    def before_commit_update(self, entity_id: int, entity_kind: str, user_id: int,
                             bypass: bool = False) -> WriteLockState:
        """
        Check an update before the host commits it.

        The owner's lock is removed here, in its own transaction, not in the host's
        write. A write that fails validation afterwards leaves the resource unlocked;
        hosts that need the lock back call before_edit_view again when redisplaying the form.
        """
        return self._before_commit(entity_id, entity_kind, user_id, WriteAction.UPDATE, bypass)

    def before_commit_delete(self, entity_id: int, entity_kind: str, user_id: int,
                             bypass: bool = False) -> WriteLockState:
        return self._before_commit(entity_id, entity_kind, user_id, WriteAction.DELETE, bypass)

    def _before_commit(self, entity_id: int, entity_kind: str, user_id: int, action: WriteAction,
                       bypass: bool) -> WriteLockState:
        # WriteConflictError propagates: the host must abort the whole write
        decision = self.guard.enforce(entity_id, entity_kind, user_id, action, bypass, self.settings_provider())
        notice = self.renderer.for_write(decision, user_id)
        return WriteLockState(decision, [notice] if notice else [])

    def conflict_notice(self, error: WriteConflictError) -> Notice:
        return self.renderer.for_conflict(error)

    def handlers(self) -> Dict[str, Callable]:
        """Event name to handler, for hosts that register listeners by name."""
        return {
            EDIT_VIEW: self.before_edit_view,
            DELETE_CONFIRM: self.before_delete_confirm,
            UPDATE_COMMIT: self.before_commit_update,
            DELETE_COMMIT: self.before_commit_delete,
        }
