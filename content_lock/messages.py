from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Callable, Optional

from content_lock import ContentLock
from content_lock.exceptions import WriteConflictError
from content_lock.outcomes import LockOutcome, LockStatus, WriteAction, WriteDecision, WriteStatus
from utils.date_util import format_long_date

LOCKED_BY_OTHER = ("This content is being edited by the user {user_name} and is therefore locked to prevent "
                   "other users changes. This lock is in place since {date}.")
SELF_LOCKED_ON_EDIT = "You edit already this resource somewhere since {date}."
SELF_LOCKED_ON_DELETE_CONFIRM = "You edit this resource somewhere since {date}."
BYPASSED_ON_UPDATE = ("The lock in place since {date} has been bypassed, but the user {user_name} "
                      "can override it on save.")
OWNER_DELETED = "You removed the resource you are editing somewhere since {date}."
BYPASSED_ON_DELETE = "You removed a resource currently locked in edition by {user_name} since {date}."
BYPASS_LABEL = "Bypass the lock"


class NoticeLevel(str, PyEnum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    text: str


def default_user_name(user_id: int) -> str:
    return f"#{user_id}"


class MessageRenderer:
    """Turns lock outcomes into the notices the host shows to the user."""

    def __init__(self, user_names: Callable[[int], str] = default_user_name):
        self.user_names = user_names

    def _format(self, template: str, lock: ContentLock) -> str:
        return template.format(user_name=self.user_names(lock.owner_id), date=format_long_date(lock.created_at))

    def for_edit_view(self, outcome: LockOutcome, is_post: bool = False) -> Optional[Notice]:
        if outcome.status == LockStatus.SELF_ALREADY_LOCKED:
            return Notice(NoticeLevel.WARNING, self._format(SELF_LOCKED_ON_EDIT, outcome.lock))
        if outcome.status == LockStatus.HELD_BY_OTHER:
            # A resubmitted form that still hits the lock is an error, a first display only a warning
            level = NoticeLevel.ERROR if is_post else NoticeLevel.WARNING
            return Notice(level, self._format(LOCKED_BY_OTHER, outcome.lock))
        return None

    def for_delete_confirm(self, outcome: LockOutcome) -> Optional[Notice]:
        if outcome.status == LockStatus.SELF_ALREADY_LOCKED:
            return Notice(NoticeLevel.WARNING, self._format(SELF_LOCKED_ON_DELETE_CONFIRM, outcome.lock))
        if outcome.status == LockStatus.HELD_BY_OTHER:
            return Notice(NoticeLevel.ERROR, self._format(LOCKED_BY_OTHER, outcome.lock))
        return None

    def for_write(self, decision: WriteDecision, requester_id: int) -> Optional[Notice]:
        if decision.lock is None or not decision.enforced:
            return None
        if decision.status == WriteStatus.ALLOW_BYPASSED:
            template = BYPASSED_ON_DELETE if decision.action == WriteAction.DELETE else BYPASSED_ON_UPDATE
            return Notice(NoticeLevel.WARNING, self._format(template, decision.lock))
        if (decision.status == WriteStatus.ALLOW and decision.action == WriteAction.DELETE
                and decision.lock.owner_id == requester_id):
            return Notice(NoticeLevel.WARNING, self._format(OWNER_DELETED, decision.lock))
        return None

    def for_conflict(self, error: WriteConflictError) -> Notice:
        return Notice(NoticeLevel.ERROR, LOCKED_BY_OTHER.format(
            user_name=self.user_names(error.owner_id),
            date=format_long_date(error.locked_since)
        ))
