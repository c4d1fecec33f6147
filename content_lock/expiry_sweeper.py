import math
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Callable, Iterable, List, Optional

from content_lock.exceptions import InvalidFilterInput
from content_lock.repositories import ContentLockRepository
from utils.date_util import get_timestamp_in_utc, seconds_ago
from utils.logging_util import logger

SECONDS_PER_HOUR = 3600


class SweepMode(str, PyEnum):
    CHECK = "check"
    CLEAN = "clean"


def parse_max_age_hours(value: Any) -> float:
    """Accept ints, floats and numeric strings; anything else is InvalidFilterInput."""
    if value is None or isinstance(value, bool):
        raise InvalidFilterInput(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise InvalidFilterInput(value)
    try:
        hours = float(value)
    except (TypeError, ValueError):
        raise InvalidFilterInput(value)
    if math.isnan(hours) or math.isinf(hours) or hours < 0:
        raise InvalidFilterInput(value)
    return hours


def parse_owner_ids(values: Optional[Iterable[Any]]) -> List[int]:
    """
    An empty filter means every owner, so a single malformed id rejects the whole
    filter instead of being dropped.
    """
    if values is None:
        return []
    if isinstance(values, (str, int)):
        values = [values]
    owner_ids = []
    for value in values:
        if isinstance(value, bool):
            raise InvalidFilterInput(value, "owner id")
        try:
            owner_ids.append(int(value))
        except (TypeError, ValueError):
            raise InvalidFilterInput(value, "owner id")
    return owner_ids


class ExpirySweeper:
    def __init__(self, repository: ContentLockRepository, clock: Callable[[], datetime] = get_timestamp_in_utc):
        self.repository = repository
        self.clock = clock
        self.logger = logger

    def sweep_expired(self, max_age_seconds: int) -> int:
        """Remove every lock older than max_age_seconds. A zero or negative age keeps all locks."""
        if not max_age_seconds or max_age_seconds <= 0:
            return 0
        cutoff = seconds_ago(self.clock(), max_age_seconds)
        removed = self.repository.delete_older_than(cutoff)
        if removed:
            self.logger.info(f"Removed {removed} expired content locks (created before {cutoff.isoformat()})")
        return removed

    def bulk_clean(self, max_age_hours: Any, owner_ids: Optional[Iterable[Any]] = None,
                   mode: SweepMode = SweepMode.CHECK) -> int:
        """
        Count (check) or remove (clean) locks at least max_age_hours old.

        Zero hours matches every lock. When owner_ids is given, only their locks match.
        A malformed age or owner id matches nothing.
        """
        mode = SweepMode(mode)
        try:
            hours = parse_max_age_hours(max_age_hours)
            owners = parse_owner_ids(owner_ids)
        except InvalidFilterInput as e:
            self.logger.warning(f"{e.message}; no content lock matched")
            return 0

        cutoff = None if hours == 0 else seconds_ago(self.clock(), hours * SECONDS_PER_HOUR)
        scope = f" for users {owners}" if owners else ""

        if mode == SweepMode.CHECK:
            count = self.repository.count_matching(cutoff, owners)
            self.logger.info(f"{count} content locks older than {hours:g} hours{scope}")
            return count

        count = self.repository.delete_matching(cutoff, owners)
        self.logger.info(f"{count} content locks older than {hours:g} hours{scope} removed")
        return count
