from datetime import datetime, timedelta, timezone

import pytest

from content_lock.exceptions import InvalidFilterInput
from content_lock.expiry_sweeper import SweepMode, parse_max_age_hours, parse_owner_ids

T0 = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def aged_locks(lock_repository, users):
    """alice holds locks aged 1h, 5h and 10h; bob holds one aged 5h"""
    for entity_id, hours in ((1, 1), (2, 5), (3, 10)):
        lock_repository.insert_if_absent(entity_id, "items", users[0].id, T0 - timedelta(hours=hours))
    lock_repository.insert_if_absent(4, "media", users[1].id, T0 - timedelta(hours=5))


class TestSweepExpired:
    def test_removes_locks_older_than_duration(self, sweeper, lock_repository, aged_locks):
        removed = sweeper.sweep_expired(3 * 3600)

        assert removed == 3
        assert lock_repository.find_by_key(1, "items") is not None
        assert lock_repository.count() == 1

    @pytest.mark.parametrize("duration", [0, -10, None])
    def test_zero_duration_is_a_no_op(self, sweeper, lock_repository, aged_locks, duration):
        assert sweeper.sweep_expired(duration) == 0
        assert lock_repository.count() == 4


class TestBulkClean:
    def test_check_counts_without_removing(self, sweeper, lock_repository, aged_locks, users):
        count = sweeper.bulk_clean(3, [users[0].id], SweepMode.CHECK)

        assert count == 2
        assert lock_repository.count() == 4

    def test_clean_removes_old_locks(self, sweeper, lock_repository, aged_locks, users):
        count = sweeper.bulk_clean(3, None, SweepMode.CLEAN)

        assert count == 3
        assert lock_repository.count() == 1
        assert lock_repository.find_by_key(1, "items") is not None

    def test_clean_filters_by_owner(self, sweeper, lock_repository, aged_locks, users):
        count = sweeper.bulk_clean(3, [users[1].id], SweepMode.CLEAN)

        assert count == 1
        assert lock_repository.find_by_key(4, "media") is None
        assert lock_repository.count() == 3

    def test_clean_with_multiple_owners(self, sweeper, lock_repository, aged_locks, users):
        lock_repository.insert_if_absent(5, "items", users[2].id, T0 - timedelta(hours=5))

        count = sweeper.bulk_clean(1, [users[1].id, users[2].id], SweepMode.CLEAN)

        assert count == 2
        assert lock_repository.count() == 3

    def test_zero_hours_removes_everything(self, sweeper, lock_repository, aged_locks, users):
        lock_repository.insert_if_absent(6, "items", users[2].id, T0)

        assert sweeper.bulk_clean(0, None, SweepMode.CLEAN) == 5
        assert lock_repository.count() == 0

    def test_zero_hours_for_selected_owner(self, sweeper, lock_repository, aged_locks, users):
        assert sweeper.bulk_clean("0", [str(users[0].id)], SweepMode.CLEAN) == 3
        assert lock_repository.count() == 1

    def test_age_boundary_is_inclusive(self, sweeper, lock_repository, aged_locks):
        assert sweeper.bulk_clean(5, None, SweepMode.CHECK) == 3

    def test_fractional_hours(self, sweeper, aged_locks):
        assert sweeper.bulk_clean("0.5", None, SweepMode.CHECK) == 4

    @pytest.mark.parametrize("hours", ["invalid", "", None, -1, True, float("nan"), [3]])
    def test_invalid_hours_match_nothing(self, sweeper, lock_repository, aged_locks, hours):
        assert sweeper.bulk_clean(hours, None, SweepMode.CLEAN) == 0
        assert lock_repository.count() == 4

    @pytest.mark.parametrize("owner_ids", [["bob"], ["2", "bob"], [None]])
    def test_invalid_owner_filter_matches_nothing(self, sweeper, lock_repository, aged_locks, owner_ids):
        """A malformed owner filter must not widen the clean to every user."""
        assert sweeper.bulk_clean(1, owner_ids, SweepMode.CLEAN) == 0
        assert sweeper.bulk_clean(0, owner_ids, SweepMode.CHECK) == 0
        assert lock_repository.count() == 4

    def test_mode_accepts_plain_string(self, sweeper, lock_repository, aged_locks):
        assert sweeper.bulk_clean(3, None, "check") == 3
        assert lock_repository.count() == 4

    def test_tolerates_orphaned_rows(self, sweeper, lock_repository, users):
        """Locks on resources that no longer exist are swept like any other."""
        lock_repository.insert_if_absent(123456, "items", users[0].id, T0 - timedelta(hours=30))

        assert sweeper.bulk_clean(24, None, SweepMode.CLEAN) == 1


class TestParsing:
    @pytest.mark.parametrize("value,expected", [(3, 3.0), ("3", 3.0), (" 2.5 ", 2.5), (0, 0.0), ("0", 0.0)])
    def test_parse_max_age_hours(self, value, expected):
        assert parse_max_age_hours(value) == expected

    @pytest.mark.parametrize("value", ["abc", "", None, -0.5, False, float("inf")])
    def test_parse_max_age_hours_rejects(self, value):
        with pytest.raises(InvalidFilterInput):
            parse_max_age_hours(value)

    def test_parse_owner_ids(self):
        assert parse_owner_ids(None) == []
        assert parse_owner_ids([]) == []
        assert parse_owner_ids(["2", 3]) == [2, 3]
        assert parse_owner_ids(4) == [4]
        assert parse_owner_ids("5") == [5]

    @pytest.mark.parametrize("value", [["bob"], ["2", "x"], [None], [True], "bob", [""]])
    def test_parse_owner_ids_rejects(self, value):
        with pytest.raises(InvalidFilterInput) as exc_info:
            parse_owner_ids(value)
        assert exc_info.value.field == "owner id"
