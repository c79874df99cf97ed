"""ScheduleService: working-hours replacement and blocked interval management."""

from datetime import datetime, time, timedelta, timezone

import pytest

from miche.core.exceptions import (
    BlockedIntervalOverlapException,
    NotFoundException,
    ProfessionalNotFoundException,
    ValidationException,
)
from miche.core.ulid_helper import generate_ulid
from miche.models import BlockedInterval, WorkingHours
from miche.services.schedule_service import ScheduleService, WorkingHoursEntry

from conftest import TUESDAY, at


@pytest.fixture
def schedule(storage):
    return ScheduleService(storage)


@pytest.fixture
def professional(seed):
    return seed.professional(user_id="pro-user")


def _weekdays(start=time(9, 0), end=time(17, 0)):
    return [WorkingHoursEntry(day, True, start, end) for day in range(5)]


class TestWorkingHours:
    def test_replace_is_a_full_swap(self, schedule, seed, professional):
        seed.working_hours(professional, 5, time(10, 0), time(14, 0))

        rows = schedule.replace_working_hours("pro-user", _weekdays())

        assert [row.weekday for row in rows] == [0, 1, 2, 3, 4]
        assert seed.count(WorkingHours, professional_id=professional.id) == 5
        assert seed.count(WorkingHours, professional_id=professional.id, weekday=5) == 0

    def test_get_returns_rows_ordered_by_weekday(self, schedule, professional):
        entries = list(reversed(_weekdays()))
        schedule.replace_working_hours("pro-user", entries)

        assert [row.weekday for row in schedule.get_working_hours("pro-user")] == [0, 1, 2, 3, 4]

    def test_day_off_may_have_any_times(self, schedule, professional):
        rows = schedule.replace_working_hours(
            "pro-user", [WorkingHoursEntry(6, False, time(0, 0), time(0, 0))]
        )

        assert rows[0].is_working is False

    @pytest.mark.parametrize(
        "entries,code",
        [
            ([WorkingHoursEntry(7, True, time(9, 0), time(17, 0))], "INVALID_WEEKDAY"),
            (
                [
                    WorkingHoursEntry(1, True, time(9, 0), time(12, 0)),
                    WorkingHoursEntry(1, True, time(13, 0), time(17, 0)),
                ],
                "DUPLICATE_WEEKDAY",
            ),
            ([WorkingHoursEntry(2, True, time(17, 0), time(9, 0))], "INVALID_TIME_RANGE"),
        ],
    )
    def test_invalid_entries(self, schedule, professional, entries, code):
        with pytest.raises(ValidationException) as exc_info:
            schedule.replace_working_hours("pro-user", entries)
        assert exc_info.value.code == code

    def test_unknown_user(self, schedule):
        with pytest.raises(ProfessionalNotFoundException):
            schedule.replace_working_hours("nobody", _weekdays())

    def test_rejected_write_falls_back(self, rejecting_storage, seed, professional):
        rows = ScheduleService(rejecting_storage).replace_working_hours("pro-user", _weekdays())

        assert len(rows) == 5
        assert seed.count(WorkingHours, professional_id=professional.id) == 5


class TestBlockedIntervals:
    def test_create_and_list_for_a_day(self, schedule, professional):
        schedule.create_blocked_interval("pro-user", at(10), at(12), reason="Lunch")
        schedule.create_blocked_interval("pro-user", at(10, day=7), at(11, day=7))

        intervals = schedule.list_blocked_intervals("pro-user", TUESDAY)

        assert len(intervals) == 1
        assert intervals[0].reason == "Lunch"

    def test_list_without_date_returns_everything(self, schedule, professional):
        schedule.create_blocked_interval("pro-user", at(10), at(12))
        schedule.create_blocked_interval("pro-user", at(10, day=7), at(11, day=7))

        assert len(schedule.list_blocked_intervals("pro-user")) == 2

    def test_offsets_are_stored_as_utc(self, schedule, seed, professional):
        minus_five = timezone(timedelta(hours=-5))
        interval = schedule.create_blocked_interval(
            "pro-user",
            datetime(2026, 1, 6, 5, 0, tzinfo=minus_five),
            datetime(2026, 1, 6, 7, 0, tzinfo=minus_five),
        )

        assert interval.start_at == at(10)
        assert interval.end_at == at(12)

    def test_overlap_is_rejected(self, schedule, professional):
        schedule.create_blocked_interval("pro-user", at(10), at(12))

        with pytest.raises(BlockedIntervalOverlapException):
            schedule.create_blocked_interval("pro-user", at(11), at(13))

    def test_touching_intervals_are_allowed(self, schedule, seed, professional):
        schedule.create_blocked_interval("pro-user", at(10), at(12))
        schedule.create_blocked_interval("pro-user", at(12), at(13))

        assert seed.count(BlockedInterval, professional_id=professional.id) == 2

    def test_end_must_follow_start(self, schedule, professional):
        with pytest.raises(ValidationException) as exc_info:
            schedule.create_blocked_interval("pro-user", at(12), at(12))
        assert exc_info.value.code == "INVALID_TIME_RANGE"

    def test_naive_datetimes_are_rejected(self, schedule, professional):
        with pytest.raises(ValidationException):
            schedule.create_blocked_interval(
                "pro-user", datetime(2026, 1, 6, 10), datetime(2026, 1, 6, 12)
            )

    def test_reason_length(self, schedule, professional):
        with pytest.raises(ValidationException):
            schedule.create_blocked_interval("pro-user", at(10), at(12), reason="x" * 256)

    def test_delete(self, schedule, seed, professional):
        interval = schedule.create_blocked_interval("pro-user", at(10), at(12))

        schedule.delete_blocked_interval("pro-user", interval.id)

        assert seed.count(BlockedInterval) == 0

    def test_cannot_delete_another_professionals_interval(self, schedule, seed, professional):
        other = seed.professional(user_id="other-user")
        interval = seed.blocked(other, at(10), at(12))

        with pytest.raises(NotFoundException):
            schedule.delete_blocked_interval("pro-user", interval.id)

        assert seed.count(BlockedInterval) == 1

    def test_delete_unknown(self, schedule, professional):
        with pytest.raises(NotFoundException):
            schedule.delete_blocked_interval("pro-user", generate_ulid())
