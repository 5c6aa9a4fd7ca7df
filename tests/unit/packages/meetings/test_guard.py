from datetime import datetime, timedelta, timezone

import pytest

from packages.meetings import guard
from packages.meetings.models.domain.meeting import Meeting, MeetingWarning

START = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def make_meeting(**kwargs) -> Meeting:
    fields = dict(id=1, user_id=1, started_at=START, created_at=START)
    fields.update(kwargs)
    return Meeting(**fields)


class TestExpiry:
    def test_open_meeting_before_cap(self):
        meeting = make_meeting()

        assert not guard.is_expired(meeting, 20, START + timedelta(minutes=19, seconds=59))

    def test_open_meeting_at_cap(self):
        assert guard.is_expired(make_meeting(), 20, START + timedelta(minutes=20))

    def test_closed_meeting_never_expires(self):
        meeting = make_meeting(ended_at=START + timedelta(minutes=5), duration_minutes=5)

        assert not guard.is_expired(meeting, 20, START + timedelta(hours=3))

    def test_remaining_never_negative(self):
        assert guard.remaining_seconds(make_meeting(), 20, START + timedelta(hours=1)) == 0


class TestDueWarnings:
    def test_nothing_due_early(self):
        assert guard.due_warnings(make_meeting(), 20, START + timedelta(minutes=10)) == []

    def test_five_minute_warning(self):
        due = guard.due_warnings(make_meeting(), 20, START + timedelta(minutes=15))

        assert due == [MeetingWarning.FIVE_MINUTES]

    def test_both_due_when_poll_was_late(self):
        due = guard.due_warnings(make_meeting(), 20, START + timedelta(minutes=19, seconds=30))

        assert due == [MeetingWarning.FIVE_MINUTES, MeetingWarning.ONE_MINUTE]

    def test_fired_warning_not_repeated(self):
        meeting = make_meeting(five_minute_warning_at=START + timedelta(minutes=15))

        due = guard.due_warnings(meeting, 20, START + timedelta(minutes=19, seconds=30))

        assert due == [MeetingWarning.ONE_MINUTE]

    def test_expired_meeting_gets_no_warnings(self):
        assert guard.due_warnings(make_meeting(), 20, START + timedelta(minutes=21)) == []


@pytest.mark.parametrize(
    "seconds,expected",
    [(0, 0), (29, 0), (30, 1), (89 * 60 + 29, 89), (89 * 60 + 30, 90), (5400, 90)],
)
def test_duration_rounds_half_up(seconds, expected):
    assert guard.compute_duration_minutes(START, START + timedelta(seconds=seconds)) == expected


def test_duration_clock_skew_is_zero():
    assert guard.compute_duration_minutes(START, START - timedelta(minutes=1)) == 0


class TestTimerStatus:
    def test_warning_from_eighty_percent(self):
        status = guard.timer_status(make_meeting(), 20, START + timedelta(minutes=16))

        assert status.is_open
        assert status.elapsed_seconds == 960
        assert status.remaining_seconds == 240
        assert status.percent_elapsed == 80.0
        assert status.warning
        assert not status.expired
        assert status.due_warnings == [MeetingWarning.FIVE_MINUTES]

    def test_closed_meeting_timer_is_frozen(self):
        meeting = make_meeting(ended_at=START + timedelta(minutes=10), duration_minutes=10)

        status = guard.timer_status(meeting, 20, START + timedelta(hours=2))

        assert not status.is_open
        assert status.elapsed_seconds == 600
        assert status.percent_elapsed == 50.0
        assert not status.expired
