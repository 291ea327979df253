"""Period boundary tests: 7-day UTC windows anchored to a weekday (0=Sunday)."""

from datetime import date, datetime, timedelta, timezone

import pytest

from streakboard.scoring.periods import (
    PERIOD_LENGTH,
    format_period_range,
    get_current_period_boundaries,
    get_day_name,
    get_past_period_boundaries,
    get_period_boundaries,
    is_within_current_period,
    resolve_period,
    sunday_based_weekday,
    validate_period_start_day,
)

MONDAY = datetime(2026, 2, 23, 0, 0, 0, tzinfo=timezone.utc)
ONE_MS = timedelta(milliseconds=1)


class TestPeriodBoundaries:
    """Start weekday, length, and idempotence."""

    @pytest.mark.parametrize("day", range(7))
    @pytest.mark.parametrize("offset_hours", [0, 1, 13, 47, 95, 150, 167])
    def test_start_has_anchor_weekday_and_fixed_length(self, day, offset_hours):
        instant = MONDAY + timedelta(hours=offset_hours, minutes=17)
        period = get_period_boundaries(instant, day)
        assert sunday_based_weekday(period.start) == day
        assert period.start.hour == period.start.minute == period.start.second == 0
        assert period.end - period.start == PERIOD_LENGTH - ONE_MS
        assert period.start <= instant <= period.end

    @pytest.mark.parametrize("day", range(7))
    def test_idempotent_on_every_instant_inside(self, day):
        period = get_period_boundaries(datetime(2026, 6, 10, 9, 30, tzinfo=timezone.utc), day)
        for instant in (period.start, period.start + timedelta(days=3, hours=5), period.end):
            assert get_period_boundaries(instant, day) == period

    def test_monday_anchor(self):
        wednesday = datetime(2026, 2, 25, 14, 30, tzinfo=timezone.utc)
        period = get_period_boundaries(wednesday, 1)
        assert period.start == MONDAY
        assert period.end == datetime(2026, 3, 1, 23, 59, 59, 999000, tzinfo=timezone.utc)

    def test_sunday_anchor(self):
        wednesday = datetime(2026, 2, 25, 14, 30, tzinfo=timezone.utc)
        period = get_period_boundaries(wednesday, 0)
        assert period.start == datetime(2026, 2, 22, tzinfo=timezone.utc)

    def test_anchor_day_midnight_starts_new_period(self):
        before = get_period_boundaries(MONDAY - ONE_MS, 1)
        after = get_period_boundaries(MONDAY, 1)
        assert before.next() == after
        assert after.previous() == before

    def test_non_utc_instant_is_normalized(self):
        # 01:00 on Monday at +02:00 is still Sunday 23:00 UTC
        plus_two = timezone(timedelta(hours=2))
        instant = datetime(2026, 2, 23, 1, 0, tzinfo=plus_two)
        assert get_period_boundaries(instant, 1).start == MONDAY - PERIOD_LENGTH

    def test_accepts_plain_date(self):
        assert get_period_boundaries(date(2026, 2, 25), 1).start == MONDAY

    def test_naive_datetime_treated_as_utc(self):
        naive = datetime(2026, 2, 25, 14, 30)
        assert get_period_boundaries(naive, 1).start == MONDAY

    def test_year_boundary(self):
        period = get_period_boundaries(datetime(2026, 1, 1, 12, tzinfo=timezone.utc), 1)
        assert period.start == datetime(2025, 12, 29, tzinfo=timezone.utc)


class TestValidation:
    @pytest.mark.parametrize("bad", [-1, 7, 10, True, "1", 1.0, None])
    def test_invalid_anchor_rejected(self, bad):
        with pytest.raises(ValueError):
            validate_period_start_day(bad)

    def test_invalid_anchor_rejected_by_boundaries(self):
        with pytest.raises(ValueError):
            get_period_boundaries(MONDAY, 7)


class TestRelativePeriods:
    NOW = datetime(2026, 2, 25, 12, 0, tzinfo=timezone.utc)  # Wednesday

    def test_current(self):
        assert get_current_period_boundaries(1, self.NOW).start == MONDAY

    def test_past(self):
        assert get_past_period_boundaries(1, 1, self.NOW).start == MONDAY - PERIOD_LENGTH
        assert get_past_period_boundaries(1, 4, self.NOW).start == MONDAY - 4 * PERIOD_LENGTH
        assert get_past_period_boundaries(1, 0, self.NOW).start == MONDAY

    def test_is_within_current_period(self):
        assert is_within_current_period(MONDAY, 1, self.NOW)
        assert is_within_current_period(MONDAY + PERIOD_LENGTH - ONE_MS, 1, self.NOW)
        assert not is_within_current_period(MONDAY - ONE_MS, 1, self.NOW)
        assert not is_within_current_period(MONDAY + PERIOD_LENGTH, 1, self.NOW)


class TestResolvePeriod:
    NOW = datetime(2026, 2, 25, 12, 0, tzinfo=timezone.utc)

    def test_default_is_current(self):
        assert resolve_period(None, 1, self.NOW).start == MONDAY
        assert resolve_period("current", 1, self.NOW).start == MONDAY

    def test_previous(self):
        assert resolve_period("previous", 1, self.NOW).start == MONDAY - PERIOD_LENGTH

    def test_iso_date(self):
        assert resolve_period("2026-02-10", 1, self.NOW).start == datetime(2026, 2, 9, tzinfo=timezone.utc)

    def test_iso_datetime(self):
        assert resolve_period("2026-02-10T23:00:00+00:00", 1, self.NOW).start == datetime(
            2026, 2, 9, tzinfo=timezone.utc
        )

    def test_garbage_rejected(self):
        with pytest.raises(ValueError, match="Invalid period selector"):
            resolve_period("last-tuesday", 1, self.NOW)


class TestDisplay:
    def test_format_period_range(self):
        period = get_period_boundaries(MONDAY, 1)
        assert format_period_range(period.start, period.end) == "Feb 23 - Mar 1"

    def test_day_names(self):
        assert get_day_name(0) == "Sunday"
        assert get_day_name(1) == "Monday"
        assert get_day_name(6) == "Saturday"
