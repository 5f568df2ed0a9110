"""
Tests for the clinic calendar: closed days, Easter, slot grid, clinic time.
"""
from datetime import date, datetime, time, timedelta

import pytest
import pytz
from dateutil.easter import easter

from apps.clinical import calendar


class TestEaster:

    @pytest.mark.parametrize('year,expected', [
        (2024, date(2024, 3, 31)),
        (2025, date(2025, 4, 20)),
        (2026, date(2026, 4, 5)),
        (2019, date(2019, 4, 21)),
    ])
    def test_easter_sunday(self, year, expected):
        assert calendar.easter_sunday(year) == expected

    def test_easter_monday_is_holiday(self):
        assert calendar.is_public_holiday(date(2025, 4, 21))
        assert not calendar.is_bookable_day(date(2025, 4, 21))

    def test_holidays_recomputed_per_year(self):
        assert date(2024, 4, 1) in calendar.public_holidays(2024)
        assert date(2024, 4, 1) not in calendar.public_holidays(2025)

    def test_matches_dateutil_across_centuries(self):
        for year in range(1900, 2200):
            sunday = easter(year)
            assert calendar.easter_sunday(year) == sunday, year
            assert not calendar.is_bookable_day(sunday), year
            assert not calendar.is_bookable_day(sunday + timedelta(days=1)), year


class TestBookableDays:

    def test_sunday_closed(self):
        assert not calendar.is_bookable_day(date(2025, 3, 2))

    def test_every_sunday_of_a_decade_closed(self):
        day = date(2020, 1, 5)
        while day.year < 2030:
            assert day.weekday() == 6
            assert not calendar.is_bookable_day(day), day
            day += timedelta(days=7)

    def test_saturday_open(self):
        assert calendar.is_bookable_day(date(2025, 3, 8))

    def test_weekday_open(self):
        assert calendar.is_bookable_day(date(2025, 3, 4))

    @pytest.mark.parametrize('day', [
        date(2025, 1, 1),
        date(2025, 1, 6),
        date(2025, 4, 25),
        date(2025, 5, 1),
        date(2025, 6, 2),
        date(2025, 8, 15),
        date(2025, 11, 1),
        date(2025, 12, 8),
        date(2025, 12, 25),
        date(2025, 12, 26),
    ])
    def test_fixed_holidays_closed(self, day):
        assert not calendar.is_bookable_day(day)


class TestSlotGrid:

    def test_default_grid_is_hourly_nine_to_nineteen(self):
        grid = calendar.daily_slot_grid()

        assert grid[0] == time(9, 0)
        assert grid[-1] == time(19, 0)
        assert len(grid) == 11
        assert grid == sorted(grid)

    def test_grid_follows_settings(self, settings):
        settings.CLINIC_FIRST_SLOT_HOUR = 10
        settings.CLINIC_LAST_SLOT_HOUR = 12

        assert calendar.daily_slot_grid() == [time(10, 0), time(11, 0), time(12, 0)]

    def test_is_grid_slot(self):
        assert calendar.is_grid_slot(time(9, 0))
        assert not calendar.is_grid_slot(time(9, 30))
        assert not calendar.is_grid_slot(time(20, 0))
        assert not calendar.is_grid_slot(time(8, 0))


class TestClinicTime:

    def test_to_clinic_time_converts_utc(self):
        utc_value = pytz.utc.localize(datetime(2025, 3, 4, 9, 0))

        local = calendar.to_clinic_time(utc_value)

        assert local.hour == 10  # Europe/Rome is UTC+1 in March before DST
        assert local.date() == date(2025, 3, 4)

    def test_to_clinic_time_rejects_naive(self):
        with pytest.raises(ValueError):
            calendar.to_clinic_time(datetime(2025, 3, 4, 9, 0))

    def test_slot_datetime_is_aware_in_clinic_zone(self):
        value = calendar.slot_datetime(date(2025, 7, 1), time(9, 0))

        assert value.utcoffset().total_seconds() == 2 * 3600  # CEST
        assert calendar.to_clinic_time(value).time() == time(9, 0)
