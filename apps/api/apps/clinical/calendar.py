"""
Clinic calendar rules: bookable days, the daily slot grid and clinic time.

BUSINESS RULES:
- The clinic is closed on Sundays and on national public holidays
- Easter Sunday and Easter Monday move every year and are derived per year
- Visits last one hour and start on the hour, from the first to the last slot
  hour inclusive (09:00 .. 19:00 by default)
- Every date and hour is interpreted in the single clinic time zone
"""
from datetime import date, datetime, time, timedelta
from functools import lru_cache

import pytz
from django.conf import settings
from django.utils import timezone


# Fixed-date public holidays as (month, day)
FIXED_PUBLIC_HOLIDAYS = (
    (1, 1),    # Capodanno
    (1, 6),    # Epifania
    (4, 25),   # Festa della Liberazione
    (5, 1),    # Festa dei Lavoratori
    (6, 2),    # Festa della Repubblica
    (8, 15),   # Ferragosto
    (11, 1),   # Ognissanti
    (12, 8),   # Immacolata Concezione
    (12, 25),  # Natale
    (12, 26),  # Santo Stefano
)

SUNDAY = 6  # date.weekday()


# ============================================================================
# Holidays
# ============================================================================

def easter_sunday(year):
    """
    Easter Sunday for ``year`` (anonymous Gregorian algorithm).

    >>> easter_sunday(2024)
    datetime.date(2024, 3, 31)
    """
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month = (h + l - 7 * m + 114) // 31
    day = ((h + l - 7 * m + 114) % 31) + 1
    return date(year, month, day)


@lru_cache(maxsize=64)
def public_holidays(year):
    """Return the frozenset of public holiday dates for ``year``."""
    easter = easter_sunday(year)
    holidays = {date(year, month, day) for month, day in FIXED_PUBLIC_HOLIDAYS}
    holidays.add(easter)
    holidays.add(easter + timedelta(days=1))
    return frozenset(holidays)


def is_public_holiday(day):
    return day in public_holidays(day.year)


def is_bookable_day(day):
    """False on Sundays and public holidays, True otherwise."""
    if day.weekday() == SUNDAY:
        return False
    return not is_public_holiday(day)


# ============================================================================
# Slot grid
# ============================================================================

def daily_slot_grid():
    """
    Ordered one-hour slot start times of a working day.

    Grid bounds come from CLINIC_FIRST_SLOT_HOUR / CLINIC_LAST_SLOT_HOUR
    (inclusive), 09:00 .. 19:00 unless configured otherwise.
    """
    first = settings.CLINIC_FIRST_SLOT_HOUR
    last = settings.CLINIC_LAST_SLOT_HOUR
    return [time(hour, 0) for hour in range(first, last + 1)]


def is_grid_slot(slot):
    return slot in daily_slot_grid()


# ============================================================================
# Clinic time
# ============================================================================

def get_clinic_timezone():
    return pytz.timezone(settings.CLINIC_TIME_ZONE)


def clinic_now():
    """Current wall-clock time in the clinic time zone."""
    return timezone.now().astimezone(get_clinic_timezone())


def clinic_today():
    return clinic_now().date()


def to_clinic_time(value):
    """Convert an aware datetime to the clinic time zone."""
    if timezone.is_naive(value):
        raise ValueError('Naive datetime given; clinic times must be timezone-aware')
    return value.astimezone(get_clinic_timezone())


def slot_datetime(day, slot):
    """Aware datetime for ``slot`` on ``day`` in the clinic time zone."""
    return get_clinic_timezone().localize(datetime.combine(day, slot))
