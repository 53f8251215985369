"""Projection of (ISO week, slot ordinal) onto the wall clock.

Pure calculation module: no database, no async, no FastAPI dependencies.
Time slots only store their week number and ordinal; the absolute start time
is always re-derived from the planned day's start time through here.
All times are naive local clock times.
"""

from datetime import date, datetime, time, timedelta

from sitebook.models.site import DayOfWeek

SLOT_DURATION_MINUTES = 105
MIN_WEEK_NUMBER = 1
MAX_WEEK_NUMBER = 53


def week_monday(week_number: int, year: int | None = None) -> date:
    """Monday of ISO ``week_number`` in ``year`` (default: the current year).

    Counted as whole weeks from ISO week 1, so week 53 of a 52-week year
    lands on week 1 of the following ISO year instead of raising.
    """
    if year is None:
        year = date.today().year
    return date.fromisocalendar(year, 1, 1) + timedelta(weeks=week_number - 1)


def slot_start_offset(time_slot_number: int) -> timedelta:
    return timedelta(minutes=(time_slot_number - 1) * SLOT_DURATION_MINUTES)


def project_date(week_number: int, day_of_week: DayOfWeek, year: int | None = None) -> date:
    """Calendar date of ``day_of_week`` in ISO ``week_number``."""
    return week_monday(week_number, year) + timedelta(days=day_of_week.offset)


def project_datetime(
    week_number: int,
    time_slot_number: int,
    day_start_time: time | None,
    day_of_week: DayOfWeek,
    year: int | None = None,
) -> datetime | None:
    """Start of slot ``time_slot_number`` on ``day_of_week`` of ISO ``week_number``.

    Returns None when the day has no start time: an unconfigured day has no slot grid.
    """
    if day_start_time is None:
        return None

    day = project_date(week_number, day_of_week, year)
    return datetime.combine(day, day_start_time) + slot_start_offset(time_slot_number)


def slot_end(start: datetime) -> datetime:
    return start + timedelta(minutes=SLOT_DURATION_MINUTES)


def iso_week_of(day: date) -> int:
    return day.isocalendar().week
