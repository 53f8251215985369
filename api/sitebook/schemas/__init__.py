"""Pydantic schemas for API serialisation."""

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sitebook.models.site import DayOfWeek
from sitebook.models.time_slot import BookState

MAX_TIME_SLOTS_PER_DAY = 8
MAX_COURT_NUMBER = 100


def _require_full_week(days: list["PlannedDayIn"]) -> list["PlannedDayIn"]:
    if len(days) != 7 or len({d.day_of_week for d in days}) != 7:
        raise ValueError("Schedule must contain exactly 7 days (one for each day of the week) with no duplicates.")
    return days


# --- Requests ---


class CourtIn(BaseModel):
    number: int = Field(ge=1, le=MAX_COURT_NUMBER)


class PlannedDayIn(BaseModel):
    day_of_week: DayOfWeek
    number_of_time_slots: int = Field(ge=0, le=MAX_TIME_SLOTS_PER_DAY)
    start_time: time | None = None  # "HH:MM"; omitted = day not configured


class SiteCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    closed_days: list[date] = []
    courts: list[CourtIn] = []
    schedule: list[PlannedDayIn]

    @field_validator("schedule")
    @classmethod
    def _full_week(cls, v: list[PlannedDayIn]) -> list[PlannedDayIn]:
        return _require_full_week(v)

    @field_validator("courts")
    @classmethod
    def _unique_court_numbers(cls, v: list[CourtIn]) -> list[CourtIn]:
        numbers = [c.number for c in v]
        if len(numbers) != len(set(numbers)):
            raise ValueError("Court numbers must be unique within a site.")
        return v

    @field_validator("closed_days")
    @classmethod
    def _unique_closed_days(cls, v: list[date]) -> list[date]:
        if len(v) != len(set(v)):
            raise ValueError("closed_days must not contain duplicate dates.")
        return v


class SiteUpdate(SiteCreate):
    """Full replacement of a site's name, closed days, courts and schedule."""


class ScheduleUpdate(BaseModel):
    planned_days: list[PlannedDayIn]

    @field_validator("planned_days")
    @classmethod
    def _full_week(cls, v: list[PlannedDayIn]) -> list[PlannedDayIn]:
        return _require_full_week(v)


class BookTimeSlotRequest(BaseModel):
    # Ranges are checked by the booking engine against the live schedule
    planned_day_id: int
    court_id: int
    time_slot_number: int
    week_number: int
    book_state: BookState


# --- Site ---


class CourtOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    number: int


class TimeSlotOut(BaseModel):
    id: int
    time_slot_number: int
    court_id: int
    week_number: int
    book_state: BookState
    computed_date_time: datetime | None


class PlannedDayOut(BaseModel):
    id: int
    day_of_week: DayOfWeek
    number_of_time_slots: int
    start_time: time | None
    time_slots: list[TimeSlotOut]


class SiteDetailsOut(BaseModel):
    id: int
    name: str
    revenue: Decimal
    closed_days: list[date]
    courts: list[CourtOut]
    schedule: list[PlannedDayOut]


class SiteSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    revenue: Decimal
    closed_days: list[date]
    court_count: int


class SitePageOut(BaseModel):
    items: list[SiteSummaryOut]
    total_items: int
    page_number: int
    page_size: int


# --- Week grid ---


class GridSlotOut(BaseModel):
    court_id: int
    court_number: int
    time_slot_number: int
    starts_at: datetime
    ends_at: datetime
    time_slot_id: int | None  # None = never booked
    book_state: BookState | None
    is_available: bool


class GridDayOut(BaseModel):
    planned_day_id: int
    day_of_week: DayOfWeek
    date: date
    is_closed: bool
    slots: list[GridSlotOut]


class WeekGridOut(BaseModel):
    site_id: int
    site_name: str
    week_number: int
    days: list[GridDayOut]
