"""Week grid: a site's weekly template laid out for one ISO week.

Every (day, slot, court) cell of the configured schedule is listed, whether or
not a time slot row exists for it yet. Cells with a row carry its state.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sitebook.models.site import PlannedDay, Site
from sitebook.models.time_slot import BookState, TimeSlot
from sitebook.schemas import GridDayOut, GridSlotOut, WeekGridOut
from sitebook.services.errors import NotFound, OutOfRange, ensure_known_id
from sitebook.services.temporal import MAX_WEEK_NUMBER, MIN_WEEK_NUMBER, project_date, project_datetime, slot_end


async def build_week_grid(db: AsyncSession, site_id: int, week_number: int, year: int | None = None) -> WeekGridOut:
    if not MIN_WEEK_NUMBER <= week_number <= MAX_WEEK_NUMBER:
        raise OutOfRange("week_number", f"Week number must be between {MIN_WEEK_NUMBER} and {MAX_WEEK_NUMBER}.")

    ensure_known_id("site", site_id)
    site = await db.get(Site, site_id, populate_existing=True)
    if site is None:
        raise NotFound("site", site_id)

    result = await db.execute(
        select(TimeSlot)
        .join(PlannedDay, TimeSlot.planned_day_id == PlannedDay.id)
        .where(PlannedDay.site_id == site_id, TimeSlot.week_number == week_number)
    )
    booked = {(ts.planned_day_id, ts.court_id, ts.time_slot_number): ts for ts in result.scalars().all()}
    closed = site.closed_dates

    days: list[GridDayOut] = []
    for planned_day in sorted(site.planned_days, key=lambda pd: pd.day_of_week.offset):
        if planned_day.start_time is None:
            continue

        day = project_date(week_number, planned_day.day_of_week, year)
        is_closed = day in closed

        slots: list[GridSlotOut] = []
        for number in range(1, planned_day.number_of_time_slots + 1):
            starts_at = project_datetime(week_number, number, planned_day.start_time, planned_day.day_of_week, year)
            for court in site.courts:
                ts = booked.get((planned_day.id, court.id, number))
                slots.append(
                    GridSlotOut(
                        court_id=court.id,
                        court_number=court.number,
                        time_slot_number=number,
                        starts_at=starts_at,
                        ends_at=slot_end(starts_at),
                        time_slot_id=ts.id if ts else None,
                        book_state=ts.book_state if ts else None,
                        is_available=not is_closed and (ts is None or ts.book_state == BookState.CANCELLED),
                    )
                )

        days.append(
            GridDayOut(
                planned_day_id=planned_day.id,
                day_of_week=planned_day.day_of_week,
                date=day,
                is_closed=is_closed,
                slots=slots,
            )
        )

    return WeekGridOut(site_id=site.id, site_name=site.name, week_number=week_number, days=days)
