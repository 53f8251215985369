"""Seed the database with demo sites.

Run with: python -m scripts.seed
Creates three sites with courts, closed days and weekly schedules, then books a
handful of slots in the current ISO week. Skips everything if any site exists.
"""

import asyncio
from datetime import date

from sqlalchemy import func, select

from sitebook.core.database import async_session_factory, engine
from sitebook.models import Base, BookState, Site
from sitebook.schemas import BookTimeSlotRequest, SiteCreate
from sitebook.services.errors import OutOfRange
from sitebook.services.sites import create_site
from sitebook.services.slot_booking import book_time_slot

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday"]
WEEKEND = ["saturday", "sunday"]


def _schedule(weekday: tuple[int, str | None], weekend: tuple[int, str | None]) -> list[dict]:
    schedule = []
    for day in WEEKDAYS + WEEKEND:
        slots, start = weekday if day in WEEKDAYS else weekend
        schedule.append({"day_of_week": day, "number_of_time_slots": slots, "start_time": start})
    return schedule


def _holidays(year: int) -> list[date]:
    return [date(year, 1, 1), date(year, 12, 25), date(year, 12, 26)]


def _sites(year: int) -> list[dict]:
    return [
        {
            "name": "Riverside Tennis Centre",
            "closed_days": _holidays(year),
            "courts": [{"number": n} for n in range(1, 6)],
            "schedule": _schedule(weekday=(6, "08:00"), weekend=(5, "09:00")),
        },
        {
            "name": "Northgate Padel Club",
            "closed_days": _holidays(year) + [date(year, 8, 15)],
            "courts": [{"number": n} for n in range(1, 4)],
            "schedule": _schedule(weekday=(4, "16:00"), weekend=(6, "08:30")),
        },
        {
            # Closed on Sundays: no start time, so the day has no slots
            "name": "Harbour Squash Courts",
            "closed_days": _holidays(year),
            "courts": [{"number": n} for n in range(1, 5)],
            "schedule": _schedule(weekday=(7, "07:00"), weekend=(3, "10:00"))[:6]
            + [{"day_of_week": "sunday", "number_of_time_slots": 0, "start_time": None}],
        },
    ]


# (site index, day, court number, slot, state)
BOOKINGS = [
    (0, "monday", 1, 1, BookState.PAID),
    (0, "monday", 2, 1, BookState.BOOKED),
    (0, "wednesday", 1, 3, BookState.IN_PROGRESS),
    (1, "tuesday", 3, 2, BookState.BOOKED),
    (1, "saturday", 1, 1, BookState.CANCELLED),
    (2, "friday", 4, 7, BookState.PAID),
]


async def seed(today: date | None = None):
    # Create tables (in dev; production uses migrations)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    today = today or date.today()
    year, week, _ = today.isocalendar()

    async with async_session_factory() as db:
        # Check if already seeded
        if await db.scalar(select(func.count(Site.id))):
            print("Database already has sites, skipping.")
            return

        sites = [await create_site(db, SiteCreate(**data)) for data in _sites(year)]

        booked = 0
        for site_index, day, court_number, slot, state in BOOKINGS:
            site = sites[site_index]
            request = BookTimeSlotRequest(
                planned_day_id=next(pd.id for pd in site.schedule if pd.day_of_week == day),
                court_id=next(c.id for c in site.courts if c.number == court_number),
                time_slot_number=slot,
                week_number=week,
                book_state=state,
            )
            try:
                await book_time_slot(db, site.id, request, year=year)
            except OutOfRange as exc:
                print(f"  skipped {site.name} {day} court {court_number}: {exc.message}")
                continue
            booked += 1

        print(f"Seeded {len(sites)} sites:")
        for site in sites:
            print(f"  {site.name}: {len(site.courts)} courts, {len(site.closed_days)} closed days")
        print(f"  {booked} time slots booked in ISO week {week} of {year}")


if __name__ == "__main__":
    asyncio.run(seed())
