"""Site aggregate service: create, read, update and delete sites.

A site is loaded, changed and committed as a whole. Each mutating operation
runs in one explicit transaction, so court reconciliation and the schedule
update either both land or neither does.
"""

import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sitebook.core.database import unit_of_work
from sitebook.models.site import Court, PlannedDay, Site
from sitebook.models.time_slot import TimeSlot
from sitebook.schemas import (
    CourtOut,
    PlannedDayOut,
    ScheduleUpdate,
    SiteCreate,
    SiteDetailsOut,
    SitePageOut,
    SiteSummaryOut,
    SiteUpdate,
    TimeSlotOut,
)
from sitebook.services.courts import reconcile_courts
from sitebook.services.errors import NotFound, ensure_known_id
from sitebook.services.schedule import ScheduleShrinkPolicy, apply_schedule, build_planned_days
from sitebook.services.temporal import project_datetime

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


def to_details(site: Site, year: int | None = None) -> SiteDetailsOut:
    """Project a fully loaded site tree. Time slots carry their computed start."""
    schedule = []
    for pd in sorted(site.planned_days, key=lambda p: p.day_of_week.offset):
        slots = sorted(pd.time_slots, key=lambda ts: (ts.time_slot_number, ts.week_number))
        schedule.append(
            PlannedDayOut(
                id=pd.id,
                day_of_week=pd.day_of_week,
                number_of_time_slots=pd.number_of_time_slots,
                start_time=pd.start_time,
                time_slots=[
                    TimeSlotOut(
                        id=ts.id,
                        time_slot_number=ts.time_slot_number,
                        court_id=ts.court_id,
                        week_number=ts.week_number,
                        book_state=ts.book_state,
                        computed_date_time=project_datetime(
                            ts.week_number, ts.time_slot_number, pd.start_time, pd.day_of_week, year
                        ),
                    )
                    for ts in slots
                ],
            )
        )

    return SiteDetailsOut(
        id=site.id,
        name=site.name,
        revenue=site.revenue,
        closed_days=sorted(site.closed_dates),
        courts=[CourtOut.model_validate(c) for c in sorted(site.courts, key=lambda c: c.number)],
        schedule=schedule,
    )


async def _load_site_tree(db: AsyncSession, site_id: int) -> Site | None:
    result = await db.execute(
        select(Site)
        .options(
            selectinload(Site.courts),
            selectinload(Site.planned_days).selectinload(PlannedDay.time_slots),
        )
        .where(Site.id == site_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_site(db: AsyncSession, site_id: int, year: int | None = None) -> SiteDetailsOut:
    ensure_known_id("site", site_id)
    site = await _load_site_tree(db, site_id)
    if site is None:
        raise NotFound("site", site_id)
    return to_details(site, year)


def _summary_query():
    court_count = (
        select(func.count(Court.id)).where(Court.site_id == Site.id).correlate(Site).scalar_subquery().label("court_count")
    )
    return select(Site.id, Site.name, Site.revenue, Site.closed_days, court_count)


async def list_sites(db: AsyncSession) -> list[SiteSummaryOut]:
    """All sites, without their schedules. Cheap enough for list views."""
    result = await db.execute(_summary_query().order_by(Site.name, Site.id))
    return [SiteSummaryOut.model_validate(row) for row in result.all()]


async def get_site_page(
    db: AsyncSession,
    page_number: int = 1,
    page_size: int = 10,
    name: str | None = None,
) -> SitePageOut:
    """One page of site summaries, optionally filtered by a case-insensitive name fragment."""
    filters = [Site.name.icontains(name, autoescape=True)] if name else []

    total = await db.scalar(select(func.count(Site.id)).where(*filters))
    result = await db.execute(
        _summary_query()
        .where(*filters)
        .order_by(Site.name, Site.id)
        .offset((page_number - 1) * page_size)
        .limit(page_size)
    )
    return SitePageOut(
        items=[SiteSummaryOut.model_validate(row) for row in result.all()],
        total_items=total or 0,
        page_number=page_number,
        page_size=page_size,
    )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def create_site(db: AsyncSession, body: SiteCreate) -> SiteDetailsOut:
    """Create a site with its courts and all seven planned days. No time slots are created."""
    async with unit_of_work(db):
        site = Site(name=body.name)
        site.set_closed_dates(body.closed_days)
        site.courts = [Court(number=c.number) for c in sorted(body.courts, key=lambda c: c.number)]
        site.planned_days = build_planned_days(body.schedule)
        db.add(site)
        await db.flush()
        site_id = site.id

    logger.info(
        "Created site %s (%s) with %s courts and 7 planned days; time slots are created on booking",
        site_id,
        body.name,
        len(body.courts),
    )
    return await get_site(db, site_id)


async def update_site(
    db: AsyncSession,
    site_id: int,
    body: SiteUpdate,
    shrink_policy: ScheduleShrinkPolicy | None = None,
) -> SiteDetailsOut:
    """Replace name and closed days, reconcile courts and update the schedule in one transaction."""
    async with unit_of_work(db):
        ensure_known_id("site", site_id)
        site = await db.get(Site, site_id, populate_existing=True)
        if site is None:
            logger.warning("Site %s not found for update", site_id)
            raise NotFound("site", site_id)

        site.name = body.name
        site.set_closed_dates(body.closed_days)
        removed, added = await reconcile_courts(db, site, [c.number for c in body.courts])
        await apply_schedule(db, site, body.schedule, shrink_policy)

    logger.info(
        "Updated site %s: courts removed %s, added %s; schedule synchronized",
        site_id,
        removed,
        added,
    )
    return await get_site(db, site_id)


async def update_schedule(
    db: AsyncSession,
    site_id: int,
    body: ScheduleUpdate,
    shrink_policy: ScheduleShrinkPolicy | None = None,
) -> SiteDetailsOut:
    async with unit_of_work(db):
        ensure_known_id("site", site_id)
        site = await db.get(Site, site_id, populate_existing=True)
        if site is None:
            logger.warning("Site %s not found for schedule update", site_id)
            raise NotFound("site", site_id)

        await apply_schedule(db, site, body.planned_days, shrink_policy)

    logger.info("Updated schedule of site %s", site_id)
    return await get_site(db, site_id)


async def delete_site(db: AsyncSession, site_id: int) -> None:
    """Delete a site with its courts, planned days and every booking on them."""
    async with unit_of_work(db):
        ensure_known_id("site", site_id)
        if await db.scalar(select(Site.id).where(Site.id == site_id)) is None:
            logger.warning("Site %s not found for deletion", site_id)
            raise NotFound("site", site_id)

        # Children first
        court_ids = select(Court.id).where(Court.site_id == site_id)
        day_ids = select(PlannedDay.id).where(PlannedDay.site_id == site_id)
        result = await db.execute(
            delete(TimeSlot)
            .where(or_(TimeSlot.court_id.in_(court_ids), TimeSlot.planned_day_id.in_(day_ids)))
            .execution_options(synchronize_session=False)
        )
        await db.execute(delete(Court).where(Court.site_id == site_id))
        await db.execute(delete(PlannedDay).where(PlannedDay.site_id == site_id))
        await db.execute(delete(Site).where(Site.id == site_id))

    logger.info("Deleted site %s and %s time slots", site_id, result.rowcount)
