"""Weekly schedule template: one planned day per day of the week.

Planned days are created in bulk with the site and afterwards only edited in
place. Editing never creates or deletes time slots by itself; what happens to
bookings that fall outside a shrunk day is decided by ScheduleShrinkPolicy.
"""

import enum
import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sitebook.core.config import settings
from sitebook.models.site import PlannedDay, Site
from sitebook.models.time_slot import BookState, TimeSlot
from sitebook.schemas import PlannedDayIn
from sitebook.services.errors import ScheduleConflict

logger = logging.getLogger(__name__)


class ScheduleShrinkPolicy(enum.StrEnum):
    """What to do with booked slots above a planned day's new slot count."""

    PRESERVE = "preserve"  # keep them readable, new bookings there are rejected
    REJECT = "reject"  # refuse the schedule change while such bookings exist
    CANCEL = "cancel"  # keep the rows but mark them cancelled


def configured_shrink_policy() -> ScheduleShrinkPolicy:
    return ScheduleShrinkPolicy(settings.schedule_shrink_policy)


def build_planned_days(schedule: list[PlannedDayIn]) -> list[PlannedDay]:
    """Create the seven planned days for a new site, Monday first."""
    return [
        PlannedDay(
            day_of_week=entry.day_of_week,
            number_of_time_slots=entry.number_of_time_slots,
            start_time=entry.start_time,
        )
        for entry in sorted(schedule, key=lambda e: e.day_of_week.offset)
    ]


async def apply_schedule(
    db: AsyncSession,
    site: Site,
    schedule: list[PlannedDayIn],
    policy: ScheduleShrinkPolicy | None = None,
) -> None:
    """Update the site's planned days in place from a full-week schedule.

    Runs inside the caller's transaction; raises ScheduleConflict under the
    reject policy, which rolls back everything the caller did as well.
    """
    policy = policy or configured_shrink_policy()
    by_day = {pd.day_of_week: pd for pd in site.planned_days}

    for entry in schedule:
        planned_day = by_day.get(entry.day_of_week)

        if planned_day is None:
            # Cannot happen for sites created through the service, kept as a fail-safe
            site.planned_days.append(
                PlannedDay(
                    day_of_week=entry.day_of_week,
                    number_of_time_slots=entry.number_of_time_slots,
                    start_time=entry.start_time,
                )
            )
            logger.warning("Created missing planned day for %s on site %s", entry.day_of_week.value, site.id)
            continue

        if entry.number_of_time_slots < planned_day.number_of_time_slots:
            await _handle_shrink(db, planned_day, entry.number_of_time_slots, policy)

        planned_day.number_of_time_slots = entry.number_of_time_slots
        planned_day.start_time = entry.start_time

        logger.debug(
            "Updated planned day %s for %s on site %s: %s slots from %s",
            planned_day.id,
            entry.day_of_week.value,
            site.id,
            entry.number_of_time_slots,
            entry.start_time,
        )


async def _handle_shrink(
    db: AsyncSession,
    planned_day: PlannedDay,
    new_count: int,
    policy: ScheduleShrinkPolicy,
) -> None:
    beyond = (TimeSlot.planned_day_id == planned_day.id, TimeSlot.time_slot_number > new_count)

    if policy == ScheduleShrinkPolicy.PRESERVE:
        return

    if policy == ScheduleShrinkPolicy.REJECT:
        stranded = await db.scalar(select(func.count(TimeSlot.id)).where(*beyond))
        if stranded:
            logger.warning(
                "Refusing to shrink planned day %s to %s slots: %s booked slots beyond the new bound",
                planned_day.id,
                new_count,
                stranded,
            )
            raise ScheduleConflict(
                f"{planned_day.day_of_week.value.capitalize()} has {stranded} booked slot(s) "
                f"beyond slot {new_count}. Cancel them before shrinking the day."
            )
        return

    result = await db.execute(
        update(TimeSlot)
        .where(*beyond, TimeSlot.book_state != BookState.CANCELLED)
        .values(book_state=BookState.CANCELLED, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info(
            "Cancelled %s time slots beyond slot %s on planned day %s",
            result.rowcount,
            new_count,
            planned_day.id,
        )
