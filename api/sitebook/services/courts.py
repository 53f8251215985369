"""Court registry reconciliation.

A site's courts are identified by number. Reconciling against a desired set of
numbers removes the missing courts together with every booking on them and
adds the new ones; courts present on both sides keep their bookings.
"""

import logging

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from sitebook.models.site import Court, Site
from sitebook.models.time_slot import TimeSlot

logger = logging.getLogger(__name__)


async def reconcile_courts(db: AsyncSession, site: Site, numbers: list[int]) -> tuple[list[int], list[int]]:
    """Bring the site's courts in line with ``numbers``. Returns (removed, added) court numbers.

    Runs inside the caller's transaction.
    """
    existing = {court.number: court for court in site.courts}
    desired = set(numbers)

    to_remove = [court for number, court in existing.items() if number not in desired]
    to_add = sorted(desired - existing.keys())

    if to_remove:
        result = await db.execute(
            delete(TimeSlot)
            .where(TimeSlot.court_id.in_([court.id for court in to_remove]))
            .execution_options(synchronize_session=False)
        )
        for court in to_remove:
            site.courts.remove(court)

        logger.info(
            "Removed %s courts and %s associated time slots for site %s",
            len(to_remove),
            result.rowcount,
            site.id,
        )

    for number in to_add:
        site.courts.append(Court(number=number))

    return sorted(c.number for c in to_remove), to_add
