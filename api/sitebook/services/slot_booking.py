"""Slot materialization and booking.

Time slots are not generated from the schedule up front. The first booking of
a (planned day, court, slot number, week) tuple creates its row, and every
later booking of the same tuple overwrites the row's book state. The insert is
an INSERT ... ON CONFLICT DO NOTHING keyed on the occupancy index, and the
overwrite only applies while the row still holds the state that was read, so
two concurrent bookings of the same slot can never produce two rows or skip
the book state policy.

Validation runs in a fixed order and stops at the first failure, before
anything is written.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sitebook.core.database import unit_of_work
from sitebook.models.site import Court, PlannedDay, Site
from sitebook.models.time_slot import BookState, TimeSlot
from sitebook.schemas import BookTimeSlotRequest
from sitebook.services.errors import BookingConflict, NotFound, OutOfRange, ensure_known_id
from sitebook.services.temporal import MAX_WEEK_NUMBER, MIN_WEEK_NUMBER, project_date, project_datetime

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2
MAX_WRITE_ATTEMPTS = 3

OCCUPANCY_KEY = ("planned_day_id", "court_id", "time_slot_number", "week_number")

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


# ---------------------------------------------------------------------------
# Book state policies
# ---------------------------------------------------------------------------


class BookStatePolicy(Protocol):
    def resolve(self, current: BookState | None, requested: BookState) -> BookState:
        """Return the state to store. ``current`` is None for a slot that was never booked."""
        ...


class FreeFormBookStatePolicy:
    """Any state may follow any other. Cancelling and re-booking are plain overwrites."""

    def resolve(self, current: BookState | None, requested: BookState) -> BookState:
        return requested


class TransitionTableBookStatePolicy:
    """Only allow the transitions listed in a table keyed by the current state."""

    DEFAULT_TRANSITIONS: dict[BookState | None, frozenset[BookState]] = {
        None: frozenset({BookState.IN_PROGRESS, BookState.BOOKED, BookState.PAID}),
        BookState.IN_PROGRESS: frozenset(
            {BookState.IN_PROGRESS, BookState.BOOKED, BookState.PAID, BookState.CANCELLED}
        ),
        BookState.BOOKED: frozenset({BookState.BOOKED, BookState.PAID, BookState.CANCELLED}),
        BookState.PAID: frozenset({BookState.PAID, BookState.CANCELLED}),
        BookState.CANCELLED: frozenset({BookState.IN_PROGRESS, BookState.BOOKED, BookState.PAID}),
    }

    def __init__(self, transitions: dict[BookState | None, frozenset[BookState]] | None = None):
        self.transitions = transitions if transitions is not None else self.DEFAULT_TRANSITIONS

    def resolve(self, current: BookState | None, requested: BookState) -> BookState:
        if requested not in self.transitions.get(current, frozenset()):
            raise OutOfRange(
                "book_state_transition",
                f"Cannot move a time slot from {current.value if current else 'unbooked'} to {requested.value}.",
            )
        return requested


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------


@dataclass
class BookedSlot:
    id: int
    time_slot_number: int
    court_id: int
    week_number: int
    book_state: BookState
    computed_date_time: datetime | None
    created: bool


async def book_time_slot(
    db: AsyncSession,
    site_id: int,
    request: BookTimeSlotRequest,
    policy: BookStatePolicy | None = None,
    year: int | None = None,
) -> BookedSlot:
    """Book one slot of a site's schedule for one ISO week.

    Owns its transaction. If the write still trips an integrity error (the
    court or day vanished under a concurrent update), the whole unit of work
    is retried once so validation reports what actually happened.
    """
    policy = policy or FreeFormBookStatePolicy()

    attempt = 1
    while True:
        try:
            async with unit_of_work(db):
                return await _book(db, site_id, request, policy, year)
        except IntegrityError:
            if attempt >= MAX_ATTEMPTS:
                logger.warning(
                    "Booking of slot %s on planned day %s, court %s, week %s lost the race twice",
                    request.time_slot_number,
                    request.planned_day_id,
                    request.court_id,
                    request.week_number,
                )
                raise BookingConflict("The time slot was changed by another booking. Try again.") from None
            logger.info(
                "Integrity error booking planned day %s court %s, retrying",
                request.planned_day_id,
                request.court_id,
            )
            attempt += 1


async def _book(
    db: AsyncSession,
    site_id: int,
    request: BookTimeSlotRequest,
    policy: BookStatePolicy,
    year: int | None,
) -> BookedSlot:
    ensure_known_id("site", site_id)
    site = await db.get(Site, site_id, populate_existing=True)
    if site is None:
        logger.warning("Site %s not found", site_id)
        raise NotFound("site", site_id)

    ensure_known_id("planned_day", request.planned_day_id)
    planned_day = await db.get(PlannedDay, request.planned_day_id, populate_existing=True)
    if planned_day is None or planned_day.site_id != site_id:
        logger.warning("Planned day %s not found or does not belong to site %s", request.planned_day_id, site_id)
        raise NotFound("planned_day", request.planned_day_id)

    if planned_day.start_time is None:
        logger.warning("Planned day %s has no start time", planned_day.id)
        raise OutOfRange(
            "day_not_configured",
            f"{planned_day.day_of_week.value.capitalize()} has no start time, so it cannot be booked.",
        )

    ensure_known_id("court", request.court_id)
    court = await db.get(Court, request.court_id, populate_existing=True)
    if court is None or court.site_id != site_id:
        logger.warning("Court %s not found or does not belong to site %s", request.court_id, site_id)
        raise NotFound("court", request.court_id)

    # Checked against the template as it is now, not as it was when older slots were booked
    if not 1 <= request.time_slot_number <= planned_day.number_of_time_slots:
        logger.warning(
            "Time slot %s is out of range for planned day %s (max: %s)",
            request.time_slot_number,
            planned_day.id,
            planned_day.number_of_time_slots,
        )
        raise OutOfRange(
            "time_slot_number",
            f"Time slot {request.time_slot_number} does not exist on "
            f"{planned_day.day_of_week.value.capitalize()} "
            f"({planned_day.number_of_time_slots} slots).",
        )

    if not MIN_WEEK_NUMBER <= request.week_number <= MAX_WEEK_NUMBER:
        logger.warning("Week number %s is out of range", request.week_number)
        raise OutOfRange(
            "week_number",
            f"Week number must be between {MIN_WEEK_NUMBER} and {MAX_WEEK_NUMBER}.",
        )

    slot_date = project_date(request.week_number, planned_day.day_of_week, year)
    if slot_date in site.closed_dates:
        logger.warning("Site %s is closed on %s", site_id, slot_date)
        raise OutOfRange("closed_day", f"The site is closed on {slot_date.isoformat()}.")

    slot_id, book_state, previous = await _store_book_state(db, planned_day.id, court.id, request, policy)

    if previous is None:
        logger.info(
            "Created time slot %s for planned day %s, court %s, slot %s, week %s with state %s",
            slot_id,
            planned_day.id,
            court.id,
            request.time_slot_number,
            request.week_number,
            book_state.value,
        )
    else:
        logger.info("Updated time slot %s from %s to %s", slot_id, previous.value, book_state.value)

    return BookedSlot(
        id=slot_id,
        time_slot_number=request.time_slot_number,
        court_id=court.id,
        week_number=request.week_number,
        book_state=book_state,
        computed_date_time=project_datetime(
            request.week_number,
            request.time_slot_number,
            planned_day.start_time,
            planned_day.day_of_week,
            year,
        ),
        created=previous is None,
    )


async def _store_book_state(
    db: AsyncSession,
    planned_day_id: int,
    court_id: int,
    request: BookTimeSlotRequest,
    policy: BookStatePolicy,
) -> tuple[int, BookState, BookState | None]:
    """Write the resolved state for the slot. Returns (slot id, stored state, previous state).

    Both writes only succeed against the state the policy was resolved from:
    the insert only if no row exists, the update only if the row still holds
    the state that was read. Losing either race re-reads and resolves again.
    """
    occupancy = (
        TimeSlot.planned_day_id == planned_day_id,
        TimeSlot.court_id == court_id,
        TimeSlot.time_slot_number == request.time_slot_number,
        TimeSlot.week_number == request.week_number,
    )

    for _ in range(MAX_WRITE_ATTEMPTS):
        current = await db.scalar(select(TimeSlot.book_state).where(*occupancy))
        book_state = policy.resolve(current, request.book_state)

        if current is None:
            slot_id = await _insert_time_slot(db, planned_day_id, court_id, request, book_state)
        else:
            slot_id = await _update_time_slot(db, occupancy, current, book_state)

        if slot_id is not None:
            return slot_id, book_state, current

        logger.info(
            "Time slot %s on planned day %s, court %s, week %s changed while booking, re-reading",
            request.time_slot_number,
            planned_day_id,
            court_id,
            request.week_number,
        )

    raise BookingConflict("The time slot was changed by another booking. Try again.")


async def _insert_time_slot(
    db: AsyncSession,
    planned_day_id: int,
    court_id: int,
    request: BookTimeSlotRequest,
    book_state: BookState,
) -> int | None:
    """Create the time slot. Returns None if the tuple is already taken."""
    insert = _DIALECT_INSERTS[db.bind.dialect.name]

    stmt = (
        insert(TimeSlot)
        .values(
            planned_day_id=planned_day_id,
            court_id=court_id,
            time_slot_number=request.time_slot_number,
            week_number=request.week_number,
            book_state=book_state,
        )
        .on_conflict_do_nothing(index_elements=list(OCCUPANCY_KEY))
        .returning(TimeSlot.id)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _update_time_slot(db: AsyncSession, occupancy: tuple, expected: BookState, book_state: BookState) -> int | None:
    """Overwrite the state if it is still ``expected``. Returns None if it was changed meanwhile."""
    result = await db.execute(
        update(TimeSlot)
        .where(*occupancy, TimeSlot.book_state == expected)
        .values(book_state=book_state, updated_at=func.now())
        .returning(TimeSlot.id)
        .execution_options(synchronize_session=False)
    )
    return result.scalar_one_or_none()
