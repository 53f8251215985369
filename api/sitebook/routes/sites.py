"""Site routes: site CRUD, weekly schedule, slot booking and week grid."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from sitebook.core.database import get_db
from sitebook.core.dependencies import Principal, get_current_principal, require_admin
from sitebook.schemas import (
    BookTimeSlotRequest,
    ScheduleUpdate,
    SiteCreate,
    SiteDetailsOut,
    SitePageOut,
    SiteSummaryOut,
    SiteUpdate,
    TimeSlotOut,
    WeekGridOut,
)
from sitebook.services import sites as site_service
from sitebook.services.errors import BookingConflict, NotFound, OutOfRange, ScheduleConflict, SiteServiceError
from sitebook.services.slot_booking import book_time_slot
from sitebook.services.week_grid import build_week_grid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sites", tags=["sites"])


def _to_http(exc: SiteServiceError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{exc.resource.replace('_', ' ').capitalize()} not found",
        )
    if isinstance(exc, OutOfRange):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[{"rule": exc.rule, "message": exc.message}],
        )
    if isinstance(exc, (BookingConflict, ScheduleConflict)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=list[SiteSummaryOut])
async def list_sites(db: AsyncSession = Depends(get_db)):
    return await site_service.list_sites(db)


@router.get("/page", response_model=SitePageOut)
async def get_site_page(
    page_number: int = Query(1, ge=1, le=1_000_000),
    page_size: int = Query(10, ge=1, le=100),
    name: str | None = Query(None, max_length=200),
    db: AsyncSession = Depends(get_db),
):
    """One page of sites ordered by name. ``name`` filters on a case-insensitive fragment."""
    return await site_service.get_site_page(db, page_number, page_size, name)


@router.get("/{site_id}", response_model=SiteDetailsOut)
async def get_site(site_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return await site_service.get_site(db, site_id)
    except SiteServiceError as exc:
        raise _to_http(exc) from None


@router.get("/{site_id}/weeks/{week_number}", response_model=WeekGridOut)
async def get_week_grid(site_id: int, week_number: int, db: AsyncSession = Depends(get_db)):
    """Every slot of the site's schedule for one ISO week of the current year, booked or not.

    Used by the grid view where courts are columns and slots are rows.
    """
    try:
        return await build_week_grid(db, site_id, week_number)
    except SiteServiceError as exc:
        raise _to_http(exc) from None


# ---------------------------------------------------------------------------
# Booking (any authenticated principal)
# ---------------------------------------------------------------------------


@router.post("/{site_id}/timeslots/book", response_model=TimeSlotOut)
async def book_slot(
    site_id: int,
    body: BookTimeSlotRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    try:
        booked = await book_time_slot(db, site_id, body)
    except SiteServiceError as exc:
        raise _to_http(exc) from None

    logger.info(
        "Principal %s set time slot %s on site %s to %s",
        principal.id,
        booked.id,
        site_id,
        booked.book_state.value,
    )
    return TimeSlotOut(
        id=booked.id,
        time_slot_number=booked.time_slot_number,
        court_id=booked.court_id,
        week_number=booked.week_number,
        book_state=booked.book_state,
        computed_date_time=booked.computed_date_time,
    )


# ---------------------------------------------------------------------------
# Admin endpoints
# ---------------------------------------------------------------------------


@router.post("", response_model=SiteDetailsOut, status_code=status.HTTP_201_CREATED)
async def create_site(
    body: SiteCreate,
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    site = await site_service.create_site(db, body)
    logger.info("Principal %s created site %s", principal.id, site.id)
    return site


@router.put("/{site_id}", response_model=SiteDetailsOut)
async def update_site(
    site_id: int,
    body: SiteUpdate,
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Replace the site's name, closed days, courts and schedule.

    Courts missing from the body are removed together with their bookings.
    """
    try:
        site = await site_service.update_site(db, site_id, body)
    except SiteServiceError as exc:
        raise _to_http(exc) from None

    logger.info("Principal %s updated site %s", principal.id, site_id)
    return site


@router.put("/{site_id}/schedule", response_model=SiteDetailsOut)
async def update_schedule(
    site_id: int,
    body: ScheduleUpdate,
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        site = await site_service.update_schedule(db, site_id, body)
    except SiteServiceError as exc:
        raise _to_http(exc) from None

    logger.info("Principal %s updated the schedule of site %s", principal.id, site_id)
    return site


@router.delete("/{site_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_site(
    site_id: int,
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        await site_service.delete_site(db, site_id)
    except SiteServiceError as exc:
        raise _to_http(exc) from None

    logger.info("Principal %s deleted site %s", principal.id, site_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
