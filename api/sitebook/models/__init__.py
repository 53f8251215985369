"""All models imported here so the mapper registry and metadata see every table."""

from sitebook.models.base import Base
from sitebook.models.site import Court, DayOfWeek, PlannedDay, Site
from sitebook.models.time_slot import BookState, TimeSlot

__all__ = [
    "Base",
    "Site",
    "Court",
    "PlannedDay",
    "DayOfWeek",
    "TimeSlot",
    "BookState",
]
