"""Domain errors raised by the site and booking services.

Routes translate these into HTTP responses; services never raise HTTPException.
"""


class SiteServiceError(Exception):
    """Base class for all site and booking errors."""


class NotFound(SiteServiceError):
    """A referenced site, planned day or court does not exist, or belongs to another site."""

    def __init__(self, resource: str, identifier: int):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource.replace('_', ' ').capitalize()} {identifier} not found")


class OutOfRange(SiteServiceError):
    """A booking request falls outside the site's current schedule."""

    def __init__(self, rule: str, message: str):
        self.rule = rule
        self.message = message
        super().__init__(message)


class BookingConflict(SiteServiceError):
    """A booking kept losing the race on the time slot uniqueness index."""


class ScheduleConflict(SiteServiceError):
    """A schedule change would strand existing bookings under the reject policy."""


# Largest value a BIGINT / SQLite INTEGER primary key can hold
MAX_ID = 2**63 - 1


def ensure_known_id(resource: str, identifier: int) -> None:
    """Raise NotFound for ids the database could never have issued."""
    if not 1 <= identifier <= MAX_ID:
        raise NotFound(resource, identifier)
