"""TimeSlot model.

A time slot is one concrete occurrence of a planned day's slot on one court
in one ISO week. Rows only exist once somebody has booked them; an unbooked
slot is implied by the schedule and never stored.
"""

import enum
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitebook.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from sitebook.models.site import Court, PlannedDay


class BookState(enum.StrEnum):
    IN_PROGRESS = "in_progress"
    BOOKED = "booked"
    PAID = "paid"
    CANCELLED = "cancelled"


class TimeSlot(TimestampMixin, Base):
    __tablename__ = "time_slots"

    id: Mapped[int] = mapped_column(primary_key=True)
    planned_day_id: Mapped[int] = mapped_column(ForeignKey("planned_days.id", ondelete="CASCADE"), nullable=False)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id", ondelete="CASCADE"), nullable=False)
    time_slot_number: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-based
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)  # ISO week
    book_state: Mapped[BookState] = mapped_column(
        Enum(BookState, name="book_state", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )

    # Relationships
    planned_day: Mapped["PlannedDay"] = relationship(back_populates="time_slots", lazy="raise")
    court: Mapped["Court"] = relationship(back_populates="time_slots", lazy="raise")

    __table_args__ = (
        # Single occupancy guarantee: one row per (day, court, ordinal, week).
        # The booking upsert targets exactly these columns.
        Index(
            "ix_time_slots_occupancy",
            "planned_day_id",
            "court_id",
            "time_slot_number",
            "week_number",
            unique=True,
        ),
        Index("ix_time_slots_court", "court_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<TimeSlot day={self.planned_day_id} court={self.court_id} "
            f"#{self.time_slot_number} wk{self.week_number} {self.book_state.value}>"
        )
