"""Site, court and weekly schedule models.

Site = a sports facility (the aggregate root).
Court = a numbered bookable court at a site.
PlannedDay = the recurring template for one day of the week at a site:
how many fixed-length slots it has and when the first one starts.
"""

import enum
from datetime import date, time
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Enum, ForeignKey, Index, Integer, Numeric, String, Time
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitebook.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from sitebook.models.time_slot import TimeSlot


class DayOfWeek(enum.StrEnum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def offset(self) -> int:
        """Days after Monday (Monday=0 .. Sunday=6), matching date.weekday()."""
        return list(DayOfWeek).index(self)

    @classmethod
    def from_date(cls, day: date) -> "DayOfWeek":
        return list(cls)[day.weekday()]


class Site(TimestampMixin, Base):
    __tablename__ = "sites"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    revenue: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0.00"), nullable=False)

    # ISO date strings, kept sorted
    closed_days: Mapped[list] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), default=list, nullable=False)

    # Relationships
    courts: Mapped[list["Court"]] = relationship(
        back_populates="site",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Court.number",
        lazy="selectin",
    )
    planned_days: Mapped[list["PlannedDay"]] = relationship(
        back_populates="site",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def closed_dates(self) -> set[date]:
        return {date.fromisoformat(d) for d in self.closed_days or []}

    def set_closed_dates(self, dates) -> None:
        self.closed_days = sorted({d.isoformat() for d in dates or []})

    def __repr__(self) -> str:
        return f"<Site {self.id} {self.name!r}>"


class Court(TimestampMixin, Base):
    __tablename__ = "courts"

    id: Mapped[int] = mapped_column(primary_key=True)
    site_id: Mapped[int] = mapped_column(ForeignKey("sites.id", ondelete="CASCADE"), nullable=False)
    number: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    site: Mapped["Site"] = relationship(back_populates="courts")
    time_slots: Mapped[list["TimeSlot"]] = relationship(
        back_populates="court",
        cascade="all",
        passive_deletes=True,
        lazy="raise",
    )

    __table_args__ = (Index("ix_courts_site_number", "site_id", "number", unique=True),)

    def __repr__(self) -> str:
        return f"<Court {self.number} @ site {self.site_id}>"


class PlannedDay(TimestampMixin, Base):
    __tablename__ = "planned_days"

    id: Mapped[int] = mapped_column(primary_key=True)
    site_id: Mapped[int] = mapped_column(ForeignKey("sites.id", ondelete="CASCADE"), nullable=False)
    day_of_week: Mapped[DayOfWeek] = mapped_column(
        Enum(DayOfWeek, name="day_of_week", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    number_of_time_slots: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    start_time: Mapped[time | None] = mapped_column(Time)  # None = not configured, day is closed

    # Relationships
    site: Mapped["Site"] = relationship(back_populates="planned_days")
    time_slots: Mapped[list["TimeSlot"]] = relationship(
        back_populates="planned_day",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    __table_args__ = (Index("ix_planned_days_site_day", "site_id", "day_of_week", unique=True),)

    def __repr__(self) -> str:
        return f"<PlannedDay {self.day_of_week.value} x{self.number_of_time_slots} @ site {self.site_id}>"
