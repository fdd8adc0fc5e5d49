"""
Will and Commitment models.

A Will is a time-boxed commitment declared solo or shared within a circle.
Its ``status`` column is written only by the lifecycle scheduler and by
administrative actions, always as a conditional update on the expected
current value.
"""

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..core.clock import ensure_utc
from .base import Base, TimestampMixin
from .value_objects import ActiveDays


class Will(Base, TimestampMixin):
    __tablename__ = "wills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    circle_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("circles.id"), nullable=True, index=True
    )
    created_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    mode: Mapped[str] = mapped_column(String(10), nullable=False)  # solo, circle
    visibility: Mapped[str] = mapped_column(
        String(10), nullable=False, default="private"
    )  # private, public
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )
    # Status to restore on resume while paused
    paused_from: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Schedule
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_indefinite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active_days: Mapped[str] = mapped_column(
        String(20), nullable=False, default="every_day"
    )  # every_day, weekdays, custom
    custom_days: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True
    )  # "0,2,4" (Monday=0) when active_days == custom
    check_in_type: Mapped[str] = mapped_column(
        String(10), nullable=False, default="daily"
    )  # daily, one-time
    # IANA zone every date key of this Will is computed in
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    # Member action ending an indefinite Will; applied by the scheduler
    end_requested_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # End Room
    end_room_scheduled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    end_room_status: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True
    )  # cache of the window function: pending, open, completed

    # --- Calendar helpers (canonical zone) ---

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone or "UTC")

    @property
    def schedule(self) -> ActiveDays:
        return ActiveDays.from_columns(self.active_days, self.custom_days)

    def local_date(self, instant: datetime) -> date:
        return ensure_utc(instant).astimezone(self.zone).date()

    @property
    def start_day(self) -> date:
        return self.local_date(self.start_date)

    @property
    def end_day(self) -> Optional[date]:
        return self.local_date(self.end_date) if self.end_date else None

    def __repr__(self) -> str:
        return f"<Will(id={self.id}, mode={self.mode}, status={self.status})>"


class Commitment(Base, TimestampMixin):
    """One member's declared what/why for a Will."""

    __tablename__ = "will_commitments"
    __table_args__ = (
        UniqueConstraint("will_id", "user_id", name="uq_will_commitments_member"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    will_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("wills.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    what: Mapped[str] = mapped_column(String(75), nullable=False)
    why: Mapped[str] = mapped_column(String(75), nullable=False)

    def __repr__(self) -> str:
        return f"<Commitment(id={self.id}, will_id={self.will_id}, user_id={self.user_id})>"


class WillScope(Base, TimestampMixin):
    """The newest Will created in a circle, or among one user's solo Wills.

    Creating a Will claims this row with a conditional write on the value
    read before the new-Will gate ran, so two creators passing the gate at
    the same time cannot both commit.
    """

    __tablename__ = "will_scopes"

    # "circle:<id>" or "solo:<user_id>"
    scope: Mapped[str] = mapped_column(String(80), primary_key=True)
    current_will_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("wills.id"), nullable=False
    )

    @staticmethod
    def key_for(circle_id: Optional[int], user_id: str) -> str:
        return f"circle:{circle_id}" if circle_id is not None else f"solo:{user_id}"

    def __repr__(self) -> str:
        return f"<WillScope(scope={self.scope}, current_will_id={self.current_will_id})>"
