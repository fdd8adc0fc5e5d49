"""
Check-in model: one adherence report per Will per local calendar day.
"""

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class CheckIn(Base, TimestampMixin):
    __tablename__ = "will_check_ins"
    __table_args__ = (UniqueConstraint("will_id", "date", name="uq_will_check_ins_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    will_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("wills.id"), nullable=False, index=True
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    status: Mapped[str] = mapped_column(String(10), nullable=False)  # yes, no, partial
    # Member who last wrote this day
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<CheckIn(will_id={self.will_id}, date={self.date}, status={self.status})>"
