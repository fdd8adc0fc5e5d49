"""
Review and Acknowledgment models.

Both are created once per member by member action and never updated.
"""

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Review(Base, TimestampMixin):
    __tablename__ = "will_reviews"
    __table_args__ = (UniqueConstraint("will_id", "user_id", name="uq_will_reviews_member"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    will_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("wills.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    follow_through: Mapped[str] = mapped_column(String(10), nullable=False)  # yes, mostly, no
    reflection_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Review(will_id={self.will_id}, user_id={self.user_id})>"


class Acknowledgment(Base, TimestampMixin):
    """Member has seen the final summary of a completed Will."""

    __tablename__ = "will_acknowledgments"
    __table_args__ = (
        UniqueConstraint("will_id", "user_id", name="uq_will_acknowledgments_member"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    will_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("wills.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<Acknowledgment(will_id={self.will_id}, user_id={self.user_id})>"
