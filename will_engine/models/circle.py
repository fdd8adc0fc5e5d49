"""
Circle models: small groups (2-4 members) that share Wills.
"""

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Circle(Base, TimestampMixin):
    __tablename__ = "circles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invite_code: Mapped[str] = mapped_column(String(12), nullable=False, unique=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<Circle(id={self.id}, invite_code={self.invite_code})>"


class CircleMember(Base, TimestampMixin):
    __tablename__ = "circle_members"
    __table_args__ = (UniqueConstraint("user_id", name="uq_circle_members_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    circle_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("circles.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<CircleMember(circle_id={self.circle_id}, user_id={self.user_id})>"
