from .base import Base, TimestampMixin
from .check_in import CheckIn
from .circle import Circle, CircleMember
from .review import Acknowledgment, Review
from .will import Commitment, Will, WillScope

__all__ = [
    "Base",
    "TimestampMixin",
    "Circle",
    "CircleMember",
    "Will",
    "Commitment",
    "WillScope",
    "CheckIn",
    "Review",
    "Acknowledgment",
]
