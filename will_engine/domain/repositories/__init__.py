from .check_in_repository import CheckInRepository
from .circle_repository import CircleRepository
from .commitment_repository import CommitmentRepository
from .review_repository import AcknowledgmentRepository, ReviewRepository
from .will_repository import WillRepository

__all__ = [
    "AcknowledgmentRepository",
    "CheckInRepository",
    "CircleRepository",
    "CommitmentRepository",
    "ReviewRepository",
    "WillRepository",
]
