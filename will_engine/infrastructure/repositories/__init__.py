from .sqlalchemy_check_in_repository import SqlAlchemyCheckInRepository
from .sqlalchemy_circle_repository import SqlAlchemyCircleRepository
from .sqlalchemy_commitment_repository import SqlAlchemyCommitmentRepository
from .sqlalchemy_review_repository import (
    SqlAlchemyAcknowledgmentRepository,
    SqlAlchemyReviewRepository,
)
from .sqlalchemy_will_repository import SqlAlchemyWillRepository

__all__ = [
    "SqlAlchemyAcknowledgmentRepository",
    "SqlAlchemyCheckInRepository",
    "SqlAlchemyCircleRepository",
    "SqlAlchemyCommitmentRepository",
    "SqlAlchemyReviewRepository",
    "SqlAlchemyWillRepository",
]
