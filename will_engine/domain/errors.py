"""
Typed domain errors.

Each maps to one caller-visible outcome so the API layer can translate
them without inspecting messages:

- DomainValidationError  -> 400, the request is wrong for the current state
- AuthorizationError     -> 403, the caller may not act on this row
- *NotFound              -> 404
- TransientStoreError    -> 503, retry later
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for all domain-specific errors."""


class DomainValidationError(DomainError):
    """Invalid input, duplicate immutable submission or wrong-state operation."""

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.reason = reason
        self.details = details or {}
        super().__init__(reason)


class AuthorizationError(DomainError):
    """Caller is not allowed to act on this Will, Commitment or Circle."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class TransientStoreError(DomainError):
    """Persistence is unavailable; the operation may be retried."""


class WillNotFound(DomainError):
    def __init__(self, will_id: int) -> None:
        self.will_id = will_id
        super().__init__(f"Will {will_id} not found")


class CircleNotFound(DomainError):
    def __init__(self, ref: Any) -> None:
        self.ref = ref
        super().__init__(f"Circle {ref} not found")


class CommitmentNotFound(DomainError):
    def __init__(self, commitment_id: int) -> None:
        self.commitment_id = commitment_id
        super().__init__(f"Commitment {commitment_id} not found")
