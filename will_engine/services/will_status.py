"""
Display status for a single viewer.

Clients never derive lifecycle state themselves; they render the persisted
status through this mapping. Legacy values still found in old rows are
remapped through LEGACY_STATUS_MAP before anything else looks at them.
"""

from typing import Dict

from ..models.value_objects import WillStatus

NO_WILL = "no_will"

# Old persisted value -> current status
LEGACY_STATUS_MAP: Dict[str, str] = {
    "waiting_for_end_room": WillStatus.WILL_REVIEW.value,
}

# Persisted statuses shown as-is
_PASSTHROUGH = frozenset(
    s.value
    for s in (
        WillStatus.PENDING,
        WillStatus.SCHEDULED,
        WillStatus.ACTIVE,
        WillStatus.WILL_REVIEW,
        WillStatus.PAUSED,
    )
)


def normalize_status(status: str) -> str:
    return LEGACY_STATUS_MAP.get(status, status)


def display_status(
    status: str,
    viewer_acknowledged: bool,
    acknowledged_count: int,
    commitment_count: int,
) -> str:
    """Map persisted status plus this viewer's acknowledgment to what they see.

    A completed Will stays ``completed`` for a member until that member has
    acknowledged it; other members' acknowledgments only move the count.
    """
    status = normalize_status(status)

    if status in _PASSTHROUGH:
        return status

    if status == WillStatus.COMPLETED.value:
        if viewer_acknowledged and acknowledged_count >= commitment_count:
            return NO_WILL
        return WillStatus.COMPLETED.value

    return NO_WILL
